# -*- coding: utf-8 -*-

"""
Exception hierarchy for the Bulk API client.

Every error raised by this package derives from BulkApiError, so callers
can catch one type at the outermost level.
"""


class BulkApiError(Exception):
    """Base class for all Bulk API client errors."""


class ConfigurationError(BulkApiError):
    """A required option (URL, credentials, API version, job options) is missing or invalid."""


class AuthenticationError(BulkApiError):
    """The login exchange was rejected or its response could not be understood."""


class RemoteStateError(BulkApiError):
    """
    The remote job reports failed batches or failed records.

    Attributes:
        job_info: The JobInfo snapshot that triggered the error.
    """

    def __init__(self, message, job_info=None):
        super().__init__(message)
        self.job_info = job_info


class TransportError(BulkApiError):
    """
    A request failed at the network layer or returned a non-success status.

    Attributes:
        status_code: HTTP status code, or None when no response was received.
        exception_code: The service's exceptionCode when the error body had one.
    """

    def __init__(self, message, status_code=None, exception_code=None):
        super().__init__(message)
        self.status_code = status_code
        self.exception_code = exception_code


class ResponseParseError(BulkApiError):
    """A response body was not the XML document we expected."""
