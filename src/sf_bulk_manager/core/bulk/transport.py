# -*- coding: utf-8 -*-
"""
Request helpers shared by the Bulk API modules.

Every failure, whether at the network layer or a non-success status, is
raised as TransportError. Nothing here retries.
"""

import logging

import httpx

from ..utils.errors import TransportError
from .parse import parse_error


def _describe_error(response):
    """Pull exceptionCode/exceptionMessage out of an error body, if there is one."""
    try:
        body = response.text
    except httpx.ResponseNotRead:
        body = ''
    code, message = parse_error(body)
    if message is None:
        message = body.strip()[:500] or response.reason_phrase
    return code, message


def raise_for_status(response: httpx.Response):
    """
    Raise TransportError for a non-success response.

    Raises:
        TransportError: Carrying the status code and the service's exception code.
    """
    if response.is_success:
        return response
    code, message = _describe_error(response)
    raise TransportError(
        f"{response.request.method} {response.request.url} failed with "
        f"HTTP {response.status_code}: {message}",
        status_code=response.status_code,
        exception_code=code,
    )


def send_request(client: httpx.Client, method: str, url: str, check: bool = True, **kwargs):
    """
    Send a request and wrap network failures in TransportError.

    Args:
        client: HTTP client.
        method (str): HTTP method.
        url (str): Target URL.
        check (bool): Raise TransportError on a non-success status.
        **kwargs: Passed to httpx.Client.request (headers, content...).

    Returns:
        httpx.Response: The (fully read) response.
    """
    logging.debug(f"{method} {url}")
    try:
        response = client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise TransportError(f"{method} {url} failed: {e}") from e
    if check:
        raise_for_status(response)
    return response


def stream_bytes(client: httpx.Client, url: str, headers=None):
    """
    Yield the body of a GET request chunk by chunk.

    The connection is opened on the first next() and released when the body
    is exhausted, when an error is raised, or when the consumer closes the
    generator early.

    Raises:
        TransportError: On a non-success status or a mid-stream failure.
    """
    logging.debug(f"GET {url} (stream)")
    try:
        with client.stream('GET', url, headers=headers) as response:
            if not response.is_success:
                response.read()
                raise_for_status(response)
            yield from response.iter_bytes()
    except httpx.HTTPError as e:
        raise TransportError(f"GET {url} failed while streaming: {e}") from e
