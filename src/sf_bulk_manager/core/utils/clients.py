# -*- coding: utf-8 -*-

import logging

import httpx

from .config import DEFAULT_TIMEOUT


def create_http_client(timeout: float = DEFAULT_TIMEOUT, transport=None):
    """
    Create an HTTP client for Bulk API calls.

    Args:
        timeout (float): Timeout in seconds applied to connect, read and write.
        transport: Optional httpx transport (tests pass an httpx.MockTransport).
    """
    client = httpx.Client(timeout=timeout, transport=transport)
    logging.debug("HTTP client created successfully.")
    return client
