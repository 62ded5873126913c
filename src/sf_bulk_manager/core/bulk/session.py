# -*- coding: utf-8 -*-
"""
Session handling for the Bulk API.

A LoginSession performs the SOAP login exchange once and caches the
resulting SessionContext for the life of the instance. The reported
session lifetime is kept on the context but is not enforced.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..utils.config import BulkApiConfig
from ..utils.misc import mask_secret, xml_safe
from .parse import parse_login_response
from .transport import raise_for_status, send_request


LOGIN_TEMPLATE = """<?xml version="1.0" encoding="utf-8" ?>
<env:Envelope xmlns:xsd="http://www.w3.org/2001/XMLSchema"
  xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
  xmlns:env="http://schemas.xmlsoap.org/soap/envelope/">
  <env:Body>
    <n1:login xmlns:n1="urn:partner.soap.sforce.com">
      <n1:username>{username}</n1:username>
      <n1:password>{password}</n1:password>
    </n1:login>
  </env:Body>
</env:Envelope>"""

XML_CONTENT_TYPE = 'text/xml; charset=UTF-8'
CSV_CONTENT_TYPE = 'text/csv; charset=UTF-8'
SESSION_HEADER = 'X-SFDC-Session'


@dataclass(frozen=True)
class SessionContext:
    """Authenticated base URL and session token, plus the derived job endpoint."""

    base_url: str
    session_id: str
    api_version: str
    session_seconds_valid: Optional[int] = None

    @property
    def job_url(self) -> str:
        return f"{self.base_url}/services/async/{self.api_version}/job"

    def headers(self, content_type: str = None) -> dict:
        """Headers for an authenticated request, optionally declaring a content type."""
        headers = {SESSION_HEADER: self.session_id}
        if content_type:
            headers['Content-Type'] = content_type
        return headers

    @classmethod
    def from_login(cls, login: dict, api_version: str):
        """Build a context from a parsed login response."""
        server_url = login['server_url']
        i = server_url.find('/services/Soap/')
        base_url = server_url[:i] if i >= 0 else server_url.rstrip('/')
        return cls(
            base_url=base_url,
            session_id=login['session_id'],
            api_version=str(api_version),
            session_seconds_valid=login.get('session_seconds_valid'),
        )


def build_login_envelope(username: str, password: str, token: str) -> str:
    """Render the SOAP login body; the password and security token are sent concatenated."""
    return LOGIN_TEMPLATE.format(
        username=xml_safe(username),
        password=xml_safe(password) + xml_safe(token),
    )


class LoginSession:
    """Performs the login exchange at most once and caches the SessionContext."""

    def __init__(self, config: BulkApiConfig, http_client: httpx.Client):
        self.config = config.validate()
        self.http_client = http_client
        self._context = None

    @property
    def login_url(self) -> str:
        return f"{self.config.url}/services/Soap/u/{self.config.api_version}"

    @property
    def context(self) -> Optional[SessionContext]:
        return self._context

    @property
    def is_authenticated(self) -> bool:
        return self._context is not None

    def login(self) -> SessionContext:
        """
        Log in, or return the cached session.

        Returns:
            SessionContext: Base URL, session id and job endpoint.

        Raises:
            AuthenticationError: If the credentials are rejected or the
                response is malformed.
            TransportError: If the request fails at the network layer.
        """
        if self._context is not None:
            return self._context

        logging.info(f"Logging in to {self.config.url} as {self.config.username}...")
        body = build_login_envelope(
            self.config.username, self.config.password, self.config.token
        )
        response = send_request(
            self.http_client, 'POST', self.login_url,
            check=False,
            content=body.encode('utf-8'),
            headers={'Content-Type': XML_CONTENT_TYPE, 'SOAPAction': 'login'},
        )

        # Login faults come back as HTTP 500 with a SOAP body; anything else
        # unsuccessful never reached the login endpoint.
        if not response.is_success and response.status_code not in (401, 403, 500):
            raise_for_status(response)
        login = parse_login_response(response.text)

        self._context = SessionContext.from_login(login, self.config.api_version)
        logging.info(
            f"Logged in. Session {mask_secret(self._context.session_id)} "
            f"at {self._context.base_url}"
        )
        return self._context
