"""
XML-RPC HTTP Transport.

Provides:
- Endpoint: the immutable target URI plus the precomputed Basic-auth
  credential, built once per client.
- HttpTransport: one blocking HTTP POST per call, returning the raw
  response body.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urljoin

import requests
from loguru import logger

from tracrpc.xmlrpc.errors import TransportError, UsageError

CONTENT_TYPE = 'text/xml; charset="utf-8"'

RPC_PATH = "rpc"
LOGIN_RPC_PATH = "login/rpc"


@dataclass(frozen=True)
class Endpoint:
    """
    Target of XML-RPC calls.

    Attributes:
        uri: Absolute URI that requests are POSTed to.
        credential: base64 of ``user:password``, or None for anonymous access.
    """

    uri: str
    credential: Optional[str] = None

    @classmethod
    def from_base_url(
        cls,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "Endpoint":
        """
        Resolve the RPC endpoint of a Trac project.

        Authenticated access goes through ``login/rpc`` under the project
        URL, anonymous access through ``rpc``.

        Args:
            base_url: Project URL (e.g. "http://tracserv/trac/Project").
            username: Optional user name; empty means anonymous.
            password: Password for the user name.

        Returns:
            The resolved Endpoint.

        Raises:
            UsageError: If base_url is empty.
        """
        if not base_url:
            raise UsageError("A base URL is required to build an endpoint")

        if not base_url.endswith("/"):
            base_url += "/"

        if username:
            token = f"{username}:{password or ''}".encode("utf-8")
            credential: Optional[str] = base64.b64encode(token).decode("ascii")
            uri = urljoin(base_url, LOGIN_RPC_PATH)
        else:
            credential = None
            uri = urljoin(base_url, RPC_PATH)

        return cls(uri=uri, credential=credential)

    @property
    def is_authenticated(self) -> bool:
        return self.credential is not None

    def headers(self) -> Dict[str, str]:
        """HTTP headers for a request to this endpoint."""
        headers = {"Content-Type": CONTENT_TYPE}
        if self.credential is not None:
            # Sent up front instead of waiting for a 401 challenge
            headers["Authorization"] = f"Basic {self.credential}"
        return headers

    def __repr__(self) -> str:
        auth = "basic" if self.credential is not None else "anonymous"
        return f"Endpoint(uri={self.uri!r}, auth={auth})"


class HttpTransport:
    """
    Blocking HTTP transport for XML-RPC requests.

    Each call is a single POST with no retries. The transport holds only
    read-only settings, so one instance can serve concurrent callers.
    """

    def __init__(self, timeout_sec: Optional[float] = 30, verify_ssl: bool = True) -> None:
        """
        Initialize the transport.

        Args:
            timeout_sec: Per-request timeout in seconds, None to wait forever.
            verify_ssl: Whether to verify SSL certificates.
        """
        self.timeout_sec = timeout_sec
        self.verify_ssl = verify_ssl

    def call(self, endpoint: Endpoint, body: bytes) -> bytes:
        """
        POST a request body and return the response body.

        Args:
            endpoint: Where to send the request.
            body: Serialized methodCall document.

        Returns:
            Raw response bytes.

        Raises:
            TransportError: On connection failure, timeout, or a non-2xx status.
        """
        logger.debug(f"XML-RPC POST {endpoint.uri} ({len(body)} bytes)")

        try:
            response = requests.post(
                endpoint.uri,
                data=body,
                headers=endpoint.headers(),
                timeout=self.timeout_sec,
                verify=self.verify_ssl,
            )
        except requests.exceptions.ConnectionError as e:
            logger.error(f"XML-RPC connection error: {e}")
            raise TransportError(f"Cannot connect to {endpoint.uri}: {e}") from e
        except requests.exceptions.Timeout as e:
            logger.error(f"XML-RPC timeout: {e}")
            raise TransportError(
                f"XML-RPC request timed out after {self.timeout_sec}s"
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"XML-RPC transport error: {e}")
            raise TransportError(f"XML-RPC request failed: {e}") from e

        status_code = response.status_code
        if not 200 <= status_code < 300:
            logger.error(f"XML-RPC HTTP error: {status_code} {response.reason} (url={endpoint.uri})")
            raise TransportError(
                f"XML-RPC request failed: HTTP {status_code} {response.reason}",
                status_code=status_code,
            )

        return response.content
