"""
XML-RPC Error Types.

Every failure of a single call surfaces as exactly one of these kinds:
- TransportError: the server could not be reached or answered non-2xx.
- ParseError: the response body is not well-formed XML.
- ProtocolError: well-formed XML that does not decode as XML-RPC.
- UsageError: the caller passed invalid arguments.
"""

from __future__ import annotations

from typing import Optional


class RpcError(Exception):
    """Base class for all XML-RPC client failures."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(RpcError):
    """Raised when the HTTP round trip fails (connection, timeout, non-2xx)."""


class ParseError(RpcError):
    """Raised when the response body is not well-formed XML."""


class ProtocolError(RpcError):
    """Raised when a well-formed response contains an invalid XML-RPC value."""


class UsageError(RpcError, ValueError):
    """Raised when a call is made with invalid arguments."""
