"""
XML-RPC Client.

The call surface used by higher layers: invoke a remote method with a
list of arguments and get back a decoded RpcValue (or None when the
server returned no parameter).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from loguru import logger

from tracrpc.xmlrpc.errors import UsageError
from tracrpc.xmlrpc.marshaller import decode_response, encode_request
from tracrpc.xmlrpc.transport import Endpoint, HttpTransport
from tracrpc.xmlrpc.values import RpcValue


@dataclass(frozen=True)
class RpcClientConfig:
    """Configuration for the XML-RPC client."""

    base_url: str
    username: str = ""
    password: str = ""
    timeout_sec: Optional[float] = 30
    verify_ssl: bool = True


class RpcClient:
    """
    Synchronous XML-RPC client.

    The endpoint is resolved once at construction and never changes.
    Every call builds its own request and response, so a single client
    may be shared between threads.

    Usage::

        client = RpcClient(
            base_url="http://tracserv/trac/Project",
            username="builder",
            password="secret",
        )
        version = client.invoke("system.getAPIVersion")
        ticket = client.invoke("ticket.get", RpcValue.integer(42))
    """

    def __init__(
        self,
        base_url: str = "",
        username: str = "",
        password: str = "",
        timeout_sec: Optional[float] = 30,
        verify_ssl: bool = True,
        config: Optional[RpcClientConfig] = None,
        transport: Optional[HttpTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Project base URL; the RPC path is appended to it.
            username: User name for Basic auth; empty for anonymous access.
            password: Password for Basic auth.
            timeout_sec: Request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            config: Optional RpcClientConfig (overrides individual params).
            transport: Optional transport, mainly for tests.
        """
        if config is None:
            config = RpcClientConfig(
                base_url=base_url,
                username=username,
                password=password,
                timeout_sec=timeout_sec,
                verify_ssl=verify_ssl,
            )
        self._config = config
        self._endpoint = Endpoint.from_base_url(
            config.base_url, config.username, config.password
        )
        self._transport = transport or HttpTransport(
            timeout_sec=config.timeout_sec, verify_ssl=config.verify_ssl
        )

        logger.info(f"RpcClient initialized - endpoint={self._endpoint.uri}")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "RpcClient":
        """
        Create a client from a connection config mapping.

        Args:
            config: Mapping with base_url and optional username, password,
                timeout_sec and verify_ssl keys.

        Returns:
            A configured RpcClient.
        """
        return cls(
            config=RpcClientConfig(
                base_url=config.get("base_url", ""),
                username=config.get("username") or "",
                password=config.get("password") or "",
                timeout_sec=config.get("timeout_sec", 30),
                verify_ssl=config.get("verify_ssl", True),
            )
        )

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    def invoke(self, method_name: str, *args: Any) -> Optional[RpcValue]:
        """
        Invoke a remote method.

        Args:
            method_name: Remote method name (e.g. "ticket.query").
            *args: Arguments, as RpcValue or native Python values
                (wrapped with RpcValue.from_python).

        Returns:
            The decoded first response parameter, or None when the
            response carried no parameter.

        Raises:
            UsageError: If the method name is empty or an argument has no
                XML-RPC form.
            TransportError: If the HTTP round trip fails.
            ParseError: If the response is not well-formed XML.
            ProtocolError: If the response cannot be decoded.
        """
        if not method_name:
            raise UsageError("A method name is required")

        params = [RpcValue.from_python(arg) for arg in args]
        logger.debug(f"XML-RPC call {method_name} ({len(params)} args)")

        body = encode_request(method_name, params)
        response = self._transport.call(self._endpoint, body)
        return decode_response(response)
