"""
XML-RPC Client Module.

Provides a small, typed XML-RPC client:
- RpcValue: tagged representation of every XML-RPC value.
- Marshaller: encoding of requests and decoding of responses.
- Transport: one HTTP POST per call, with optional Basic auth.
- RpcClient: the call surface used by higher layers.
"""

from tracrpc.xmlrpc.client import RpcClient, RpcClientConfig
from tracrpc.xmlrpc.errors import (
    ParseError,
    ProtocolError,
    RpcError,
    TransportError,
    UsageError,
)
from tracrpc.xmlrpc.transport import Endpoint, HttpTransport
from tracrpc.xmlrpc.values import RpcKind, RpcValue

__all__ = [
    "RpcClient",
    "RpcClientConfig",
    "RpcError",
    "TransportError",
    "ParseError",
    "ProtocolError",
    "UsageError",
    "Endpoint",
    "HttpTransport",
    "RpcKind",
    "RpcValue",
]
