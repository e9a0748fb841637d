"""
Trac XML-RPC Client - Core Source Package.

This package contains the core logic for:
- XML-RPC: Value marshalling, HTTP transport and the client call surface.
- Configuration: Connection settings loading and validation.
- Trac: Ticket and category access built on the XML-RPC client.
"""

__version__ = "0.1.0"
