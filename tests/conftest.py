"""
Root conftest.py - Shared Pytest fixtures.

Provides:
- FakeTransport: records request bodies and replays canned responses.
- Helpers to build methodResponse documents.
- A client wired to the fake transport.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional

import pytest

from tracrpc.xmlrpc import Endpoint, RpcClient


def response_xml(value_xml: Optional[str]) -> bytes:
    """Wrap a <value> body in a methodResponse, or build one without params."""
    if value_xml is None:
        return b"<?xml version='1.0'?><methodResponse><params/></methodResponse>"
    return (
        "<?xml version='1.0'?><methodResponse><params><param>"
        f"<value>{value_xml}</value>"
        "</param></params></methodResponse>"
    ).encode("utf-8")


class FakeTransport:
    """Transport double returning queued responses in order."""

    def __init__(self, responses: Optional[List[bytes]] = None) -> None:
        self.responses = list(responses or [])
        self.requests: List[bytes] = []
        self.endpoints: List[Endpoint] = []

    def queue(self, value_xml: Optional[str]) -> "FakeTransport":
        self.responses.append(response_xml(value_xml))
        return self

    def call(self, endpoint: Endpoint, body: bytes) -> bytes:
        self.endpoints.append(endpoint)
        self.requests.append(body)
        return self.responses.pop(0)

    def request_tree(self, index: int = -1) -> ET.Element:
        """Parsed methodCall document of a recorded request."""
        return ET.fromstring(self.requests[index])


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(fake_transport: FakeTransport) -> RpcClient:
    """Anonymous client whose requests go to the fake transport."""
    return RpcClient(base_url="http://tracserv/trac/Project", transport=fake_transport)


@pytest.fixture(scope="session")
def project_config_dir() -> Path:
    """The repository's config directory."""
    return Path(__file__).parent.parent / "config"
