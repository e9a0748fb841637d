"""
Trac Issue Tracking Module.

Exposes Trac tickets and ticket types through the XML-RPC client.
"""

from tracrpc.trac.models import TracCategory, TracIssue
from tracrpc.trac.provider import TracIssueTracker, TracProviderError

__all__ = ["TracCategory", "TracIssue", "TracIssueTracker", "TracProviderError"]
