"""Domain objects returned by the Trac issue tracker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TracIssue:
    """
    A Trac ticket.

    Attributes:
        issue_id: Ticket number, as text.
        status: Trac status (e.g. "new", "closed").
        title: Ticket summary.
        description: Ticket description.
        release: Release number the ticket was queried for.
    """

    issue_id: str
    status: str = ""
    title: str = ""
    description: str = ""
    release: Optional[str] = None


@dataclass(frozen=True)
class TracCategory:
    """A Trac ticket type. Ticket types have no separate id, the name is used."""

    name: str

    @property
    def category_id(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.name
