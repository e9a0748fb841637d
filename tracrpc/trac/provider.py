"""
Trac Issue Tracker.

Maps Trac tickets and ticket types to TracIssue / TracCategory objects
using the tracxmlrpc plugin API:
- ticket.query / ticket.get for the issues of a release.
- ticket.type.getAll for categories.
- ticket.update to append to descriptions and to resolve tickets.
- system.getAPIVersion to validate the connection.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from loguru import logger

from tracrpc.trac.models import TracCategory, TracIssue
from tracrpc.xmlrpc import RpcClient, RpcKind, RpcValue, UsageError


class TracProviderError(Exception):
    """Raised when a Trac operation fails or is not supported."""


class TracIssueTracker:
    """
    Issue tracker backed by a Trac project (0.11 and later, with the
    tracxmlrpc plugin installed).

    Usage::

        client = RpcClient(base_url="http://tracserv/trac/Project")
        tracker = TracIssueTracker(client, "http://tracserv/trac/Project")
        for issue in tracker.get_issues("1.2"):
            print(issue.issue_id, issue.status, issue.title)
    """

    CATEGORY_TYPE_NAMES = ["Ticket Type"]
    CLOSED_STATUS = "closed"

    can_append_issue_descriptions = True
    can_change_issue_statuses = False
    can_close_issues = True

    def __init__(
        self,
        client: RpcClient,
        base_url: str,
        uses_milestones: bool = False,
        sub_project: str = "",
        category_filter: Optional[str] = None,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            client: XML-RPC client for the project.
            base_url: Project URL, used to build ticket links.
            uses_milestones: Match release numbers against milestones
                ("<sub_project> <release>") instead of versions.
            sub_project: Sub-project name in a multi-project Trac environment.
            category_filter: Only return tickets of this type.
        """
        self._client = client
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.uses_milestones = uses_milestones
        self.sub_project = sub_project or ""
        self.category_filter = category_filter

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TracIssueTracker":
        """Create a tracker and its client from a connection config mapping."""
        return cls(
            RpcClient.from_config(config),
            config["base_url"],
            uses_milestones=bool(config.get("uses_milestones", False)),
            sub_project=config.get("sub_project") or "",
            category_filter=config.get("category_filter"),
        )

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def get_issue_url(self, issue: TracIssue) -> str:
        if issue is None:
            raise UsageError("issue is required")
        return f"{self._base_url}ticket/{issue.issue_id}"

    def get_issues(self, release_number: str) -> List[TracIssue]:
        """
        Return the tickets of a release.

        Args:
            release_number: Release number (Trac version or milestone).

        Returns:
            Issues matching the release and the category filter.
        """
        queries = []
        filter_query = self._issue_filter_query(release_number)
        if filter_query:
            queries.append(filter_query)
        if self.category_filter:
            queries.append(f"type={self.category_filter}")
        queries.append("max=0")
        query = "&".join(queries)

        logger.info(f"Querying Trac tickets: {query}")
        ids = self._expect(self._client.invoke("ticket.query", query), "ticket.query")

        issues = []
        for id_value in ids.as_list():
            ticket_id = id_value.as_int()
            attributes = self._get_ticket_attributes(ticket_id)
            issues.append(
                TracIssue(
                    issue_id=str(ticket_id),
                    status=_get_string(attributes, "status"),
                    title=_get_string(attributes, "summary"),
                    description=_get_string(attributes, "description"),
                    release=release_number,
                )
            )

        logger.info(f"Fetched {len(issues)} tickets for release {release_number}")
        return issues

    def is_issue_closed(self, issue: TracIssue) -> bool:
        if issue is None:
            raise UsageError("issue is required")
        return issue.status.casefold() == self.CLOSED_STATUS

    def append_issue_description(self, issue_id: str, text_to_append: str) -> None:
        """
        Append text to a ticket's description.

        Args:
            issue_id: Ticket number.
            text_to_append: Text to append; nothing happens when empty.

        Raises:
            UsageError: If issue_id is empty or not a number.
            TracProviderError: If Trac does not confirm the update.
        """
        ticket_id = _parse_issue_id(issue_id)
        if not text_to_append:
            return

        attributes = self._get_ticket_attributes(ticket_id)
        description = _get_string(attributes, "description") + text_to_append

        result = self._client.invoke(
            "ticket.update",
            RpcValue.integer(ticket_id),
            RpcValue.string(""),
            RpcValue.struct({"description": RpcValue.string(description)}),
        )
        if result is None:
            raise TracProviderError(f"Trac did not confirm the update of ticket {ticket_id}")
        logger.info(f"Appended {len(text_to_append)} characters to ticket {ticket_id}")

    def change_issue_status(self, issue_id: str, new_status: str) -> None:
        raise TracProviderError("Changing ticket statuses is not supported by Trac")

    def close_issue(self, issue_id: str) -> None:
        """Resolve a ticket."""
        ticket_id = _parse_issue_id(issue_id)
        self._client.invoke(
            "ticket.update",
            RpcValue.integer(ticket_id),
            RpcValue.string(""),
            RpcValue.struct({"action": RpcValue.string("resolve")}),
        )
        logger.info(f"Resolved ticket {ticket_id}")

    # ------------------------------------------------------------------
    # Categories and connection
    # ------------------------------------------------------------------

    def get_categories(self) -> List[TracCategory]:
        names = self._expect(self._client.invoke("ticket.type.getAll"), "ticket.type.getAll")
        return [TracCategory(str(name)) for name in names.as_list()]

    def validate_connection(self) -> None:
        """
        Check that the XML-RPC API answers.

        Raises:
            TracProviderError: If the API version is missing or empty.
        """
        version = self._client.invoke("system.getAPIVersion")
        if version is None or version.kind is not RpcKind.ARRAY or not version.as_list():
            raise TracProviderError("Trac XML-RPC API is not available")
        logger.info(f"Trac XML-RPC API version: {version.to_python()}")

    def __str__(self) -> str:
        return "Connects to the Trac ticketing system."

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_filter_query(self, release_number: str) -> str:
        if not release_number or not release_number.strip():
            return ""
        if not self.uses_milestones:
            return f"version={release_number}"
        if self.sub_project.strip():
            return f"milestone={self.sub_project} {release_number}"
        return ""

    def _get_ticket_attributes(self, ticket_id: int) -> RpcValue:
        # ticket.get returns [id, time_created, time_changed, attributes]
        ticket = self._expect(
            self._client.invoke("ticket.get", RpcValue.integer(ticket_id)), "ticket.get"
        ).as_list()
        if len(ticket) < 4:
            raise TracProviderError(f"Unexpected ticket.get reply for ticket {ticket_id}")
        return ticket[3]

    @staticmethod
    def _expect(result: Optional[RpcValue], method_name: str) -> RpcValue:
        if result is None:
            raise TracProviderError(f"{method_name} returned no result")
        return result


def _get_string(attributes: RpcValue, key: str) -> str:
    """Struct member as text, or an empty string when missing or nil."""
    value = attributes.get(key)
    if value is None:
        return ""
    return str(value)


def _parse_issue_id(issue_id: str) -> int:
    if not issue_id:
        raise UsageError("issue_id is required")
    try:
        return int(issue_id)
    except ValueError as e:
        raise UsageError(f"Invalid ticket number: {issue_id!r}") from e
