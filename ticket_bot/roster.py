"""
Support roster and operator identity resolution.

The roster is a YAML document listing, per tenant, the support team
members allowed to run commands, together with their emails and linked
Slack accounts:

    tenants:
      - id: acme
        members:
          - id: user_1
            display_name: Jane Doe
            emails: [jane@acme.test]
            slack_ids: [U0123]
"""

import logging
from typing import Optional, Protocol

import httpx
import yaml

from .config import RosterConfig
from .models import ResolvedOperator, RosterMember


logger = logging.getLogger(__name__)


class RosterError(Exception):
    """Error when retrieving or parsing the support roster."""
    pass


class RosterSource(Protocol):
    """Anything that can list the support members of a tenant."""

    def members(self, tenant_id: str) -> list[RosterMember]: ...


class EmailLookup(Protocol):
    """Anything that can return the chat-profile email of a user."""

    def get_user_email(self, user_id: str) -> Optional[str]: ...


def parse_roster(content: str) -> dict[str, list[RosterMember]]:
    """
    Parse roster YAML into members keyed by tenant id.

    Malformed member entries are skipped with a warning.

    Raises:
        RosterError: If the document is not valid YAML.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise RosterError(f"Invalid YAML: {str(e)}") from e

    if not isinstance(data, dict):
        logger.warning("Empty or malformed roster received, using empty roster")
        return {}

    roster: dict[str, list[RosterMember]] = {}
    for tenant_data in data.get("tenants") or []:
        if not isinstance(tenant_data, dict) or not tenant_data.get("id"):
            logger.warning(f"Skipping tenant entry without id: {tenant_data!r}")
            continue

        tenant_id = str(tenant_data["id"])
        members = roster.setdefault(tenant_id, [])
        for member_data in tenant_data.get("members") or []:
            try:
                members.append(RosterMember(
                    id=str(member_data["id"]),
                    display_name=str(member_data.get("display_name") or ""),
                    emails=[str(e) for e in member_data.get("emails") or []],
                    slack_ids=[str(s) for s in member_data.get("slack_ids") or []],
                ))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed roster member in {tenant_id}: {e}")

    logger.debug(f"Parsed roster for {len(roster)} tenants")
    return roster


class RosterClient:
    """
    Client for the support roster document.

    The roster is fetched on every lookup; no state is kept between
    requests. Must be used as a context manager.
    """

    def __init__(self, config: RosterConfig):
        """
        Initialize the roster client.

        Args:
            config: Roster configuration with the document URL.
        """
        self._config = config
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "RosterClient":
        """Context manager entry."""
        self._client = httpx.Client(timeout=self._config.request_timeout)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        if self._client:
            self._client.close()
            self._client = None

    def members(self, tenant_id: str) -> list[RosterMember]:
        """
        List the support members of a tenant.

        Raises:
            RosterError: If fetching or parsing fails.
        """
        if not self._client:
            raise RuntimeError("Client must be used within a context manager")

        try:
            response = self._client.get(self._config.roster_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error fetching roster: {e}")
            raise RosterError(f"HTTP error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Request error fetching roster: {e}")
            raise RosterError(f"Request failed: {str(e)}") from e

        return parse_roster(response.text).get(tenant_id, [])


class IdentityResolver:
    """Maps a Slack user to the support operator a command runs as."""

    def __init__(self, roster: RosterSource, email_lookup: EmailLookup):
        self._roster = roster
        self._email_lookup = email_lookup

    def resolve(self, tenant_id: str, slack_user_id: str) -> Optional[ResolvedOperator]:
        """
        Resolve a Slack user against the tenant roster.

        A linked Slack account wins; otherwise the Slack profile email is
        matched against member emails.

        Returns:
            The operator, or None if the user is not on the roster.
        """
        if not slack_user_id:
            return None

        members = self._roster.members(tenant_id)

        for member in members:
            if slack_user_id in member.slack_ids:
                logger.debug(f"Resolved {slack_user_id} by linked account: {member.id}")
                return ResolvedOperator(id=member.id, display_name=member.display_name)

        try:
            email = self._email_lookup.get_user_email(slack_user_id)
        except Exception as e:
            logger.warning(f"Could not read Slack profile of {slack_user_id}: {e}")
            return None

        if not email:
            logger.info(f"No email on Slack profile of {slack_user_id}")
            return None

        for member in members:
            if member.has_email(email):
                logger.debug(f"Resolved {slack_user_id} by email: {member.id}")
                return ResolvedOperator(id=member.id, display_name=member.display_name)

        logger.info(f"Slack user {slack_user_id} is not on the roster of {tenant_id}")
        return None
