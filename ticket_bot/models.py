"""
Data models for the Slack Ticket Bot.

Uses Pydantic for robust data validation and serialization.
Command and descriptor models are immutable; they are derived per request
and never persisted.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


# Assign never touches more than this many tickets, whatever was requested
MAX_ASSIGN_TICKETS = 5

# Stats window when the message names no period
DEFAULT_STATS_HOURS = 24

# Longest window a stats or close command may look back
MAX_LOOKBACK_DAYS = 3650


class InvalidActionDescriptor(Exception):
    """Confirmation payload could not be decoded or failed validation."""
    pass


class Intent(str, Enum):
    """Command intents, listed in classification priority order."""

    HELP = "help"
    ASSIGN = "assign"
    STATS = "stats"
    CLOSE = "close"
    REPLY = "reply"


class ActionKind(str, Enum):
    """Bulk actions that need an explicit confirmation."""

    CLOSE = "close"
    REPLY = "reply"


class TicketStatus(str, Enum):
    """Ticket lifecycle states known to the ticket store."""

    OPEN = "open"
    CLOSED = "closed"
    SPAM = "spam"


class IncomingMention(BaseModel):
    """
    A single inbound mention of the bot.

    Attributes:
        raw_text: Message text, still containing the ``<@U...>`` token
        user_id: Slack id of the user who wrote the message
        channel_id: Channel the mention was posted in
        thread_ts: Thread to answer in
        tenant_id: Mailbox the Slack workspace is connected to
    """

    raw_text: str = Field(default="", description="Raw mention text")
    user_id: str = Field(..., description="Calling user's Slack id")
    channel_id: str = Field(..., description="Originating channel")
    thread_ts: str = Field(..., description="Thread timestamp to reply in")
    tenant_id: str = Field(..., description="Tenant (mailbox) identifier")

    model_config = {"frozen": True}

    @classmethod
    def from_slack_event(cls, event: dict, tenant_id: str) -> "IncomingMention":
        """Build a mention from a Slack ``app_mention`` event payload."""
        return cls(
            raw_text=event.get("text") or "",
            user_id=event.get("user") or "",
            channel_id=event.get("channel") or "",
            thread_ts=event.get("thread_ts") or event.get("ts") or "",
            tenant_id=tenant_id,
        )


class RosterMember(BaseModel):
    """A support team member as listed in the roster."""

    id: str = Field(..., description="Internal user id")
    display_name: str = Field(default="", description="Name shown in replies")
    emails: list[str] = Field(default_factory=list)
    slack_ids: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("emails")
    @classmethod
    def normalize_emails(cls, v: list[str]) -> list[str]:
        """Store emails lowercased for comparison."""
        return [email.strip().lower() for email in v if email and email.strip()]

    def has_email(self, email: str) -> bool:
        """Check whether the member owns the email (case-insensitive)."""
        return email.strip().lower() in self.emails


class ResolvedOperator(BaseModel):
    """The internal user a command executes on behalf of."""

    id: str
    display_name: str = ""

    model_config = {"frozen": True}


class Ticket(BaseModel):
    """A ticket (conversation) row as returned by the ticket store."""

    id: int
    tenant_id: str
    slug: str
    subject: str = ""
    status: TicketStatus = TicketStatus.OPEN
    created_at: datetime
    email_from: str = ""
    email_from_name: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def requester(self) -> str:
        """Requester label for summaries."""
        return self.email_from_name or self.email_from or "Unknown"


class HelpParameters(BaseModel):
    """Help takes no parameters."""

    model_config = {"frozen": True}


class AssignParameters(BaseModel):
    """Parameters for assigning tickets to the operator."""

    requested_count: int = Field(default=1, ge=0)
    search_term: str = ""

    model_config = {"frozen": True}

    @property
    def count(self) -> int:
        """Number of tickets actually assigned, capped at MAX_ASSIGN_TICKETS."""
        return max(1, min(self.requested_count, MAX_ASSIGN_TICKETS))


class StatsParameters(BaseModel):
    """Parameters for the stats report."""

    hours_ago: int = Field(default=DEFAULT_STATS_HOURS, ge=0, le=MAX_LOOKBACK_DAYS * 24)

    model_config = {"frozen": True}


class CloseParameters(BaseModel):
    """
    Parameters for bulk close.

    ``days_ago`` is None when the message names no age; no date filter
    applies in that case.
    """

    search_term: str = ""
    days_ago: Optional[int] = Field(default=None, ge=0, le=MAX_LOOKBACK_DAYS)

    model_config = {"frozen": True}


class ReplyParameters(BaseModel):
    """Parameters for bulk reply. ``reply_message`` is mandatory at run time."""

    search_term: str = ""
    reply_message: Optional[str] = None

    model_config = {"frozen": True}


CommandParameters = Union[
    HelpParameters,
    AssignParameters,
    StatsParameters,
    CloseParameters,
    ReplyParameters,
]


class ParsedCommand(BaseModel):
    """Classification result together with the extracted parameters."""

    intent: Intent
    parameters: CommandParameters

    model_config = {"frozen": True}


class ActionDescriptor(BaseModel):
    """
    Pending destructive bulk operation.

    Serialized into the confirm button's ``value`` so no pending-operation
    record is kept server side. Ticket ids are deliberately absent: the match
    set is recomputed from these filters when the operator confirms.
    """

    version: Literal[1] = 1
    kind: ActionKind
    search_term: str = ""
    reply_message: Optional[str] = None
    days_threshold: Optional[int] = Field(default=None, ge=0, le=MAX_LOOKBACK_DAYS)
    tenant_id: str = Field(..., min_length=1)
    operator_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    thread_ts: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_kind_fields(self) -> "ActionDescriptor":
        """Reply needs a message; close carries none."""
        if self.kind == ActionKind.REPLY and not (self.reply_message or "").strip():
            raise ValueError("reply descriptor requires a reply_message")
        if self.kind == ActionKind.CLOSE and self.reply_message:
            raise ValueError("close descriptor must not carry a reply_message")
        return self

    def encode(self) -> str:
        """Serialize to the compact JSON string stored in the button value."""
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def decode(cls, value: Optional[str]) -> "ActionDescriptor":
        """
        Parse a button value back into a descriptor.

        Raises:
            InvalidActionDescriptor: If the value is missing, not JSON, or
                does not describe a valid action.
        """
        if not value:
            raise InvalidActionDescriptor("Confirmation payload is empty")
        try:
            return cls.model_validate_json(value)
        except ValidationError as e:
            raise InvalidActionDescriptor(f"Invalid confirmation payload: {e}") from e


class InteractionEvent(BaseModel):
    """A button click on one of the bot's messages."""

    action_id: str
    value: Optional[str] = None
    user_id: str
    response_url: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def from_slack_payload(cls, payload: dict) -> Optional["InteractionEvent"]:
        """
        Build an event from a Slack ``block_actions`` payload.

        Returns:
            The first action as an event, or None if the payload has none.
        """
        actions = payload.get("actions") or []
        if payload.get("type") != "block_actions" or not actions:
            return None
        action = actions[0]
        return cls(
            action_id=action.get("action_id") or "",
            value=action.get("value"),
            user_id=(payload.get("user") or {}).get("id") or "",
            response_url=payload.get("response_url"),
        )


class BatchResult(BaseModel):
    """Outcome of applying one bulk action to a match set."""

    kind: str
    succeeded: list[Ticket] = Field(default_factory=list)
    failed: list[Ticket] = Field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of tickets the batch attempted."""
        return len(self.succeeded) + len(self.failed)


class TicketStats(BaseModel):
    """Aggregates shown by the stats command."""

    hours_ago: int
    answered: int = 0
    open_tickets: int = 0
    closed_tickets: int = 0

    model_config = {"frozen": True}

    @property
    def time_period(self) -> str:
        """Human label for the window, in days when it divides evenly."""
        if self.hours_ago >= 24 and self.hours_ago % 24 == 0:
            days = self.hours_ago // 24
            return f"{days} day{'s' if days > 1 else ''}"
        return f"{self.hours_ago} hours"
