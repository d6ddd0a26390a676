"""
Ticket store interfaces.

The ticket store (database schema, ORM, CRUD) lives outside this package.
These protocols describe what the bot needs from it: filtered reads,
per-ticket transactions that record an audit entry with every change, and
the counters behind the stats command.
"""

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from .models import Ticket, TicketStatus


class StoreError(Exception):
    """Error raised by a ticket store implementation."""
    pass


class TicketQuery(BaseModel):
    """
    Scope filters for reading tickets.

    Results are ordered most recent first.
    """

    tenant_id: str
    status: TicketStatus = TicketStatus.OPEN
    created_before: Optional[datetime] = None
    ticket_ids: Optional[list[int]] = Field(
        default=None,
        description="Restrict to these ids; None means no id restriction",
    )
    limit: Optional[int] = Field(default=None, ge=1)

    model_config = {"frozen": True}


@runtime_checkable
class TicketTransaction(Protocol):
    """Writes performed inside a single-ticket transaction."""

    def update_ticket(
        self,
        ticket_id: int,
        *,
        by_user_id: str,
        message: str,
        assigned_to: Optional[str] = None,
        status: Optional[TicketStatus] = None,
    ) -> None: ...

    def create_reply(self, ticket_id: int, *, by_user_id: str, message: str) -> None: ...


@runtime_checkable
class TicketStore(Protocol):
    """Interface the bot uses to read and mutate tickets."""

    def find_tickets(self, query: TicketQuery) -> list[Ticket]: ...

    def transaction(self) -> AbstractContextManager[TicketTransaction]: ...

    def count_agent_messages(self, user_id: str, since: datetime) -> int: ...

    def count_tickets(
        self,
        tenant_id: str,
        status: TicketStatus,
        closed_after: Optional[datetime] = None,
    ) -> int: ...
