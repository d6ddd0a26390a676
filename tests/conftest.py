"""Shared fixtures: in-memory ticket store, search gateway and roster."""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import Mock

import pytest

from ticket_bot.executor import BulkActionExecutor
from ticket_bot.matching import TicketMatcher
from ticket_bot.models import IncomingMention, RosterMember, Ticket, TicketStatus
from ticket_bot.roster import IdentityResolver
from ticket_bot.store import StoreError, TicketQuery


TENANT = "acme"
APP_URL = "https://helper.test"


class FakeTransaction:
    """Buffers writes and applies them to the store on commit."""

    def __init__(self, store: "FakeTicketStore"):
        self._store = store
        self._writes: list[tuple] = []

    def update_ticket(self, ticket_id, *, by_user_id, message, assigned_to=None, status=None):
        if ticket_id in self._store.failing_ids:
            raise StoreError(f"ticket {ticket_id} is locked")
        self._writes.append(("update", ticket_id, by_user_id, message, assigned_to, status))

    def create_reply(self, ticket_id, *, by_user_id, message):
        if ticket_id in self._store.failing_ids:
            raise StoreError(f"ticket {ticket_id} is locked")
        self._writes.append(("reply", ticket_id, by_user_id, message))

    def commit(self):
        for write in self._writes:
            if write[0] == "reply":
                _, ticket_id, by_user_id, message = write
                self._store.replies.append((ticket_id, by_user_id, message))
                continue

            _, ticket_id, by_user_id, message, assigned_to, status = write
            if assigned_to is not None:
                self._store.assignments[ticket_id] = assigned_to
            if status is not None:
                ticket = self._store.tickets[ticket_id]
                self._store.tickets[ticket_id] = ticket.model_copy(update={"status": status})
                self._store.closed_at[ticket_id] = datetime.now(timezone.utc)
            self._store.audit.append((ticket_id, by_user_id, message))


class FakeTicketStore:
    """In-memory TicketStore with per-ticket failure injection."""

    def __init__(self, tickets: Optional[list[Ticket]] = None):
        self.tickets = {t.id: t for t in tickets or []}
        self.assignments: dict[int, str] = {}
        self.replies: list[tuple] = []
        self.audit: list[tuple] = []
        self.closed_at: dict[int, datetime] = {}
        self.agent_messages: list[tuple[str, datetime]] = []
        self.failing_ids: set[int] = set()
        self.queries: list[TicketQuery] = []

    def add(self, *tickets: Ticket) -> None:
        for ticket in tickets:
            self.tickets[ticket.id] = ticket

    def find_tickets(self, query: TicketQuery) -> list[Ticket]:
        self.queries.append(query)
        rows = [
            t for t in self.tickets.values()
            if t.tenant_id == query.tenant_id and t.status == query.status
        ]
        if query.created_before is not None:
            rows = [t for t in rows if t.created_at < query.created_before]
        if query.ticket_ids is not None:
            rows = [t for t in rows if t.id in query.ticket_ids]
        rows.sort(key=lambda t: t.created_at, reverse=True)
        if query.limit:
            rows = rows[:query.limit]
        return rows

    @contextmanager
    def transaction(self):
        tx = FakeTransaction(self)
        yield tx
        tx.commit()

    def count_agent_messages(self, user_id: str, since: datetime) -> int:
        return sum(1 for uid, at in self.agent_messages if uid == user_id and at > since)

    def count_tickets(self, tenant_id, status, closed_after=None) -> int:
        rows = [t for t in self.tickets.values() if t.tenant_id == tenant_id and t.status == status]
        if closed_after is not None:
            rows = [t for t in rows if self.closed_at.get(t.id, datetime.min.replace(tzinfo=timezone.utc)) > closed_after]
        return len(rows)

    @property
    def mutation_count(self) -> int:
        return len(self.audit) + len(self.replies)


class FakeSearch:
    """Keyword search answering from a fixed keyword -> ids table."""

    def __init__(self, index: Optional[dict[str, list[int]]] = None):
        self.index = index or {}
        self.calls: list[tuple[str, str]] = []

    def search(self, tenant_id: str, keywords: str) -> list[int]:
        self.calls.append((tenant_id, keywords))
        return list(self.index.get(keywords, []))


class FakeRoster:
    def __init__(self, members: dict[str, list[RosterMember]]):
        self._members = members

    def members(self, tenant_id: str) -> list[RosterMember]:
        return list(self._members.get(tenant_id, []))


@pytest.fixture
def make_ticket():
    """Factory for open tickets; higher ``age_days`` means older."""
    now = datetime.now(timezone.utc)

    def _make(ticket_id: int, age_days: float = 1, tenant_id: str = TENANT,
              status: TicketStatus = TicketStatus.OPEN, subject: str = "") -> Ticket:
        return Ticket(
            id=ticket_id,
            tenant_id=tenant_id,
            slug=f"slug-{ticket_id}",
            subject=subject or f"Ticket {ticket_id}",
            status=status,
            created_at=now - timedelta(days=age_days),
            email_from=f"customer{ticket_id}@example.com",
        )

    return _make


@pytest.fixture
def store() -> FakeTicketStore:
    return FakeTicketStore()


@pytest.fixture
def search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def responder() -> Mock:
    """Chat responder recording every posted message."""
    return Mock()


@pytest.fixture
def operator_member() -> RosterMember:
    return RosterMember(
        id="user_1",
        display_name="Jane Doe",
        emails=["Jane@Acme.test"],
        slack_ids=["ULINKED"],
    )


@pytest.fixture
def email_lookup() -> Mock:
    lookup = Mock()
    lookup.get_user_email.return_value = None
    return lookup


@pytest.fixture
def resolver(operator_member: RosterMember, email_lookup: Mock) -> IdentityResolver:
    roster = FakeRoster({
        TENANT: [
            operator_member,
            RosterMember(id="user_2", display_name="Sam Roe", emails=["sam@acme.test"]),
        ],
    })
    return IdentityResolver(roster, email_lookup)


@pytest.fixture
def executor(store: FakeTicketStore, search: FakeSearch, responder: Mock) -> BulkActionExecutor:
    return BulkActionExecutor(
        store=store,
        matcher=TicketMatcher(store, search),
        responder=responder,
        app_url=APP_URL,
    )


@pytest.fixture
def mention_factory():
    def _make(text: str, user_id: str = "ULINKED") -> IncomingMention:
        return IncomingMention(
            raw_text=f"<@UBOT123> {text}",
            user_id=user_id,
            channel_id="C100",
            thread_ts="1700000000.000100",
            tenant_id=TENANT,
        )

    return _make
