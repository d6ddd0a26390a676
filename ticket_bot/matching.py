"""
Builds ticket match sets from operator filters.

Keyword filters go through the search gateway first; the ids it returns
are then narrowed by the scope filters (tenant, open status, age, limit)
against the ticket store.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from .models import Ticket, TicketStatus
from .store import TicketQuery, TicketStore


logger = logging.getLogger(__name__)


class SearchGateway(Protocol):
    """Keyword search returning ticket ids only."""

    def search(self, tenant_id: str, keywords: str) -> list[int]: ...


def build_query(
    tenant_id: str,
    ticket_ids: Optional[list[int]] = None,
    older_than_days: Optional[int] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> TicketQuery:
    """
    Compose the scope filters for open tickets of a tenant.

    Args:
        tenant_id: Tenant to read from.
        ticket_ids: Optional id restriction from a keyword search.
        older_than_days: Only tickets created before now minus this many days.
        limit: Maximum number of tickets.
        now: Reference time, defaults to the current UTC time.
    """
    created_before = None
    if older_than_days is not None:
        now = now or datetime.now(timezone.utc)
        created_before = now - timedelta(days=older_than_days)

    return TicketQuery(
        tenant_id=tenant_id,
        status=TicketStatus.OPEN,
        created_before=created_before,
        ticket_ids=ticket_ids,
        limit=limit,
    )


class TicketMatcher:
    """Resolves operator filters to the current set of matching tickets."""

    def __init__(self, store: TicketStore, search: SearchGateway):
        self._store = store
        self._search = search

    def find(
        self,
        tenant_id: str,
        search_term: str = "",
        older_than_days: Optional[int] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[Ticket]:
        """
        Find open tickets matching the filters, most recent first.

        When a search term is given and the search finds nothing, the result
        is empty; the store is never queried without the keyword restriction.
        """
        ticket_ids = None
        if search_term:
            ticket_ids = self._search.search(tenant_id, search_term)
            if not ticket_ids:
                logger.info(f"No search matches for {search_term!r} in {tenant_id}")
                return []

        query = build_query(
            tenant_id,
            ticket_ids=ticket_ids,
            older_than_days=older_than_days,
            limit=limit,
            now=now,
        )
        tickets = self._store.find_tickets(query)
        logger.info(f"Matched {len(tickets)} open tickets in {tenant_id}")
        return tickets
