"""Read-only ticket statistics for the stats command."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import ResolvedOperator, TicketStats, TicketStatus
from .store import TicketStore


logger = logging.getLogger(__name__)


def collect_stats(
    store: TicketStore,
    operator: ResolvedOperator,
    tenant_id: str,
    hours_ago: int,
    now: Optional[datetime] = None,
) -> TicketStats:
    """
    Aggregate the operator's recent activity and the tenant's ticket counts.

    Args:
        store: Ticket store to read from.
        operator: Operator whose answered messages are counted.
        tenant_id: Tenant whose open and closed tickets are counted.
        hours_ago: Size of the window in hours.
        now: Reference time, defaults to the current UTC time.

    Returns:
        TicketStats for the window.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=hours_ago)

    stats = TicketStats(
        hours_ago=hours_ago,
        answered=store.count_agent_messages(operator.id, since=cutoff),
        open_tickets=store.count_tickets(tenant_id, TicketStatus.OPEN),
        closed_tickets=store.count_tickets(tenant_id, TicketStatus.CLOSED, closed_after=cutoff),
    )
    logger.debug(f"Stats for {operator.id} over {hours_ago}h: {stats}")
    return stats
