"""
Ticket search gateway.

Ticket content is stored encrypted, so keyword matching cannot run against
the ticket store. Keyword queries go to the full-text search service, which
answers with ticket identifiers only.
"""

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from .config import SearchConfig


logger = logging.getLogger(__name__)


class SearchError(Exception):
    """Error when querying the search service."""
    pass


def _parse_ticket_ids(data: Any) -> list[int]:
    """
    Pull ticket ids out of a search response.

    Accepts ``{"ticket_ids": [...]}`` as well as
    ``{"matches": [{"conversation_id": ...}, ...]}``. Duplicates are dropped
    while keeping the service's ranking order.
    """
    if not isinstance(data, dict):
        raise SearchError("Search response is not an object")

    raw_ids: list[Any]
    if "ticket_ids" in data:
        raw_ids = list(data.get("ticket_ids") or [])
    else:
        raw_ids = [
            match.get("conversation_id")
            for match in data.get("matches") or []
            if isinstance(match, dict)
        ]

    ids: list[int] = []
    seen: set[int] = set()
    for raw in raw_ids:
        try:
            ticket_id = int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Skipping malformed ticket id in search response: {raw!r}")
            continue
        if ticket_id not in seen:
            seen.add(ticket_id)
            ids.append(ticket_id)
    return ids


class TicketSearchClient:
    """
    Client for the encrypted-content search service.

    Must be used as a context manager.
    """

    def __init__(self, config: SearchConfig):
        """
        Initialize the search client.

        Args:
            config: Search configuration with endpoint and API key.
        """
        self._config = config
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "TicketSearchClient":
        """Context manager entry."""
        self._client = httpx.Client(timeout=self._config.request_timeout)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        if self._client:
            self._client.close()
            self._client = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"Retrying search after error: {retry_state.outcome.exception()}"
        ),
    )
    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        response = self._client.post(
            self._config.api_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self._config.api_key}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        return response

    def search(self, tenant_id: str, keywords: str) -> list[int]:
        """
        Find tickets whose content matches the keywords.

        Args:
            tenant_id: Tenant whose index is searched.
            keywords: Free-text keywords from the operator.

        Returns:
            Ticket ids in ranking order; empty if nothing matched.

        Raises:
            SearchError: If the search service fails.
        """
        if not self._client:
            raise RuntimeError("Client must be used within a context manager")

        logger.info(f"Searching tenant {tenant_id} for {keywords!r}")

        try:
            response = self._post({"tenant_id": tenant_id, "query": keywords})
            ticket_ids = _parse_ticket_ids(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error from search service: {e}")
            raise SearchError(f"HTTP error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Request error from search service: {e}")
            raise SearchError(f"Request failed: {str(e)}") from e
        except ValueError as e:
            logger.error(f"Invalid search response: {e}")
            raise SearchError(f"Invalid response: {str(e)}") from e

        logger.info(f"Search matched {len(ticket_ids)} tickets")
        return ticket_ids
