"""
Wiring for the Slack Ticket Bot.

Builds the HTTP clients and handlers from configuration and exposes the two
entry points a web layer calls after verifying Slack's request signature:
one for ``app_mention`` events and one for ``block_actions`` payloads.
"""

import logging
import sys
from contextlib import ExitStack
from typing import Optional

from .config import AppConfig, get_config
from .dispatcher import MentionDispatcher
from .executor import BulkActionExecutor
from .interactions import ConfirmationHandler
from .matching import TicketMatcher
from .models import IncomingMention, InteractionEvent
from .roster import IdentityResolver, RosterClient
from .search import TicketSearchClient
from .slack_client import SlackClient
from .store import TicketStore


def setup_logging(level: str) -> None:
    """
    Configure application logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Configuration is incomplete."""
    pass


class TicketBot:
    """
    Long-lived bot instance owning the HTTP clients.

    Use as a context manager, or call close() when done.
    """

    def __init__(self, config: AppConfig, store: TicketStore):
        errors = config.validate()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ConfigurationError(
                f"Configuration validation failed with {len(errors)} error(s)"
            )

        self._stack = ExitStack()
        self.slack = self._stack.enter_context(SlackClient(config.slack))
        self.search = self._stack.enter_context(TicketSearchClient(config.search))
        self.roster = self._stack.enter_context(RosterClient(config.roster))

        resolver = IdentityResolver(self.roster, self.slack)
        executor = BulkActionExecutor(
            store=store,
            matcher=TicketMatcher(store, self.search),
            responder=self.slack,
            app_url=config.app_url,
        )
        self.dispatcher = MentionDispatcher(resolver, executor, store, self.slack)
        self.confirmations = ConfirmationHandler(resolver, executor, self.slack, slack=self.slack)

        logger.info("Ticket bot ready")

    def __enter__(self) -> "TicketBot":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP clients."""
        self._stack.close()

    def handle_event(self, event: dict, tenant_id: str) -> None:
        """Handle a Slack ``app_mention`` event for a tenant."""
        if event.get("type") != "app_mention":
            logger.debug(f"Ignoring event type {event.get('type')}")
            return
        self.dispatcher.handle_mention(IncomingMention.from_slack_event(event, tenant_id))

    def handle_interaction(self, payload: dict) -> None:
        """Handle a Slack ``block_actions`` payload."""
        event = InteractionEvent.from_slack_payload(payload)
        if event is None:
            logger.debug("Ignoring interaction without block actions")
            return
        self.confirmations.handle_interaction(event)


def build_bot(store: TicketStore, config: Optional[AppConfig] = None) -> TicketBot:
    """
    Build a bot from environment configuration.

    Args:
        store: Ticket store implementation.
        config: Optional configuration override.

    Returns:
        A ready TicketBot.

    Raises:
        ConfigurationError: If required settings are missing.
    """
    if config is None:
        config = get_config()

    setup_logging(config.log_level)
    return TicketBot(config, store)
