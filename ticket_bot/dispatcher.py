"""
Entry point for bot mentions.

Resolves who is asking, works out what they asked for and routes the
command. Every mention gets a reply: unexpected failures are logged and
answered with a generic apology in the originating thread.
"""

import logging
import re

from .executor import BulkActionExecutor, ChatResponder
from .extractors import CommandValidationError
from .intents import parse_command
from .messages import ACCESS_DENIED, GENERIC_ERROR, HELP_TEXT, help_blocks, stats_blocks
from .models import (
    AssignParameters,
    CloseParameters,
    IncomingMention,
    Intent,
    ReplyParameters,
    ResolvedOperator,
    StatsParameters,
)
from .roster import IdentityResolver
from .stats import collect_stats
from .store import TicketStore


logger = logging.getLogger(__name__)


_MENTION_TOKEN = re.compile(r"<@[A-Z0-9]+(?:\|[^>]*)?>")


def strip_mention(text: str) -> str:
    """Remove the bot reference token, e.g. "<@U123> give me tickets" -> "give me tickets"."""
    return _MENTION_TOKEN.sub("", text, count=1).strip()


class MentionDispatcher:
    """Handles bot mentions from start to reply."""

    def __init__(
        self,
        resolver: IdentityResolver,
        executor: BulkActionExecutor,
        store: TicketStore,
        responder: ChatResponder,
    ):
        self._resolver = resolver
        self._executor = executor
        self._store = store
        self._responder = responder

    def _reply(self, mention: IncomingMention, **content) -> None:
        self._responder.post_message(mention.channel_id, thread_ts=mention.thread_ts, **content)

    def handle_mention(self, mention: IncomingMention) -> None:
        """
        Handle one mention of the bot.

        Never raises: failures are logged and answered in the thread.
        """
        try:
            self._handle(mention)
        except CommandValidationError as e:
            logger.info(f"Rejected command from {mention.user_id}: {e}")
            self._reply_safely(mention, str(e))
        except Exception:
            logger.exception(f"Error handling mention in {mention.channel_id}")
            self._reply_safely(mention, GENERIC_ERROR)

    def _reply_safely(self, mention: IncomingMention, text: str) -> None:
        try:
            self._reply(mention, text=text)
        except Exception as e:
            logger.error(f"Error sending reply to {mention.channel_id}: {e}")

    def _handle(self, mention: IncomingMention) -> None:
        text = strip_mention(mention.raw_text)

        operator = self._resolver.resolve(mention.tenant_id, mention.user_id)
        if operator is None:
            logger.warning(f"Denied mention from unknown user {mention.user_id}")
            self._reply(mention, text=ACCESS_DENIED)
            return

        command = parse_command(text)
        logger.info(f"Handling {command.intent.value} request from {operator.id}")
        params = command.parameters

        if command.intent == Intent.ASSIGN and isinstance(params, AssignParameters):
            self._executor.assign(operator, mention, params)
        elif command.intent == Intent.STATS and isinstance(params, StatsParameters):
            self._send_stats(operator, mention, params)
        elif command.intent == Intent.CLOSE and isinstance(params, CloseParameters):
            self._executor.request_close(operator, mention, params)
        elif command.intent == Intent.REPLY and isinstance(params, ReplyParameters):
            self._executor.request_reply(operator, mention, params)
        else:
            self._reply(mention, text=HELP_TEXT, blocks=help_blocks())

    def _send_stats(
        self,
        operator: ResolvedOperator,
        mention: IncomingMention,
        params: StatsParameters,
    ) -> None:
        stats = collect_stats(self._store, operator, mention.tenant_id, params.hours_ago)
        self._reply(
            mention,
            text=f"Stats for the last {stats.time_period}",
            blocks=stats_blocks(stats),
        )
