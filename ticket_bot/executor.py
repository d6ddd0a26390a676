"""
Bulk action executor for the Slack Ticket Bot.

Assign runs immediately. Close and reply first post a confirmation prompt
whose confirm button carries an encoded ActionDescriptor; the mutation only
happens when that descriptor comes back through a confirm click.

Every ticket is changed in its own transaction, one after another, so a
failing ticket is skipped without rolling back the ones already done.
"""

import logging
from typing import Any, Callable, Optional, Protocol

from .extractors import CommandValidationError, require_reply_message
from .matching import TicketMatcher
from .messages import (
    assign_summary_blocks,
    batch_summary_text,
    close_prompt_blocks,
    no_tickets_text,
    reply_prompt_blocks,
)
from .models import (
    ActionDescriptor,
    ActionKind,
    AssignParameters,
    BatchResult,
    CloseParameters,
    IncomingMention,
    ReplyParameters,
    ResolvedOperator,
    Ticket,
    TicketStatus,
)
from .store import TicketStore, TicketTransaction


logger = logging.getLogger(__name__)


# Slack rejects button values longer than this
MAX_BUTTON_VALUE_LENGTH = 2000

ASSIGN_AUDIT_MESSAGE = "Assigned via Slack mention"
CLOSE_AUDIT_MESSAGE = "Closed via Slack bulk action"


class ChatResponder(Protocol):
    """Posts messages to a channel or thread."""

    def post_message(
        self,
        channel: str,
        text: Optional[str] = None,
        blocks: Optional[list[dict[str, Any]]] = None,
        thread_ts: Optional[str] = None,
    ) -> Any: ...


Mutation = Callable[[TicketTransaction, Ticket], None]


class BulkActionExecutor:
    """Applies bulk ticket actions on behalf of an operator."""

    def __init__(
        self,
        store: TicketStore,
        matcher: TicketMatcher,
        responder: ChatResponder,
        app_url: str,
    ):
        """
        Initialize the executor.

        Args:
            store: Ticket store providing per-ticket transactions.
            matcher: Resolves filters to the current match set.
            responder: Chat responder used for prompts and summaries.
            app_url: Base URL for ticket deep links.
        """
        self._store = store
        self._matcher = matcher
        self._responder = responder
        self._app_url = app_url

    def _run_batch(self, kind: str, tickets: list[Ticket], mutate: Mutation) -> BatchResult:
        """Apply a mutation to each ticket in its own transaction."""
        result = BatchResult(kind=kind)
        total = len(tickets)

        logger.info(f"Starting {kind} batch of {total} tickets")

        for i, ticket in enumerate(tickets, 1):
            try:
                with self._store.transaction() as tx:
                    mutate(tx, ticket)
                result.succeeded.append(ticket)
            except Exception as e:
                logger.error(f"Failed to {kind} ticket {ticket.id} ({i}/{total}): {e}")
                result.failed.append(ticket)

        logger.info(
            f"{kind.capitalize()} batch complete: {len(result.succeeded)} succeeded, "
            f"{len(result.failed)} failed"
        )
        return result

    def _post_summary(self, channel: str, thread_ts: str, **content: Any) -> None:
        # Mutations are already committed; a lost summary is not compensated
        try:
            self._responder.post_message(channel, thread_ts=thread_ts, **content)
        except Exception as e:
            logger.error(f"Failed to post batch summary to {channel}: {e}")

    def assign(
        self,
        operator: ResolvedOperator,
        mention: IncomingMention,
        params: AssignParameters,
    ) -> Optional[BatchResult]:
        """
        Assign up to ``params.count`` matching tickets to the operator.

        Returns:
            The batch result, or None if nothing matched.
        """
        tickets = self._matcher.find(
            mention.tenant_id,
            search_term=params.search_term,
            limit=params.count,
        )

        if not tickets:
            self._responder.post_message(
                mention.channel_id,
                text=no_tickets_text("assign", params.search_term),
                thread_ts=mention.thread_ts,
            )
            return None

        def mutate(tx: TicketTransaction, ticket: Ticket) -> None:
            tx.update_ticket(
                ticket.id,
                by_user_id=operator.id,
                message=ASSIGN_AUDIT_MESSAGE,
                assigned_to=operator.id,
            )

        result = self._run_batch("assign", tickets[:params.count], mutate)
        self._post_summary(
            mention.channel_id,
            mention.thread_ts,
            text=f"{len(result.succeeded)} tickets assigned to you",
            blocks=assign_summary_blocks(result, self._app_url),
        )
        return result

    def _prompt(
        self,
        descriptor: ActionDescriptor,
        blocks_for: Callable[[int, ActionDescriptor], list[dict[str, Any]]],
    ) -> Optional[ActionDescriptor]:
        value = descriptor.encode()
        if len(value) > MAX_BUTTON_VALUE_LENGTH:
            raise CommandValidationError(
                "That message is too long to confirm from Slack. Please shorten it and try again."
            )

        tickets = self._matcher.find(
            descriptor.tenant_id,
            search_term=descriptor.search_term,
            older_than_days=descriptor.days_threshold,
        )

        if not tickets:
            self._responder.post_message(
                descriptor.channel_id,
                text=no_tickets_text(descriptor.kind.value),
                thread_ts=descriptor.thread_ts,
            )
            return None

        logger.info(
            f"Awaiting confirmation to {descriptor.kind.value} {len(tickets)} tickets "
            f"for {descriptor.operator_id}"
        )
        self._responder.post_message(
            descriptor.channel_id,
            text=f"Confirm bulk {descriptor.kind.value} of {len(tickets)} tickets",
            blocks=blocks_for(len(tickets), descriptor),
            thread_ts=descriptor.thread_ts,
        )
        return descriptor

    def request_close(
        self,
        operator: ResolvedOperator,
        mention: IncomingMention,
        params: CloseParameters,
    ) -> Optional[ActionDescriptor]:
        """
        Post a close confirmation prompt. Nothing is changed.

        Returns:
            The descriptor carried by the confirm button, or None if no
            ticket matched.
        """
        descriptor = ActionDescriptor(
            kind=ActionKind.CLOSE,
            search_term=params.search_term,
            days_threshold=params.days_ago,
            tenant_id=mention.tenant_id,
            operator_id=operator.id,
            channel_id=mention.channel_id,
            thread_ts=mention.thread_ts,
        )
        return self._prompt(descriptor, close_prompt_blocks)

    def request_reply(
        self,
        operator: ResolvedOperator,
        mention: IncomingMention,
        params: ReplyParameters,
    ) -> Optional[ActionDescriptor]:
        """
        Post a reply confirmation prompt. Nothing is changed.

        Raises:
            CommandValidationError: If the command has no message body.
        """
        reply_message = require_reply_message(params)
        descriptor = ActionDescriptor(
            kind=ActionKind.REPLY,
            search_term=params.search_term,
            reply_message=reply_message,
            tenant_id=mention.tenant_id,
            operator_id=operator.id,
            channel_id=mention.channel_id,
            thread_ts=mention.thread_ts,
        )
        return self._prompt(descriptor, reply_prompt_blocks)

    def execute(self, descriptor: ActionDescriptor, operator: ResolvedOperator) -> Optional[BatchResult]:
        """
        Run a confirmed close or reply.

        The match set is recomputed from the descriptor filters; tickets that
        were matched when the prompt was shown are not reused.

        Returns:
            The batch result, or None if nothing matches any more.
        """
        tickets = self._matcher.find(
            descriptor.tenant_id,
            search_term=descriptor.search_term,
            older_than_days=descriptor.days_threshold,
        )

        if not tickets:
            self._responder.post_message(
                descriptor.channel_id,
                text=no_tickets_text(descriptor.kind.value),
                thread_ts=descriptor.thread_ts,
            )
            return None

        if descriptor.kind == ActionKind.CLOSE:
            def mutate(tx: TicketTransaction, ticket: Ticket) -> None:
                tx.update_ticket(
                    ticket.id,
                    by_user_id=operator.id,
                    message=CLOSE_AUDIT_MESSAGE,
                    status=TicketStatus.CLOSED,
                )
        else:
            def mutate(tx: TicketTransaction, ticket: Ticket) -> None:
                tx.create_reply(
                    ticket.id,
                    by_user_id=operator.id,
                    message=descriptor.reply_message,
                )

        result = self._run_batch(descriptor.kind.value, tickets, mutate)
        self._post_summary(
            descriptor.channel_id,
            descriptor.thread_ts,
            text=batch_summary_text(result),
        )
        return result
