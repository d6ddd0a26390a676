"""
Confirmation callbacks for bulk close and reply.

Both prompt buttons carry the whole pending action as an encoded
ActionDescriptor. On confirm the descriptor is decoded, the clicking user is
re-resolved and must still be the operator who asked, and only then is the
action handed to the executor, which recomputes the match set. Anyone else
gets an answer only they can see and the prompt stays in place.
"""

import logging
from typing import Optional

from .executor import BulkActionExecutor, ChatResponder
from .messages import (
    ACCESS_DENIED,
    CANCEL_ACTIONS,
    CONFIRM_ACTIONS,
    GENERIC_ERROR,
    INVALID_CONFIRMATION,
    OPERATION_CANCELLED,
    PROCESSING,
    WRONG_OPERATOR,
)
from .models import ActionDescriptor, InteractionEvent, InvalidActionDescriptor
from .roster import IdentityResolver
from .slack_client import SlackClient


logger = logging.getLogger(__name__)


class ConfirmationHandler:
    """Handles confirm and cancel clicks on bulk action prompts."""

    def __init__(
        self,
        resolver: IdentityResolver,
        executor: BulkActionExecutor,
        responder: ChatResponder,
        slack: Optional[SlackClient] = None,
    ):
        """
        Initialize the handler.

        Args:
            resolver: Re-resolves the clicking user.
            executor: Runs the confirmed action.
            responder: Posts results into the original thread.
            slack: Client for response URLs. Without it prompts stay in place
                and denials are posted to the prompt's thread.
        """
        self._resolver = resolver
        self._executor = executor
        self._responder = responder
        self._slack = slack

    def _respond(
        self,
        event: InteractionEvent,
        text: str,
        descriptor: Optional[ActionDescriptor] = None,
        replace_original: bool = True,
    ) -> None:
        """
        Answer a click through its response URL, if there is one.

        Answers that keep the prompt are shown only to the clicking user.
        Without a response URL the answer goes to the descriptor's thread
        when a descriptor is given.
        """
        if self._slack and event.response_url:
            try:
                self._slack.respond(
                    event.response_url,
                    text,
                    replace_original=replace_original,
                    ephemeral=not replace_original,
                )
            except Exception as e:
                logger.error(f"Error answering interaction {event.action_id}: {e}")
            return

        if descriptor is None:
            logger.debug(f"No response URL to answer {event.action_id}: {text}")
            return

        try:
            self._responder.post_message(
                descriptor.channel_id,
                text=text,
                thread_ts=descriptor.thread_ts,
            )
        except Exception as e:
            logger.error(f"Error answering interaction {event.action_id} in thread: {e}")

    def handle_interaction(self, event: InteractionEvent) -> None:
        """
        Handle one button click.

        Never raises: failures are logged and answered.
        """
        if event.action_id in CANCEL_ACTIONS:
            self._cancel(event)
            return

        kind = CONFIRM_ACTIONS.get(event.action_id)
        if kind is None:
            logger.debug(f"Ignoring unrelated action {event.action_id}")
            return

        try:
            descriptor = ActionDescriptor.decode(event.value)
        except InvalidActionDescriptor as e:
            logger.warning(f"Rejected confirmation from {event.user_id}: {e}")
            self._respond(event, INVALID_CONFIRMATION)
            return

        if descriptor.kind != kind:
            logger.warning(
                f"Action {event.action_id} does not match descriptor kind {descriptor.kind.value}"
            )
            self._respond(event, INVALID_CONFIRMATION, descriptor)
            return

        try:
            self._confirm(event, descriptor)
        except Exception:
            logger.exception(f"Error running confirmed {descriptor.kind.value}")
            self._respond(event, GENERIC_ERROR)
            try:
                self._responder.post_message(
                    descriptor.channel_id,
                    text=GENERIC_ERROR,
                    thread_ts=descriptor.thread_ts,
                )
            except Exception as e:
                logger.error(f"Error sending error message: {e}")

    def _cancel(self, event: InteractionEvent) -> None:
        """Drop the prompt; only its requester may cancel when it names one."""
        descriptor = None
        if event.value:
            try:
                descriptor = ActionDescriptor.decode(event.value)
            except InvalidActionDescriptor as e:
                logger.warning(f"Cancelling prompt with unreadable payload: {e}")

        if descriptor is not None:
            try:
                operator = self._resolver.resolve(descriptor.tenant_id, event.user_id)
            except Exception:
                logger.exception(f"Error resolving {event.user_id} for cancel")
                self._respond(event, GENERIC_ERROR, descriptor, replace_original=False)
                return

            if operator is None or operator.id != descriptor.operator_id:
                logger.warning(
                    f"{event.user_id} tried to cancel an action requested by {descriptor.operator_id}"
                )
                self._respond(event, WRONG_OPERATOR, descriptor, replace_original=False)
                return

        logger.info(f"{event.user_id} cancelled {event.action_id}")
        self._respond(event, OPERATION_CANCELLED)

    def _confirm(self, event: InteractionEvent, descriptor: ActionDescriptor) -> None:
        operator = self._resolver.resolve(descriptor.tenant_id, event.user_id)
        if operator is None:
            logger.warning(f"Denied confirmation from unknown user {event.user_id}")
            self._respond(event, ACCESS_DENIED, descriptor, replace_original=False)
            return

        if operator.id != descriptor.operator_id:
            logger.warning(
                f"{operator.id} tried to confirm an action requested by {descriptor.operator_id}"
            )
            self._respond(event, WRONG_OPERATOR, descriptor, replace_original=False)
            return

        self._respond(event, PROCESSING)
        self._executor.execute(descriptor, operator)
