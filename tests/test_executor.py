"""
Unit tests for the bulk action executor.

Tests cover:
- Assign cap and ordering
- Confirmation prompts performing no mutation
- Recomputed match sets on confirm
- Per-ticket isolation when a ticket fails
"""

import pytest

from ticket_bot.executor import (
    ASSIGN_AUDIT_MESSAGE,
    CLOSE_AUDIT_MESSAGE,
    BulkActionExecutor,
)
from ticket_bot.extractors import CommandValidationError
from ticket_bot.matching import TicketMatcher
from ticket_bot.messages import CLOSE_CANCEL, CLOSE_CONFIRM, REPLY_CONFIRM
from ticket_bot.models import (
    ActionDescriptor,
    ActionKind,
    AssignParameters,
    CloseParameters,
    ReplyParameters,
    ResolvedOperator,
    TicketStatus,
)


@pytest.fixture
def operator() -> ResolvedOperator:
    return ResolvedOperator(id="user_1", display_name="Jane Doe")


def _posted(responder) -> list[dict]:
    """All post_message calls as keyword dicts including the channel."""
    posts = []
    for call in responder.post_message.call_args_list:
        kwargs = dict(call.kwargs)
        kwargs["channel"] = call.args[0] if call.args else kwargs.get("channel")
        posts.append(kwargs)
    return posts


def _buttons(blocks: list[dict]) -> list[dict]:
    return [
        element
        for block in blocks if block["type"] == "actions"
        for element in block["elements"]
    ]


# =============================================================================
# Assign
# =============================================================================

class TestAssign:
    """Tests for immediate assignment."""

    def test_assigns_most_recent_matches(
        self, executor, store, search, responder, operator, make_ticket, mention_factory
    ):
        """Seven matches and a request for three assigns the three newest."""
        store.add(*[make_ticket(i, age_days=i) for i in range(1, 8)])
        search.index["billing"] = list(range(1, 8))

        mention = mention_factory("give me 3 tickets about billing")
        result = executor.assign(operator, mention, AssignParameters(requested_count=3, search_term="billing"))

        assert [t.id for t in result.succeeded] == [1, 2, 3]
        assert store.assignments == {1: "user_1", 2: "user_1", 3: "user_1"}
        assert all(entry[2] == ASSIGN_AUDIT_MESSAGE for entry in store.audit)

        posts = _posted(responder)
        assert len(posts) == 1
        links = [b for b in _buttons(posts[0]["blocks"]) if "url" in b]
        assert len(links) == 3
        assert links[0]["url"] == "https://helper.test/mailboxes/acme/conversations?id=slug-1"
        assert posts[0]["thread_ts"] == mention.thread_ts

    def test_cap_of_five(self, executor, store, operator, make_ticket, mention_factory):
        """Asking for more than five assigns exactly five."""
        store.add(*[make_ticket(i, age_days=i) for i in range(1, 11)])

        result = executor.assign(
            operator,
            mention_factory("give me 20 tickets"),
            AssignParameters(requested_count=20),
        )

        assert len(result.succeeded) == 5
        assert len(store.assignments) == 5

    def test_no_keywords_uses_most_recent(self, executor, store, search, operator, make_ticket, mention_factory):
        store.add(make_ticket(1, age_days=5), make_ticket(2, age_days=1))

        result = executor.assign(operator, mention_factory("give me a ticket"), AssignParameters())

        assert [t.id for t in result.succeeded] == [2]
        assert search.calls == []

    def test_zero_search_matches(self, executor, store, search, responder, operator, make_ticket, mention_factory):
        """No search hits means no assignment, never an unfiltered fallback."""
        store.add(make_ticket(1))

        result = executor.assign(
            operator,
            mention_factory("give me tickets about unicorns"),
            AssignParameters(search_term="unicorns"),
        )

        assert result is None
        assert store.mutation_count == 0
        assert store.queries == []
        assert _posted(responder)[0]["text"] == 'No open tickets found matching "unicorns".'

    def test_ignores_other_tenants_and_closed(self, executor, store, operator, make_ticket, mention_factory):
        store.add(
            make_ticket(1, tenant_id="other"),
            make_ticket(2, status=TicketStatus.CLOSED),
        )

        result = executor.assign(operator, mention_factory("give me tickets"), AssignParameters())

        assert result is None
        assert store.mutation_count == 0

    def test_failed_ticket_does_not_stop_batch(
        self, executor, store, responder, operator, make_ticket, mention_factory
    ):
        store.add(*[make_ticket(i, age_days=i) for i in range(1, 4)])
        store.failing_ids.add(2)

        result = executor.assign(operator, mention_factory("give me 3 tickets"), AssignParameters(requested_count=3))

        assert [t.id for t in result.succeeded] == [1, 3]
        assert [t.id for t in result.failed] == [2]
        assert store.assignments == {1: "user_1", 3: "user_1"}

        texts = [b["text"]["text"] for b in _posted(responder)[0]["blocks"] if b["type"] == "section"]
        assert any("#2" in text for text in texts)

    def test_summary_failure_keeps_assignments(self, executor, store, responder, operator, make_ticket, mention_factory):
        """A failed summary post is logged; completed mutations stay."""
        store.add(make_ticket(1))
        responder.post_message.side_effect = RuntimeError("slack down")

        result = executor.assign(operator, mention_factory("give me tickets"), AssignParameters())

        assert [t.id for t in result.succeeded] == [1]
        assert store.assignments == {1: "user_1"}


# =============================================================================
# Confirmation prompts
# =============================================================================

class TestPrompts:
    """Tests for close and reply prompts."""

    def test_close_prompt_has_no_side_effects(
        self, executor, store, search, responder, operator, make_ticket, mention_factory
    ):
        store.add(make_ticket(1, age_days=20), make_ticket(2, age_days=15), make_ticket(3, age_days=2))
        search.index["refunds"] = [1, 2, 3]

        mention = mention_factory("close all open tickets older than 10 days about refunds")
        descriptor = executor.request_close(
            operator, mention, CloseParameters(search_term="refunds", days_ago=10)
        )

        assert store.mutation_count == 0
        assert all(t.status == TicketStatus.OPEN for t in store.tickets.values())

        post = _posted(responder)[0]
        prompt_text = post["blocks"][0]["text"]["text"]
        assert "*2*" in prompt_text
        assert 'about "refunds"' in prompt_text
        assert "older than 10 days" in prompt_text

        confirm = next(b for b in _buttons(post["blocks"]) if b["action_id"] == CLOSE_CONFIRM)
        decoded = ActionDescriptor.decode(confirm["value"])
        assert decoded == descriptor
        assert decoded.kind == ActionKind.CLOSE
        assert decoded.days_threshold == 10
        assert decoded.operator_id == "user_1"

        cancel = next(b for b in _buttons(post["blocks"]) if b["action_id"] == CLOSE_CANCEL)
        assert ActionDescriptor.decode(cancel["value"]) == descriptor

    def test_close_without_age_has_no_date_filter(self, executor, store, operator, make_ticket, mention_factory):
        store.add(make_ticket(1, age_days=0.1))

        descriptor = executor.request_close(operator, mention_factory("close all tickets"), CloseParameters())

        assert descriptor.days_threshold is None
        assert store.queries[-1].created_before is None

    def test_reply_prompt_quotes_message(self, executor, store, search, responder, operator, make_ticket, mention_factory):
        store.add(make_ticket(1))
        search.index["verification"] = [1]

        executor.request_reply(
            operator,
            mention_factory("reply to tickets about verification saying Fixed!"),
            ReplyParameters(search_term="verification", reply_message="Fixed!"),
        )

        post = _posted(responder)[0]
        assert post["blocks"][1]["text"]["text"] == "> Fixed!"
        confirm = next(b for b in _buttons(post["blocks"]) if b["action_id"] == REPLY_CONFIRM)
        assert ActionDescriptor.decode(confirm["value"]).reply_message == "Fixed!"
        assert store.mutation_count == 0

    def test_reply_without_message_aborts(self, executor, store, search, responder, operator, make_ticket, mention_factory):
        """A reply with no message body touches nothing and searches nothing."""
        store.add(make_ticket(1))
        search.index["verification"] = [1]

        with pytest.raises(CommandValidationError):
            executor.request_reply(
                operator,
                mention_factory("reply to tickets about verification"),
                ReplyParameters(search_term="verification"),
            )

        assert search.calls == []
        assert store.mutation_count == 0
        responder.post_message.assert_not_called()

    def test_reply_message_too_long(self, executor, operator, mention_factory):
        with pytest.raises(CommandValidationError, match="too long"):
            executor.request_reply(
                operator,
                mention_factory("reply to tickets saying ..."),
                ReplyParameters(reply_message="x" * 2500),
            )

    @pytest.mark.parametrize("kind", ["close", "reply"])
    def test_zero_matches(self, executor, store, search, responder, operator, make_ticket, mention_factory, kind):
        store.add(make_ticket(1))
        mention = mention_factory("whatever")

        if kind == "close":
            result = executor.request_close(operator, mention, CloseParameters(search_term="nothing"))
        else:
            result = executor.request_reply(
                operator, mention, ReplyParameters(search_term="nothing", reply_message="hi")
            )

        assert result is None
        assert store.mutation_count == 0
        assert _posted(responder)[0]["text"].startswith("No matching tickets found")


# =============================================================================
# Confirmed execution
# =============================================================================

class TestExecute:
    """Tests for running confirmed actions."""

    @pytest.fixture
    def close_descriptor(self) -> ActionDescriptor:
        return ActionDescriptor(
            kind=ActionKind.CLOSE,
            search_term="refunds",
            days_threshold=10,
            tenant_id="acme",
            operator_id="user_1",
            channel_id="C100",
            thread_ts="1700000000.000100",
        )

    def test_close_after_confirm(self, executor, store, search, responder, operator, make_ticket, close_descriptor):
        store.add(make_ticket(1, age_days=20), make_ticket(2, age_days=15), make_ticket(3, age_days=2))
        search.index["refunds"] = [1, 2, 3]

        result = executor.execute(close_descriptor, operator)

        assert {t.id for t in result.succeeded} == {1, 2}
        assert store.tickets[1].status == TicketStatus.CLOSED
        assert store.tickets[2].status == TicketStatus.CLOSED
        assert store.tickets[3].status == TicketStatus.OPEN
        assert all(entry[2] == CLOSE_AUDIT_MESSAGE for entry in store.audit)
        assert _posted(responder)[-1]["text"] == "Successfully closed 2 tickets."

    def test_match_set_is_recomputed(self, executor, store, search, operator, make_ticket, close_descriptor):
        """Tickets added after the prompt are included; nothing comes from the payload."""
        store.add(make_ticket(1, age_days=20))
        search.index["refunds"] = [1]

        store.add(make_ticket(2, age_days=30))
        search.index["refunds"] = [1, 2]

        result = executor.execute(close_descriptor, operator)

        assert {t.id for t in result.succeeded} == {1, 2}
        assert search.calls == [("acme", "refunds")]

    def test_repeat_confirm_touches_nothing(self, executor, store, search, responder, operator, make_ticket, close_descriptor):
        store.add(make_ticket(1, age_days=20))
        search.index["refunds"] = [1]

        executor.execute(close_descriptor, operator)
        mutations = store.mutation_count

        assert executor.execute(close_descriptor, operator) is None
        assert store.mutation_count == mutations
        assert _posted(responder)[-1]["text"] == "No matching tickets found to close."

    def test_reply_after_confirm(self, executor, store, search, operator, make_ticket):
        store.add(make_ticket(1), make_ticket(2))
        search.index["verification"] = [1, 2]
        descriptor = ActionDescriptor(
            kind=ActionKind.REPLY,
            search_term="verification",
            reply_message="Resolved!",
            tenant_id="acme",
            operator_id="user_1",
            channel_id="C100",
            thread_ts="1.0",
        )

        result = executor.execute(descriptor, operator)

        assert len(result.succeeded) == 2
        assert sorted(store.replies) == [(1, "user_1", "Resolved!"), (2, "user_1", "Resolved!")]
        assert all(t.status == TicketStatus.OPEN for t in store.tickets.values())

    def test_partial_failure_reported(self, executor, store, search, responder, operator, make_ticket, close_descriptor):
        store.add(make_ticket(1, age_days=20), make_ticket(2, age_days=25))
        search.index["refunds"] = [1, 2]
        store.failing_ids.add(2)

        result = executor.execute(close_descriptor, operator)

        assert [t.id for t in result.succeeded] == [1]
        assert [t.id for t in result.failed] == [2]
        assert store.tickets[2].status == TicketStatus.OPEN
        summary = _posted(responder)[-1]["text"]
        assert "Successfully closed 1 ticket." in summary
        assert "#2" in summary


class TestExecutorWiring:
    def test_uses_matcher(self, store, search, responder, operator, make_ticket, mention_factory):
        executor = BulkActionExecutor(store, TicketMatcher(store, search), responder, "https://x.test")
        store.add(make_ticket(1))

        result = executor.assign(operator, mention_factory("give me tickets"), AssignParameters())

        assert result.succeeded[0].id == 1
