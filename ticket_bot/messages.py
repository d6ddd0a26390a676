"""
Reply texts and Block Kit layouts for the Slack Ticket Bot.

Every message the bot posts is built here so handlers only decide what to
say, not how it looks.
"""

from typing import Any, Optional

from .models import (
    ActionDescriptor,
    ActionKind,
    BatchResult,
    Ticket,
    TicketStats,
)


# Interactive element ids on confirmation prompts
CLOSE_CONFIRM = "bulk_close_confirm"
CLOSE_CANCEL = "bulk_close_cancel"
REPLY_CONFIRM = "bulk_reply_confirm"
REPLY_CANCEL = "bulk_reply_cancel"

CONFIRM_ACTIONS = {
    CLOSE_CONFIRM: ActionKind.CLOSE,
    REPLY_CONFIRM: ActionKind.REPLY,
}
CANCEL_ACTIONS = {CLOSE_CANCEL, REPLY_CANCEL}

ACCESS_DENIED = (
    "You need to be a Helper user to use this feature. "
    "Please make sure your Slack email matches your Helper email."
)
GENERIC_ERROR = "An error occurred while processing your request. Please try again."
INVALID_CONFIRMATION = (
    "This confirmation is no longer valid. Please send the command again."
)
WRONG_OPERATOR = "Only the person who requested this action can confirm or cancel it."
OPERATION_CANCELLED = "Operation cancelled."
PROCESSING = "Processing your request..."

HELP_TEXT = """*Here's what I can do:*
• *Assign tickets:* `@helper give me 3 tickets about billing`
• *Stats:* `@helper how many tickets did I answer in the last 7 days?`
• *Close tickets:* `@helper close all tickets older than 30 days about refunds`
• *Reply to tickets:* `@helper reply to tickets about verification saying This has been fixed!`
Closing and replying always ask for confirmation first."""


def ticket_url(app_url: str, ticket: Ticket) -> str:
    """Deep link to a ticket in the helpdesk web app."""
    return f"{app_url}/mailboxes/{ticket.tenant_id}/conversations?id={ticket.slug}"


def _plural(count: int, word: str = "ticket") -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _button(text: str, action_id: str, value: Optional[str] = None, style: Optional[str] = None) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": "button",
        "text": {"type": "plain_text", "text": text},
        "action_id": action_id,
    }
    if value is not None:
        button["value"] = value
    if style:
        button["style"] = style
    return button


def help_blocks() -> list[dict[str, Any]]:
    return [_section(HELP_TEXT)]


def no_tickets_text(kind: str, search_term: str = "") -> str:
    """Reply for an empty match set."""
    if kind == "assign":
        if search_term:
            return f'No open tickets found matching "{search_term}".'
        return "No open tickets found."
    target = "close" if kind == ActionKind.CLOSE.value else "reply to"
    return f"No matching tickets found to {target}."


def failed_ids_line(result: BatchResult) -> Optional[str]:
    """Line listing tickets a batch could not process, if any."""
    if not result.failed:
        return None
    ids = ", ".join(f"#{t.id}" for t in result.failed)
    return f"Could not process {_plural(len(result.failed))}: {ids}"


def assign_summary_blocks(result: BatchResult, app_url: str) -> list[dict[str, Any]]:
    """Summary of an assign batch with a link for every assigned ticket."""
    blocks: list[dict[str, Any]] = []

    if result.succeeded:
        blocks.append(_section(f"*{_plural(len(result.succeeded))} assigned to you:*"))
    else:
        blocks.append(_section("*No tickets could be assigned.*"))

    for ticket in result.succeeded:
        blocks.append(_section(
            f"*{ticket.subject or ticket.slug}*\n"
            f"From: {ticket.requester} | {ticket.created_at:%Y-%m-%d %H:%M}"
        ))
        blocks.append({
            "type": "actions",
            "elements": [{
                "type": "button",
                "text": {"type": "plain_text", "text": "View Ticket"},
                "url": ticket_url(app_url, ticket),
            }],
        })

    failed = failed_ids_line(result)
    if failed:
        blocks.append(_section(failed))
    return blocks


def close_prompt_blocks(count: int, descriptor: ActionDescriptor) -> list[dict[str, Any]]:
    """Confirmation prompt for a bulk close."""
    text = f"You are about to close *{count}* {'ticket' if count == 1 else 'tickets'}"
    if descriptor.search_term:
        text += f' about "{descriptor.search_term}"'
    if descriptor.days_threshold is not None:
        text += f" that are older than {descriptor.days_threshold} days"
    text += ". Are you sure?"

    return [
        _section(text),
        {
            "type": "actions",
            "elements": [
                _button("Yes, close them", CLOSE_CONFIRM, descriptor.encode(), style="danger"),
                _button("Cancel", CLOSE_CANCEL, descriptor.encode()),
            ],
        },
    ]


def reply_prompt_blocks(count: int, descriptor: ActionDescriptor) -> list[dict[str, Any]]:
    """Confirmation prompt for a bulk reply, quoting the message."""
    text = f"You are about to reply to *{count}* {'ticket' if count == 1 else 'tickets'}"
    if descriptor.search_term:
        text += f' about "{descriptor.search_term}"'
    text += " with the following message:"

    return [
        _section(text),
        _section(f"> {descriptor.reply_message}"),
        {
            "type": "actions",
            "elements": [
                _button("Yes, send replies", REPLY_CONFIRM, descriptor.encode(), style="danger"),
                _button("Cancel", REPLY_CANCEL, descriptor.encode()),
            ],
        },
    ]


def batch_summary_text(result: BatchResult) -> str:
    """Outcome of a confirmed close or reply batch."""
    verb = "closed" if result.kind == ActionKind.CLOSE.value else "replied to"
    text = f"Successfully {verb} {_plural(len(result.succeeded))}."
    failed = failed_ids_line(result)
    if failed:
        text += f"\n{failed}"
    return text


def stats_blocks(stats: TicketStats) -> list[dict[str, Any]]:
    return [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"Stats for the last {stats.time_period}"},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Tickets you answered:* {stats.answered}"},
                {"type": "mrkdwn", "text": f"*Open tickets:* {stats.open_tickets}"},
                {"type": "mrkdwn", "text": f"*Tickets closed:* {stats.closed_tickets}"},
            ],
        },
    ]
