"""
Parameter extractors for mention commands.

Each extractor turns the cleaned mention text into the parameter model for
one intent using regular expressions only.
"""

import re
from typing import Optional

from .models import (
    DEFAULT_STATS_HOURS,
    MAX_LOOKBACK_DAYS,
    AssignParameters,
    CloseParameters,
    HelpParameters,
    ReplyParameters,
    StatsParameters,
)


class CommandValidationError(Exception):
    """A command is missing something the operator must supply."""
    pass


_COUNT_PATTERN = re.compile(r"(\d+)\s+tickets?\b", re.IGNORECASE)

# Phrases removed from assign text to leave only the search keywords
_ASSIGN_DIRECTIVES = [
    re.compile(r"\bgive me\b", re.IGNORECASE),
    re.compile(r"\bto respond to\b", re.IGNORECASE),
    re.compile(r"\bassign(?:\s+me)?\b", re.IGNORECASE),
    re.compile(r"\bfind(?:\s+me)?\b", re.IGNORECASE),
    re.compile(r"\bget(?:\s+me)?\b", re.IGNORECASE),
    re.compile(r"\b\d+\s+tickets?\b", re.IGNORECASE),
    re.compile(r"\btickets?\b", re.IGNORECASE),
    re.compile(r"\babout\b", re.IGNORECASE),
    re.compile(r"\bregarding\b", re.IGNORECASE),
]

_DAYS_PATTERN = re.compile(r"(\d+)\s+days?\b", re.IGNORECASE)
_HOURS_PATTERN = re.compile(r"(\d+)\s+hours?\b", re.IGNORECASE)

_OLDER_THAN_PATTERNS = [
    re.compile(r"older than (\d+) days?", re.IGNORECASE),
    re.compile(r"(\d+) days? old", re.IGNORECASE),
]

_CLOSE_TOPIC_PATTERN = re.compile(
    r"\b(?:about|regarding)\s+(.+?)(?=\s+older\b|\s*$)", re.IGNORECASE
)
_REPLY_TOPIC_PATTERN = re.compile(
    r"\b(?:about|regarding)\s+(.+?)(?=\s+saying\b|\s+with\b|\s*$)", re.IGNORECASE
)

_REPLY_MESSAGE_PATTERNS = [
    re.compile(r"\bsaying\s+(.+?)\s*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"\bwith\s+(.+?)\s*$", re.IGNORECASE | re.DOTALL),
]

REPLY_MESSAGE_REQUIRED = (
    "Please specify a message to send. For example: "
    "'@helper reply to all tickets about verification saying This issue has been resolved!'"
)

PERIOD_TOO_LONG = (
    f"That period is too long. Please use at most {MAX_LOOKBACK_DAYS} days."
)


def _check_days(days: Optional[int]) -> Optional[int]:
    if days is not None and days > MAX_LOOKBACK_DAYS:
        raise CommandValidationError(PERIOD_TOO_LONG)
    return days


def _first_int(patterns: list[re.Pattern], text: str) -> Optional[int]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def extract_help(text: str) -> HelpParameters:
    return HelpParameters()


def extract_assign(text: str) -> AssignParameters:
    """
    Extract the ticket count and search keywords from an assign command.

    "give me 3 tickets about billing" yields count 3 and term "billing".
    An empty residual means no keyword filter.
    """
    count_match = _COUNT_PATTERN.search(text)
    requested_count = int(count_match.group(1)) if count_match else 1

    residual = text
    for directive in _ASSIGN_DIRECTIVES:
        residual = directive.sub(" ", residual)

    return AssignParameters(
        requested_count=requested_count,
        search_term=_collapse(residual),
    )


def extract_stats(text: str) -> StatsParameters:
    """
    Extract the stats window; days win over hours, default 24 hours.

    Raises:
        CommandValidationError: If the window is longer than MAX_LOOKBACK_DAYS.
    """
    day_match = _DAYS_PATTERN.search(text)
    if day_match:
        days = _check_days(int(day_match.group(1)))
        return StatsParameters(hours_ago=days * 24)

    hour_match = _HOURS_PATTERN.search(text)
    if hour_match:
        hours = int(hour_match.group(1))
        if hours > MAX_LOOKBACK_DAYS * 24:
            raise CommandValidationError(PERIOD_TOO_LONG)
        return StatsParameters(hours_ago=hours)

    return StatsParameters(hours_ago=DEFAULT_STATS_HOURS)


def extract_close(text: str) -> CloseParameters:
    """
    Extract age and topic filters from a close command.

    A missing age phrase leaves ``days_ago`` as None, which means the
    command applies no date filter at all.

    Raises:
        CommandValidationError: If the age is longer than MAX_LOOKBACK_DAYS.
    """
    topic = _CLOSE_TOPIC_PATTERN.search(text)
    return CloseParameters(
        search_term=topic.group(1).strip() if topic else "",
        days_ago=_check_days(_first_int(_OLDER_THAN_PATTERNS, text)),
    )


def extract_reply(text: str) -> ReplyParameters:
    """Extract the topic filter and the message body from a reply command."""
    topic = _REPLY_TOPIC_PATTERN.search(text)

    reply_message = None
    for pattern in _REPLY_MESSAGE_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            reply_message = match.group(1).strip()
            break

    return ReplyParameters(
        search_term=topic.group(1).strip() if topic else "",
        reply_message=reply_message,
    )


def require_reply_message(params: ReplyParameters) -> str:
    """
    Return the reply body or abort the command.

    Raises:
        CommandValidationError: If the operator gave no message.
    """
    if not params.reply_message:
        raise CommandValidationError(REPLY_MESSAGE_REQUIRED)
    return params.reply_message
