"""
Intent classification for mention commands.

Intents are matched by an ordered list of rules. Each rule pairs the
patterns that recognise an intent with the extractor that reads its
parameters. Rules are tried in order and the first match wins, so the order
of INTENT_RULES is the tie-break: text that reads as both a close and a
reply command is a close command.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from .extractors import (
    extract_assign,
    extract_close,
    extract_help,
    extract_reply,
    extract_stats,
)
from .models import CommandParameters, Intent, ParsedCommand


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntentRule:
    """Patterns recognising one intent and the extractor for its parameters."""

    intent: Intent
    patterns: tuple[re.Pattern, ...]
    extractor: Callable[[str], CommandParameters]

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


HELP_RULE = IntentRule(
    intent=Intent.HELP,
    patterns=_compile(
        r"\bhelp\b",
        r"\bhow to\b",
        r"\bwhat can you do\b",
        r"\bcommands\b",
        r"\busage\b",
        r"\bguide\b",
    ),
    extractor=extract_help,
)

INTENT_RULES: tuple[IntentRule, ...] = (
    HELP_RULE,
    IntentRule(
        intent=Intent.ASSIGN,
        patterns=_compile(r"\b(?:give me|assign|find|get)\s+(?:me\s+)?(?:\d+\s+)?tickets?\b"),
        extractor=extract_assign,
    ),
    IntentRule(
        intent=Intent.STATS,
        patterns=_compile(
            r"\bhow many tickets\b",
            r"\bticket stats\b",
            r"\bstatistics\b",
            r"\bmetrics\b",
            r"\bperformance\b",
        ),
        extractor=extract_stats,
    ),
    IntentRule(
        intent=Intent.CLOSE,
        patterns=_compile(
            r"\bclose\s+(?:\w+\s+)?tickets?\b",
            r"\bclose all\b",
            r"\bmark\s+(?:\w+\s+)?as closed\b",
        ),
        extractor=extract_close,
    ),
    IntentRule(
        intent=Intent.REPLY,
        patterns=_compile(
            r"\b(?:reply|respond) to\s+(?:\w+\s+)?tickets?\b",
            r"\bsend\s+(?:\w+\s+)?message\b",
        ),
        extractor=extract_reply,
    ),
)


def match_rule(text: str, rules: tuple[IntentRule, ...] = INTENT_RULES) -> IntentRule:
    """Return the first rule matching the text, falling back to help."""
    for rule in rules:
        if rule.matches(text):
            return rule
    return HELP_RULE


def classify(text: str) -> Intent:
    """
    Classify cleaned mention text into an intent.

    Args:
        text: Mention text without the bot reference.

    Returns:
        The matched intent, or Intent.HELP when nothing matches.
    """
    return match_rule(text).intent


def parse_command(text: str) -> ParsedCommand:
    """
    Classify the text and extract the parameters for its intent.

    Args:
        text: Mention text without the bot reference.

    Returns:
        ParsedCommand with the intent and its parameter model.
    """
    rule = match_rule(text)
    logger.debug(f"Classified {text!r} as {rule.intent.value}")
    return ParsedCommand(intent=rule.intent, parameters=rule.extractor(text))
