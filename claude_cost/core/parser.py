"""
Session log line parsing.

Turns one line of a Claude Code ``.jsonl`` session log into a UsageEvent,
or reports why the line does not count.
"""

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from .pricing import PRICING_TABLE, PricingTable, calculate_cost
from .token_counter import TokenUsage
from claude_cost.storage.models import UNKNOWN, UsageEvent

ASSISTANT_TYPE = "assistant"


class RejectCause(Enum):
    """Reasons a log line produces no usage event."""
    MALFORMED = "malformed"
    WRONG_TYPE = "wrong-type"
    MISSING_FIELDS = "missing-fields"
    EMPTY_USAGE = "empty-usage"


@dataclass(frozen=True)
class ParseRejected:
    """A log line that was skipped."""
    cause: RejectCause
    detail: str = ""


ParseResult = Union[UsageEvent, ParseRejected]


class _MalformedRecord(ValueError):
    pass


def _token_count(usage: dict, key: str) -> int:
    value = usage.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _MalformedRecord(f"non-numeric {key}: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise _MalformedRecord(f"non-finite {key}: {value!r}")
    return int(value)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 log timestamp into an aware datetime.

    A trailing ``Z`` and naive values are both taken as UTC.

    Raises:
        ValueError: If the value is not an ISO-8601 string
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"invalid timestamp: {value!r}")
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text_or_unknown(*candidates: Any) -> str:
    # First non-empty string wins
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return UNKNOWN


def parse_line(raw_line: str, pricing_table: PricingTable = PRICING_TABLE) -> ParseResult:
    """Parse one raw log line.

    Checks, in order: well-formed JSON object, ``type == "assistant"``,
    presence of ``message.usage`` and ``message.model``, and at least one
    non-zero token count. Missing token counts default to zero.

    Args:
        raw_line: One line of a session log
        pricing_table: Table used to price the message

    Returns:
        A UsageEvent, or ParseRejected carrying the reason
    """
    try:
        record = json.loads(raw_line)
    except ValueError as e:
        return ParseRejected(RejectCause.MALFORMED, str(e))

    if not isinstance(record, dict):
        return ParseRejected(RejectCause.MALFORMED, "record is not an object")

    if record.get("type") != ASSISTANT_TYPE:
        return ParseRejected(RejectCause.WRONG_TYPE, str(record.get("type")))

    message = record.get("message")
    if not isinstance(message, dict):
        return ParseRejected(RejectCause.MISSING_FIELDS, "message")
    usage_block = message.get("usage")
    model = message.get("model")
    if not isinstance(usage_block, dict) or not model or not isinstance(model, str):
        return ParseRejected(RejectCause.MISSING_FIELDS, "message.usage or message.model")

    try:
        usage = TokenUsage(
            input_tokens=_token_count(usage_block, "input_tokens"),
            output_tokens=_token_count(usage_block, "output_tokens"),
            cache_creation_tokens=_token_count(usage_block, "cache_creation_input_tokens"),
            cache_read_tokens=_token_count(usage_block, "cache_read_input_tokens"),
        )
    except _MalformedRecord as e:
        return ParseRejected(RejectCause.MALFORMED, str(e))

    if usage.total_tokens == 0:
        return ParseRejected(RejectCause.EMPTY_USAGE)

    try:
        timestamp = parse_timestamp(record.get("timestamp"))
    except ValueError as e:
        return ParseRejected(RejectCause.MALFORMED, str(e))

    return UsageEvent(
        timestamp=timestamp,
        model=model,
        usage=usage,
        cost=calculate_cost(model, usage, pricing_table),
        session_id=_text_or_unknown(record.get("sessionId")),
        project=_text_or_unknown(record.get("cwd")),
        message_id=_text_or_unknown(message.get("id"), record.get("uuid")),
    )
