import json
from datetime import datetime, timezone
from typing import Any

from ccmeter.models import UsageRecord

# the only record kind that carries billable usage
ASSISTANT_KIND = "assistant"


def parse_timestamp(value: "Any") -> "datetime | None":
    """
    parses an ISO-8601 timestamp with or without fractional seconds
    into an aware datetime. Naive values are taken as UTC. Returns
    None for anything that isn't a parseable string.
    """
    if not isinstance(value, str) or not value:
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _token_count(usage: "dict[str, Any]", key: "str") -> "int":
    value = usage.get(key)
    # bool is an int subclass, don't let `true` count as one token
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


def _optional_str(value: "Any") -> "str | None":
    return value if isinstance(value, str) else None


def decode_line(line: "str") -> "UsageRecord | None":
    """
    decodes one JSONL line into a UsageRecord.

    Returns None for blank lines, malformed JSON, non-assistant
    entries and entries without a usage block. Individual fields
    that are missing or of the wrong type fall back to defaults
    instead of rejecting the whole record.
    """
    if not line or line.isspace():
        return None

    try:
        entry = json.loads(line)
    except ValueError:
        return None

    if not isinstance(entry, dict) or entry.get("type") != ASSISTANT_KIND:
        return None

    message = entry.get("message")
    if not isinstance(message, dict):
        return None

    usage = message.get("usage")
    if not isinstance(usage, dict):
        return None

    return UsageRecord(
        kind=ASSISTANT_KIND,
        model=_optional_str(message.get("model")),
        session_id=_optional_str(entry.get("sessionId")),
        timestamp=parse_timestamp(entry.get("timestamp")),
        input_tokens=_token_count(usage, "input_tokens"),
        output_tokens=_token_count(usage, "output_tokens"),
        cache_creation_tokens=_token_count(usage, "cache_creation_input_tokens"),
        cache_read_tokens=_token_count(usage, "cache_read_input_tokens"),
    )
