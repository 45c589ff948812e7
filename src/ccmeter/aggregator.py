from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import structlog

from ccmeter.decoder import decode_line
from ccmeter.models import UsageSummary

logger = structlog.get_logger()


def aggregate_lines(
    lines: "Iterable[str]",
    cutoff: "datetime | None" = None,
) -> "UsageSummary":
    """
    folds decodable usage lines into a summary. Records timestamped
    strictly before cutoff are excluded; records without a timestamp
    can't be time-filtered and are always counted.
    """
    input_tokens = 0
    output_tokens = 0
    cache_creation_tokens = 0
    cache_read_tokens = 0
    cost = Decimal(0)
    message_count = 0
    session_ids: "set[str]" = set()
    first: "datetime | None" = None
    last: "datetime | None" = None

    for line in lines:
        record = decode_line(line)
        if record is None:
            continue

        ts = record.timestamp
        if cutoff is not None and ts is not None and ts < cutoff:
            continue

        if ts is not None:
            if first is None or ts < first:
                first = ts
            if last is None or ts > last:
                last = ts

        if record.session_id is not None:
            session_ids.add(record.session_id)

        message_count += 1
        input_tokens += record.input_tokens
        output_tokens += record.output_tokens
        cache_creation_tokens += record.cache_creation_tokens
        cache_read_tokens += record.cache_read_tokens
        cost += record.cost

    return UsageSummary(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_creation_tokens=cache_creation_tokens,
        cache_read_tokens=cache_read_tokens,
        estimated_cost=cost,
        session_count=len(session_ids),
        message_count=message_count,
        first_timestamp=first,
        last_timestamp=last,
    )


def aggregate_file(
    path: "Path",
    cutoff: "datetime | None" = None,
) -> "UsageSummary":
    """
    reads a transcript file and aggregates its usage. A file that
    can't be read or isn't valid UTF-8 contributes nothing.
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("log_file_unreadable", path=str(path), error=str(exc))
        return UsageSummary.empty()

    # records are delimited by \n only, str.splitlines would also break on
    # U+2028 and friends that JSON writers leave unescaped in strings
    return aggregate_lines(content.split("\n"), cutoff)
