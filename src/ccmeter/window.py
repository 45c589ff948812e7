from datetime import datetime

from ccmeter.models import WINDOW_DURATION, SessionWindow, UsageSummary


def truncate_to_hour(ts: "datetime") -> "datetime":
    return ts.replace(minute=0, second=0, microsecond=0)


def compute_window(
    summary: "UsageSummary",
    now: "datetime",
) -> "SessionWindow | None":
    """
    derives the current session window from a day summary.

    The window opens at the top of the hour of the first record. Once
    that window has ended it rolls over to the top of the hour of the
    latest record. Usage figures are the summary totals in both cases,
    they are not re-filtered to the rolled over window bounds.
    """
    if summary.first_timestamp is None:
        return None

    start = truncate_to_hour(summary.first_timestamp)
    end = start + WINDOW_DURATION

    if end < now:
        start = truncate_to_hour(summary.last_updated)
        end = start + WINDOW_DURATION

    return SessionWindow(
        start=start,
        end=end,
        token_usage=summary.total_tokens,
        cost_usage=summary.estimated_cost,
        message_count=summary.message_count,
    )
