from datetime import timedelta
from decimal import Decimal

# fractions of a plan limit at which usage is flagged
WARNING_RATIO = 0.7
CRITICAL_RATIO = 0.9


def format_tokens(value: "int") -> "str":
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(value)


def format_cost(value: "Decimal | float") -> "str":
    return f"${value:.2f}"


def format_time_remaining(remaining: "timedelta") -> "str":
    total_minutes = max(0, int(remaining.total_seconds())) // 60
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes:02d}m"


def usage_ratio(value: "float", limit: "float") -> "float":
    """
    returns value as a fraction of limit, 0 for a non-positive limit.
    """
    if limit <= 0:
        return 0.0
    return value / limit


def usage_level(ratio: "float") -> "str":
    if ratio >= CRITICAL_RATIO:
        return "critical"
    if ratio >= WARNING_RATIO:
        return "warning"
    return "ok"
