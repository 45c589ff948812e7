from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ccmeter.models import UsageSummary
from ccmeter.window import compute_window, truncate_to_hour


def _ts(day: "int", hour: "int", minute: "int" = 0, second: "int" = 0) -> "datetime":
    return datetime(2025, 1, day, hour, minute, second, tzinfo=timezone.utc)


def _summary(first: "datetime | None", last: "datetime | None") -> "UsageSummary":
    return UsageSummary(
        input_tokens=1000,
        output_tokens=500,
        estimated_cost=Decimal("0.0105"),
        session_count=1,
        message_count=3,
        first_timestamp=first,
        last_timestamp=last,
    )


class TestComputeWindow:
    def test_no_activity_means_no_window(self) -> "None":
        assert compute_window(UsageSummary.empty(), _ts(1, 12)) is None

    def test_window_anchored_to_top_of_first_hour(self) -> "None":
        summary = _summary(_ts(1, 10, 37), _ts(1, 11, 50))
        now = _ts(1, 12)

        window = compute_window(summary, now)

        assert window is not None
        assert window.start == _ts(1, 10)
        assert window.end == _ts(1, 15)
        assert window.is_active(now)

    def test_end_is_exactly_five_hours_after_start(self) -> "None":
        window = compute_window(_summary(_ts(1, 3, 59, 59), None), _ts(1, 4))
        assert window is not None
        assert window.end - window.start == timedelta(seconds=18000)

    def test_expired_window_rolls_over_to_last_activity(self) -> "None":
        summary = _summary(_ts(1, 9, 5), _ts(1, 16, 20))
        now = _ts(1, 16, 30)

        window = compute_window(summary, now)

        assert window is not None
        assert window.start == _ts(1, 16)
        assert window.end == _ts(1, 21)
        assert window.is_active(now)

    def test_usage_mirrors_summary_after_rollover(self) -> "None":
        summary = _summary(_ts(1, 1), _ts(1, 16, 20))
        window = compute_window(summary, _ts(1, 17))

        assert window is not None
        assert window.token_usage == summary.total_tokens
        assert window.cost_usage == summary.estimated_cost
        assert window.message_count == summary.message_count

    def test_window_ending_exactly_now_is_kept(self) -> "None":
        summary = _summary(_ts(1, 10, 37), _ts(1, 14))
        window = compute_window(summary, _ts(1, 15))
        assert window is not None
        assert window.start == _ts(1, 10)
        assert not window.is_active(_ts(1, 15))

    def test_deterministic(self) -> "None":
        summary = _summary(_ts(1, 10, 37), _ts(1, 11))
        assert compute_window(summary, _ts(1, 12)) == compute_window(
            summary, _ts(1, 12)
        )


class TestTruncateToHour:
    def test_zeroes_minutes_seconds_and_microseconds(self) -> "None":
        ts = datetime(2025, 1, 1, 10, 37, 12, 345, tzinfo=timezone.utc)
        assert truncate_to_hour(ts) == _ts(1, 10)
