from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from ccmeter.models import PlanLimits, UsageSummary
from ccmeter.state import UsageState

HORIZONS = ("today", "week", "month")


def create_horizon_metrics(
    registry: "CollectorRegistry" = REGISTRY,
) -> "dict[str, Gauge]":
    """
    creates the gauge families that mirror a horizon summary.
     - tokens: total tokens, labeled by horizon and token kind
     (input/output/cache_creation/cache_read).
     - cost_usd: estimated cost in USD, labeled by horizon.
     - messages: counted assistant responses, labeled by horizon.
     - sessions: distinct sessions, labeled by horizon.
    """
    return {
        "tokens": Gauge(
            "ccmeter_tokens",
            "Tokens used in the horizon",
            ["horizon", "kind"],
            registry=registry,
        ),
        "cost_usd": Gauge(
            "ccmeter_cost_usd",
            "Estimated cost in USD for the horizon",
            ["horizon"],
            registry=registry,
        ),
        "messages": Gauge(
            "ccmeter_messages",
            "Assistant messages in the horizon",
            ["horizon"],
            registry=registry,
        ),
        "sessions": Gauge(
            "ccmeter_sessions",
            "Distinct sessions in the horizon",
            ["horizon"],
            registry=registry,
        ),
    }


class MetricsUpdater:
    """
    mirrors published UsageState snapshots into Prometheus gauges.
    Subscribe update_state to a StatePublisher to keep them current.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._registry: "CollectorRegistry" = registry
        self._horizon_metrics: "dict[str, Gauge]" = create_horizon_metrics(registry)
        self._window_tokens: "Gauge" = Gauge(
            "ccmeter_window_tokens",
            "Tokens attributed to the current session window",
            registry=registry,
        )
        self._window_end: "Gauge" = Gauge(
            "ccmeter_window_end_timestamp_seconds",
            "Unix timestamp at which the current session window ends",
            registry=registry,
        )
        self._active: "Gauge" = Gauge(
            "ccmeter_active",
            "1 while a transcript was written within the last 30 seconds",
            registry=registry,
        )
        self._last_refresh: "Gauge" = Gauge(
            "ccmeter_last_refresh_timestamp_seconds",
            "Unix timestamp of the last successful refresh",
            registry=registry,
        )
        self._plan_limit: "Gauge" = Gauge(
            "ccmeter_plan_limit",
            "Limits of the selected plan",
            ["kind"],
            registry=registry,
        )
        self._refresh_duration: "Histogram" = Histogram(
            "ccmeter_refresh_duration_seconds",
            "Duration of refresh cycles",
            registry=registry,
        )
        self._refresh_errors: "Counter" = Counter(
            "ccmeter_refresh_errors_total",
            "Total number of failed refresh cycles",
            registry=registry,
        )

    def _update_summary(self, horizon: "str", summary: "UsageSummary") -> "None":
        tokens = self._horizon_metrics["tokens"]
        tokens.labels(horizon=horizon, kind="input").set(summary.input_tokens)
        tokens.labels(horizon=horizon, kind="output").set(summary.output_tokens)
        tokens.labels(horizon=horizon, kind="cache_creation").set(
            summary.cache_creation_tokens
        )
        tokens.labels(horizon=horizon, kind="cache_read").set(
            summary.cache_read_tokens
        )
        self._horizon_metrics["cost_usd"].labels(horizon=horizon).set(
            float(summary.estimated_cost)
        )
        self._horizon_metrics["messages"].labels(horizon=horizon).set(
            summary.message_count
        )
        self._horizon_metrics["sessions"].labels(horizon=horizon).set(
            summary.session_count
        )

    def update_state(self, state: "UsageState") -> "None":
        """
        sets every gauge from the snapshot. Snapshots published while
        a refresh is running carry the previous totals and are applied
        as-is.
        """
        for horizon, summary in zip(
            HORIZONS, (state.today, state.this_week, state.this_month)
        ):
            self._update_summary(horizon, summary)

        if state.window is not None:
            self._window_tokens.set(state.window.token_usage)
            self._window_end.set(state.window.end.timestamp())
        else:
            self._window_tokens.set(0)
            self._window_end.set(0)

        self._active.set(1 if state.is_active else 0)
        if state.last_refresh is not None:
            self._last_refresh.set(state.last_refresh.timestamp())

    def set_plan_limits(self, limits: "PlanLimits") -> "None":
        self._plan_limit.labels(kind="tokens").set(limits.token_limit)
        self._plan_limit.labels(kind="cost_usd").set(limits.cost_limit)
        self._plan_limit.labels(kind="messages").set(limits.message_limit)

    def observe_refresh_duration(self, duration_seconds: "float") -> "None":
        self._refresh_duration.observe(duration_seconds)

    def inc_refresh_error(self) -> "None":
        self._refresh_errors.inc()
