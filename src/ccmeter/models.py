import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from ccmeter.pricing import pricing_for

# the metered service limits usage over a rolling 5 hour period
WINDOW_DURATION = timedelta(hours=5)


def _utcnow() -> "datetime":
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """
    UsageRecord represents a single priced assistant
    response decoded from a transcript line.
    """

    kind: "str"
    model: "str | None" = None
    session_id: "str | None" = None
    # aware datetime, None when absent or unparseable
    timestamp: "datetime | None" = None
    input_tokens: "int" = 0
    output_tokens: "int" = 0
    cache_creation_tokens: "int" = 0
    cache_read_tokens: "int" = 0

    @property
    def total_tokens(self) -> "int":
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    @property
    def cost(self) -> "Decimal":
        return pricing_for(self.model).cost(
            self.input_tokens,
            self.output_tokens,
            self.cache_creation_tokens,
            self.cache_read_tokens,
        )


def _earliest(a: "datetime | None", b: "datetime | None") -> "datetime | None":
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _latest(a: "datetime | None", b: "datetime | None") -> "datetime | None":
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


@dataclass(frozen=True, slots=True)
class UsageSummary:
    """
    UsageSummary accumulates usage over a set of records.

    Summaries combine with ``+``: additive fields are summed, the
    earliest first_timestamp and the latest last_timestamp are kept.
    ``UsageSummary.empty()`` is the identity of that combination.
    computed_at is informational and excluded from equality.
    """

    input_tokens: "int" = 0
    output_tokens: "int" = 0
    cache_creation_tokens: "int" = 0
    cache_read_tokens: "int" = 0
    estimated_cost: "Decimal" = Decimal(0)
    session_count: "int" = 0
    message_count: "int" = 0
    first_timestamp: "datetime | None" = None
    # most recent record seen, None when no timestamped record was seen
    last_timestamp: "datetime | None" = None
    computed_at: "datetime" = field(default_factory=_utcnow, compare=False)

    @classmethod
    def empty(cls) -> "UsageSummary":
        return cls()

    @property
    def total_tokens(self) -> "int":
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    @property
    def last_updated(self) -> "datetime":
        """
        time of the most recent record, or the time the summary was
        built if it holds no timestamped records.
        """
        if self.last_timestamp is not None:
            return self.last_timestamp
        return self.computed_at

    def __add__(self, other: "UsageSummary") -> "UsageSummary":
        if not isinstance(other, UsageSummary):
            return NotImplemented

        return UsageSummary(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_creation_tokens=self.cache_creation_tokens
            + other.cache_creation_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
            estimated_cost=self.estimated_cost + other.estimated_cost,
            session_count=self.session_count + other.session_count,
            message_count=self.message_count + other.message_count,
            first_timestamp=_earliest(self.first_timestamp, other.first_timestamp),
            last_timestamp=_latest(self.last_timestamp, other.last_timestamp),
            computed_at=max(self.computed_at, other.computed_at),
        )


@dataclass(frozen=True, slots=True)
class SessionWindow:
    """
    SessionWindow is the 5 hour usage-limit period together with
    the usage figures attached to it when it was computed.
    """

    start: "datetime"
    end: "datetime"
    token_usage: "int"
    cost_usage: "Decimal"
    message_count: "int"

    def is_active(self, now: "datetime | None" = None) -> "bool":
        return (now or _utcnow()) < self.end

    def time_remaining(self, now: "datetime | None" = None) -> "timedelta":
        return max(timedelta(0), self.end - (now or _utcnow()))


class PlanType(str, enum.Enum):
    PRO = "Pro"
    MAX5 = "Max 5"
    MAX20 = "Max 20"
    CUSTOM = "Custom"

    @classmethod
    def parse(cls, value: "str", default: "PlanType | None" = None) -> "PlanType":
        """
        resolves a plan from its display value ("Max 5") or member
        name ("max5"). Falls back to default, or MAX5 when not given.
        """
        needle = value.strip().lower()
        for plan in cls:
            if needle in (plan.value.lower(), plan.name.lower()):
                return plan
        return default or cls.MAX5


@dataclass(frozen=True, slots=True)
class PlanLimits:
    token_limit: "int"
    cost_limit: "float"
    message_limit: "int"

    @staticmethod
    def for_plan(plan: "PlanType") -> "PlanLimits":
        return _PLAN_LIMITS[plan]


_PLAN_LIMITS: "dict[PlanType, PlanLimits]" = {
    PlanType.PRO: PlanLimits(token_limit=19_000, cost_limit=18.0, message_limit=250),
    PlanType.MAX5: PlanLimits(
        token_limit=88_000, cost_limit=35.0, message_limit=1_000
    ),
    PlanType.MAX20: PlanLimits(
        token_limit=220_000, cost_limit=140.0, message_limit=2_000
    ),
    PlanType.CUSTOM: PlanLimits(
        token_limit=44_000, cost_limit=50.0, message_limit=250
    ),
}


@dataclass(frozen=True, slots=True)
class LogFile:
    path: "Path"
    # modification time as an aware UTC datetime
    mtime: "datetime"
