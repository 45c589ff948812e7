import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from ccmeter.models import SessionWindow, UsageSummary

logger = structlog.get_logger()

NO_DATA_MESSAGE = "No Claude Code data found."


class ServiceStatus(str, enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class UsageState:
    """
    UsageState is the read-only bundle published to consumers.
    A new instance replaces the previous one on every change.
    """

    status: "ServiceStatus" = ServiceStatus.IDLE
    today: "UsageSummary" = field(default_factory=UsageSummary.empty)
    this_week: "UsageSummary" = field(default_factory=UsageSummary.empty)
    this_month: "UsageSummary" = field(default_factory=UsageSummary.empty)
    window: "SessionWindow | None" = None
    is_loading: "bool" = False
    error: "str | None" = None
    last_refresh: "datetime | None" = None
    is_active: "bool" = False
    # `now` of the refresh whose results this state carries
    computed_for: "datetime | None" = None


Subscriber = Callable[[UsageState], None]


class StatePublisher:
    """
    StatePublisher fans a state snapshot out to its subscribers.
    A failing subscriber is logged and does not affect the others.
    """

    def __init__(self) -> "None":
        self._subscribers: "list[Subscriber]" = []

    def subscribe(self, callback: "Subscriber") -> "Callable[[], None]":
        """
        registers callback and returns a function that removes it.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> "None":
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, state: "UsageState") -> "None":
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("state_subscriber_error")
