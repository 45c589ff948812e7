import os
from dataclasses import dataclass, field
from pathlib import Path

from ccmeter.models import PlanLimits, PlanType
from ccmeter.sources import default_base_dirs

DEFAULT_REFRESH_INTERVAL = 300.0


def parse_interval(raw: "str") -> "float":
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_REFRESH_INTERVAL
    return value if value > 0 else DEFAULT_REFRESH_INTERVAL


@dataclass
class Settings:
    plan: "PlanType" = PlanType.MAX5
    # periodic refresh interval in seconds
    refresh_interval: "float" = DEFAULT_REFRESH_INTERVAL
    base_dirs: "list[Path]" = field(default_factory=default_base_dirs)
    log_level: "str" = "info"
    log_format: "str" = "console"
    # listen_address for the optional exporter, format ":9186" or
    # "127.0.0.1:9186". Empty disables it.
    metrics_address: "str" = ""

    def __post_init__(self) -> "None":
        if self.refresh_interval <= 0:
            self.refresh_interval = DEFAULT_REFRESH_INTERVAL

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls()

        plan = os.environ.get("CCMETER_PLAN", "")
        if plan:
            settings.plan = PlanType.parse(plan)

        interval = os.environ.get("CCMETER_REFRESH_INTERVAL", "")
        if interval:
            settings.refresh_interval = parse_interval(interval)

        base_dirs = os.environ.get("CCMETER_BASE_DIRS", "")
        if base_dirs:
            settings.base_dirs = [
                Path(p).expanduser() for p in base_dirs.split(os.pathsep) if p
            ]

        return settings

    @property
    def limits(self) -> "PlanLimits":
        return PlanLimits.for_plan(self.plan)
