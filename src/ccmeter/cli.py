import argparse

from ccmeter.config import Settings, parse_interval
from ccmeter.models import PlanType


def parse_args(argv: "list[str] | None" = None) -> "Settings":
    """
    builds Settings from the environment, then applies any flags
    given on the command line on top.
    """
    parser = argparse.ArgumentParser(
        prog="ccmeter",
        description="Claude Code usage meter",
    )
    parser.add_argument(
        "--plan",
        dest="plan",
        default=None,
        help="Plan whose limits apply: pro, max5, max20 or custom",
    )
    parser.add_argument(
        "--refresh.interval",
        dest="refresh_interval",
        default=None,
        help="Periodic refresh interval in seconds (default: 300)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log.format",
        dest="log_format",
        default="console",
        choices=["console", "json"],
        help="Log output format (default: console)",
    )
    parser.add_argument(
        "--metrics.listen-address",
        dest="metrics_address",
        default="",
        help="Serve Prometheus metrics on this address, e.g. :9186 (default: off)",
    )

    args = parser.parse_args(argv)
    settings = Settings.from_env()
    if args.plan is not None:
        settings.plan = PlanType.parse(args.plan, default=settings.plan)
    if args.refresh_interval is not None:
        settings.refresh_interval = parse_interval(args.refresh_interval)
    settings.log_level = args.log_level
    settings.log_format = args.log_format
    settings.metrics_address = args.metrics_address
    return settings
