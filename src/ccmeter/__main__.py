import asyncio
import signal
from collections.abc import Callable

import structlog
from prometheus_client import start_http_server

from ccmeter.cli import parse_args
from ccmeter.logging import setup_logging
from ccmeter.metrics import MetricsUpdater
from ccmeter.models import PlanLimits
from ccmeter.report import (
    format_cost,
    format_time_remaining,
    format_tokens,
    usage_level,
    usage_ratio,
)
from ccmeter.service import UsageService
from ccmeter.state import ServiceStatus, UsageState

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '127.0.0.1:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def _state_logger(limits: "PlanLimits") -> "Callable[[UsageState], None]":
    def log_state(state: "UsageState") -> "None":
        if state.status is ServiceStatus.ERROR:
            logger.warning("usage_unavailable", error=state.error)
            return
        if state.status is not ServiceStatus.IDLE or state.window is None:
            return

        window = state.window
        ratio = usage_ratio(float(window.cost_usage), limits.cost_limit)
        logger.info(
            "usage",
            today_tokens=format_tokens(state.today.total_tokens),
            today_cost=format_cost(state.today.estimated_cost),
            month_cost=format_cost(state.this_month.estimated_cost),
            window_remaining=format_time_remaining(window.time_remaining()),
            window_cost=format_cost(window.cost_usage),
            level=usage_level(ratio),
            active=state.is_active,
        )

    return log_state


def main() -> "None":
    settings = parse_args()
    setup_logging(settings.log_level, settings.log_format)

    metrics_updater: "MetricsUpdater | None" = None
    if settings.metrics_address:
        metrics_updater = MetricsUpdater()
        metrics_updater.set_plan_limits(settings.limits)
        host, port = _parse_listen_address(settings.metrics_address)
        start_http_server(port, addr=host)
        logger.info("metrics_server_started", host=host, port=port)

    service = UsageService(settings, metrics=metrics_updater)
    service.publisher.subscribe(_state_logger(settings.limits))
    if metrics_updater is not None:
        service.publisher.subscribe(metrics_updater.update_state)

    async def _run() -> "None":
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, stop the service
        # gracefully
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        await service.start()
        try:
            await stop.wait()
        finally:
            logger.info("shutting_down")
            await service.stop()
            logger.info("shutdown_complete")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
