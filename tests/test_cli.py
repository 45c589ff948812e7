import pytest

from ccmeter.cli import parse_args
from ccmeter.models import PlanType


class TestParseArgs:
    def test_defaults(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        monkeypatch.delenv("CCMETER_PLAN", raising=False)
        monkeypatch.delenv("CCMETER_REFRESH_INTERVAL", raising=False)
        settings = parse_args([])
        assert settings.plan is PlanType.MAX5
        assert settings.refresh_interval == 300.0
        assert settings.log_level == "info"
        assert settings.log_format == "console"
        assert settings.metrics_address == ""

    def test_flags_override_env(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        monkeypatch.setenv("CCMETER_PLAN", "pro")
        monkeypatch.setenv("CCMETER_REFRESH_INTERVAL", "30")
        settings = parse_args(
            [
                "--plan",
                "max20",
                "--refresh.interval",
                "90",
                "--log.level",
                "debug",
                "--log.format",
                "json",
                "--metrics.listen-address",
                ":9186",
            ]
        )
        assert settings.plan is PlanType.MAX20
        assert settings.refresh_interval == 90.0
        assert settings.log_level == "debug"
        assert settings.log_format == "json"
        assert settings.metrics_address == ":9186"

    def test_env_used_without_flags(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        monkeypatch.setenv("CCMETER_PLAN", "pro")
        assert parse_args([]).plan is PlanType.PRO
