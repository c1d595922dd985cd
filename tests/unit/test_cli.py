"""Tests for CLI module."""

import json
import logging
import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from endpoint_probe.cli import load_settings, main, run
from endpoint_probe.config import ConfigurationError
from endpoint_probe.models.result import ProbeResult
from endpoint_probe.orchestrator import RunReport
from endpoint_probe.testing.factories import ProbeResultFactory, ProbeSettingsFactory


class TestLoadSettings:
    """Tests for load_settings."""

    def test_reads_environment(self, tmp_path: Path) -> None:
        """Reads settings from the given environment."""
        settings = load_settings(
            tmp_path / "missing.env",
            {"TEST_DURATION": "60", "TEST_INTERVAL": "3"},
        )

        assert settings.test_duration == 60
        assert settings.test_interval == 3

    def test_loads_env_file(self, tmp_path: Path) -> None:
        """Values from the env file fill the process environment."""
        env_file = tmp_path / ".env"
        env_file.write_text("TEST_DURATION=45\nTEST_INTERVAL=1\n")

        with patch.dict(os.environ, {"TEST_INTERVAL": "7"}):
            os.environ.pop("TEST_DURATION", None)
            settings = load_settings(env_file, os.environ)

        assert settings.test_duration == 45
        assert settings.test_interval == 7

    def test_raises_for_missing_values(self, tmp_path: Path) -> None:
        """Raises ConfigurationError listing every missing variable."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(tmp_path / "missing.env", {"TEST_HTTP_CALLS": "true"})

        assert exc_info.value.missing == ("TEST_DURATION", "TEST_INTERVAL", "HTTP_URL")


class TestRun:
    """Tests for run function."""

    def report(self, *results: ProbeResult) -> RunReport:
        """Create a report over HTTP and WebSocket results."""
        kinds = ("http-calls", "websocket")[: len(results)]
        return RunReport(
            settings=ProbeSettingsFactory.build(),
            results=dict(zip(kinds, results, strict=True)),
            labels={"http-calls": "HTTP Calls", "websocket": "WebSocket Stream"},
            total_elapsed="5 seconds",
        )

    async def test_returns_zero_when_all_probes_pass(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Returns 0 and prints the summary when every probe succeeds."""
        report = self.report(ProbeResultFactory.build(), ProbeResultFactory.build())

        with patch("endpoint_probe.cli.ProbeOrchestrator") as mock_orchestrator_cls:
            mock_orchestrator_cls.return_value.run = AsyncMock(return_value=report)
            exit_code = await run(ProbeSettingsFactory.build())

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["total"] == 2
        assert output["succeeded"] == 2

    async def test_returns_one_when_a_probe_fails(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Returns 1 when any probe failed, including partial results."""
        report = self.report(
            ProbeResultFactory.build(),
            ProbeResult(elapsed="2 seconds", event_count=1, failed=True),
        )

        with patch("endpoint_probe.cli.ProbeOrchestrator") as mock_orchestrator_cls:
            mock_orchestrator_cls.return_value.run = AsyncMock(return_value=report)
            exit_code = await run(ProbeSettingsFactory.build())

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out)["partial"] == 1

    async def test_returns_zero_when_nothing_ran(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Returns 0 when no probe is enabled."""
        with patch("endpoint_probe.cli.ProbeOrchestrator") as mock_orchestrator_cls:
            mock_orchestrator_cls.return_value.run = AsyncMock(
                return_value=self.report()
            )
            exit_code = await run(ProbeSettingsFactory.build())

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out)["total"] == 0


class TestMain:
    """Tests for main entry point."""

    def test_exits_one_on_configuration_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Logs the missing variables and exits with status 1."""
        with (
            patch("sys.argv", ["endpoint-probe", "--env-file", "/nonexistent/.env"]),
            patch(
                "endpoint_probe.cli.load_settings",
                side_effect=ConfigurationError(["TEST_DURATION"]),
            ),
            caplog.at_level(logging.ERROR),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 1
        assert "TEST_DURATION" in caplog.text

    def test_exits_with_run_status(self) -> None:
        """Exits with the status returned by run."""
        with (
            patch("sys.argv", ["endpoint-probe"]),
            patch(
                "endpoint_probe.cli.load_settings",
                return_value=ProbeSettingsFactory.build(),
            ),
            patch("endpoint_probe.cli.run", new=AsyncMock(return_value=1)),
            pytest.raises(SystemExit) as exc_info,
        ):
            main()

        assert exc_info.value.code == 1
