"""Tests for sheetsync run and service commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from sheetsync.cli.main import cli

runner = CliRunner()


class TestRunCommand:
    """sheetsync run command tests."""

    @patch("sheetsync.daemon.lifecycle.run_foreground", new_callable=AsyncMock, return_value=0)
    def test_given_clean_stop_when_run_then_exit_0(
        self, mock_run: AsyncMock, config_file: Path
    ) -> None:
        result = runner.invoke(cli, ["run", str(config_file)])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[0]
        assert config.tables.names == ("Runs", "Splits")
        assert config.watch.path == str((config_file.parent / "export.xlsx").resolve())

    @patch("sheetsync.daemon.lifecycle.run_foreground", new_callable=AsyncMock, return_value=1)
    def test_given_sync_error_when_run_then_exit_1(
        self, _mock_run: AsyncMock, config_file: Path
    ) -> None:
        result = runner.invoke(cli, ["run", str(config_file)])

        assert result.exit_code == 1

    def test_given_incomplete_config_when_run_then_config_error(self, tmp_path: Path) -> None:
        """Missing required fields fail before anything starts."""
        # Given
        path = tmp_path / "config.yaml"
        path.write_text("watch:\n  path: export.xlsx\n")

        # When
        result = runner.invoke(cli, ["run", str(path)])

        # Then
        assert result.exit_code == 1
        assert "Missing required config field" in result.output


class TestServiceCommand:
    @patch("sheetsync.daemon.lifecycle.read_pid", return_value=4242)
    @patch("sheetsync.daemon.lifecycle.is_running", return_value=True)
    def test_given_already_running_when_service_then_refuses(
        self, _running: MagicMock, _pid: MagicMock, config_file: Path
    ) -> None:
        result = runner.invoke(cli, ["service", str(config_file)])

        assert result.exit_code == 1
        assert "Already running (PID 4242)" in result.output

    @patch("sheetsync.daemon.lifecycle.run_service", new_callable=AsyncMock, return_value=0)
    def test_given_not_running_when_service_then_runs(
        self, mock_run: AsyncMock, config_file: Path
    ) -> None:
        result = runner.invoke(cli, ["service", str(config_file)])

        assert result.exit_code == 0, result.output
        mock_run.assert_awaited_once()
