"""Tests for argument parsing and the process entry point."""

import socket
from pathlib import Path

import pytest

from bot_load_tester import main, parse_arguments, resolve_config


def closed_port_url() -> str:
    """URL of a local port nothing listens on"""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/predict"


class TestParseArguments:
    """Flag parsing and config resolution."""

    @pytest.mark.cli
    def test_unset_flags_are_none(self) -> None:
        args = parse_arguments(["--api", "http://x"])

        assert args.bots is None
        assert args.interval is None
        assert args.one_in_flight is None
        assert args.no_ui is False

    @pytest.mark.cli
    def test_cli_overrides_environment(self) -> None:
        args = parse_arguments(["--api", "http://cli", "--bots", "5", "--interval", "2",
                                "--data", "pixels.csv", "--one-in-flight", "--no-ui"])

        config = resolve_config(args, environ={"LOADBOT_TARGET_API": "http://env", "LOADBOT_BOTS_COUNT": "3"})

        assert config.api == "http://cli"
        assert config.bots == 5
        assert config.interval == 2.0
        assert config.data_path == "pixels.csv"
        assert config.one_in_flight is True
        assert config.ui_enabled is False

    @pytest.mark.cli
    def test_environment_fills_missing_flags(self) -> None:
        args = parse_arguments([])

        config = resolve_config(args, environ={"LOADBOT_TARGET_API": "http://env", "LOADBOT_BOTS_COUNT": "3"})

        assert config.api == "http://env"
        assert config.bots == 3
        assert config.data_path == "Assets/Data/data.json"

    @pytest.mark.cli
    def test_interval_must_be_an_integer(self) -> None:
        with pytest.raises(SystemExit):
            parse_arguments(["--api", "http://x", "--interval", "fast"])


class TestMain:
    """Exit codes of the entry point."""

    @pytest.mark.cli
    def test_missing_api_exits_with_error(self, monkeypatch) -> None:
        monkeypatch.delenv("LOADBOT_TARGET_API", raising=False)

        assert main(["--data", "whatever.json"]) == 1

    @pytest.mark.cli
    def test_load_error_exits_before_starting(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("[[1, 2], [3,")

        code = main(["--api", "http://localhost:1/predict", "--data", str(bad),
                     "--log-file", str(tmp_path / "run.log"), "--no-ui"])

        assert code == 1
        assert "Failed to load samples" in (tmp_path / "run.log").read_text()

    @pytest.mark.cli
    def test_verbose_logs_resolved_configuration(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("[]")
        log_file = tmp_path / "run.log"

        code = main(["--api", "http://localhost:1/predict", "--data", str(bad), "--bots", "3",
                     "--log-file", str(log_file), "--no-ui", "--verbose"])

        assert code == 1
        text = log_file.read_text()
        assert "Resolved configuration: {'api': 'http://localhost:1/predict', 'bots': 3" in text
        assert "'ui_enabled': False" in text

    @pytest.mark.cli
    def test_headless_run_against_closed_port(self, csv_samples_path: Path, tmp_path: Path) -> None:
        log_file = tmp_path / "run.log"

        code = main(["--api", closed_port_url(), "--data", str(csv_samples_path),
                     "--interval", "1", "--duration", "1.5", "--drain-timeout", "2",
                     "--log-file", str(log_file), "--no-ui"])

        assert code == 0
        text = log_file.read_text()
        assert "All bots stopped." in text
        assert "Final metrics - Total: 1 | Success: 0 | Failed: 1" in text
