"""Smoke tests for the crosscut CLI."""

import logging

from typer.testing import CliRunner

from crosscut.cli.main import LogLevel, app, configure_logging

runner = CliRunner()


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_help() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "crosscut" in result.output.lower()


def test_subcommands_listed_in_help() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for cmd in ("items", "session"):
        assert cmd in result.output


def test_session_subcommands_listed() -> None:
    result = runner.invoke(app, ["session", "--help"])
    assert result.exit_code == 0
    for cmd in ("start", "show", "next", "respond", "complete", "integrity", "events"):
        assert cmd in result.output


def test_configure_logging_sets_level() -> None:
    """--log-level maps onto the root logger."""
    configure_logging(LogLevel.debug)
    assert logging.getLogger().level == logging.DEBUG
    configure_logging(LogLevel.warning)
    assert logging.getLogger().level == logging.WARNING
