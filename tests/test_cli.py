"""Smoke tests for the CLI entrypoint."""

from click.testing import CliRunner

from opbot.cli import cli


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "opbot keeps track of chapter subscribers" in result.output
    for command in ("ping", "init", "subscribers", "chapter", "config"):
        assert command in result.output
