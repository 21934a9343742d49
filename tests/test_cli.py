"""CLI tests — argument handling that needs no running server."""

from click.testing import CliRunner

from refauth.cli.main import main


def test_help_lists_commands():
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "init-db", "register", "login", "whoami", "reset-password"):
        assert command in result.output


def test_whoami_requires_token(monkeypatch):
    monkeypatch.delenv("REFAUTH_TOKEN", raising=False)
    result = CliRunner().invoke(main, ["whoami"])
    assert result.exit_code == 1
    assert "--token required" in result.output
