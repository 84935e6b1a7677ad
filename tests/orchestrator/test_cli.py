"""
Tests for the Orchestrator CLI.
"""

import json
from unittest.mock import patch

import pytest

from orchestrator.cli import build_config, create_parser, main, validate_args


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep the CLI from reconfiguring the root logger under pytest."""
    with patch("orchestrator.cli.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'eventhive.db'}"


class TestParser:
    """Tests for argument parsing and config building."""

    def test_defaults(self):
        args = create_parser().parse_args([])

        assert args.database is None
        assert args.url is None
        assert args.drop_existing is False
        assert args.sample_limit is None
        assert args.log_format == "text"

    def test_validate_sample_limit(self):
        args = create_parser().parse_args(["--sample-limit", "0"])

        assert validate_args(args) == ["--sample-limit must be at least 1"]

    def test_cli_overrides_environment(self, monkeypatch, sqlite_url):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///from_env.db")
        monkeypatch.setenv("DB_NAME", "from_env")
        monkeypatch.setenv("BOOTSTRAP_SAMPLE_LIMIT", "7")
        args = create_parser().parse_args([
            "--url", sqlite_url,
            "--database", "eventhive_cli",
            "--drop-existing",
            "--log-level", "WARNING",
        ])

        config = build_config(args)

        assert config.database.url == sqlite_url
        assert config.database.database == "eventhive_cli"
        assert config.drop_existing is True
        assert config.sample_limit == 7
        assert config.log_level == "WARNING"

    def test_environment_used_without_flags(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///from_env.db")
        monkeypatch.delenv("DB_NAME", raising=False)

        config = build_config(create_parser().parse_args([]))

        assert config.database.url == "sqlite:///from_env.db"
        assert config.database.database == "eventhive"


class TestMain:
    """Tests for the main entry point."""

    def test_success_exit_code(self, sqlite_url, capsys, quiet_logging):
        assert main(["--url", sqlite_url]) == 0

        out = capsys.readouterr().out
        assert "BOOTSTRAP COMPLETE" in out
        assert "tickets" in out
        quiet_logging.assert_called_once()

    def test_rerun_exit_code(self, sqlite_url):
        assert main(["--url", sqlite_url]) == 0
        assert main(["--url", sqlite_url]) == 0

    def test_failure_exit_code(self, tmp_path, capsys):
        url = f"sqlite:///{tmp_path / 'missing' / 'eventhive.db'}"

        assert main(["--url", url]) == 1
        assert "BOOTSTRAP FAILED at phase: connect" in capsys.readouterr().out

    def test_invalid_args_exit_code(self, capsys):
        assert main(["--sample-limit", "0"]) == 1
        assert "--sample-limit" in capsys.readouterr().err

    def test_malformed_environment(self, sqlite_url, monkeypatch, capsys):
        monkeypatch.setenv("BOOTSTRAP_SAMPLE_LIMIT", "many")

        assert main(["--url", sqlite_url]) == 1
        assert "BOOTSTRAP_SAMPLE_LIMIT" in capsys.readouterr().err

    def test_invalid_database_name(self, sqlite_url, capsys):
        assert main(["--url", sqlite_url, "--database", "bad-name"]) == 1
        assert "database" in capsys.readouterr().err

    def test_json_output(self, sqlite_url, capsys):
        assert main(["--url", sqlite_url, "--json"]) == 0

        out = capsys.readouterr().out
        data = json.loads(out[out.index("{"):])
        assert data["success"] is True
        assert data["creation_order"][0] == "users"

    def test_show_order(self, capsys):
        assert main(["--show-order"]) == 0

        lines = [line for line in capsys.readouterr().out.splitlines() if "depends on" in line]
        assert len(lines) == 10
        assert "users" in lines[0]
        assert "event_templates" in lines[-1]
