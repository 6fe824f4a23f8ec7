"""
Unit tests for the rqlitebrowser CLI module

Tests for all CLI commands: --version, init, health, connections, tables,
import and export
"""

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from rqlitebrowser import cli
from rqlitebrowser.cli import cmd_health, cmd_init, cmd_version, get_version, main


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run in a temp dir with a config whose connections db lives there too"""
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "rqlitebrowser.json"
    config_path.write_text(
        json.dumps({"connections_db": f"sqlite:///{tmp_path/'connections.db'}"})
    )
    return tmp_path


@pytest.fixture
def fake_client(monkeypatch, fake_rqlite):
    monkeypatch.setattr(
        cli, "_make_client", lambda settings, connection_name=None: fake_rqlite.client()
    )
    return fake_rqlite


class TestGetVersion:
    def test_get_version_returns_string(self):
        version = get_version()
        assert isinstance(version, str)
        assert version == "unknown" or "." in version


class TestVersionCommand:
    def test_cmd_version_output(self, capsys):
        exit_code = cmd_version(MagicMock())

        captured = capsys.readouterr()
        assert exit_code == 0
        assert "rqlitebrowser version" in captured.out.lower()

    def test_version_flag_via_main(self, capsys):
        with patch.object(sys, "argv", ["rqlitebrowser", "--version"]):
            exit_code = main()

        assert exit_code == 0
        assert "version" in capsys.readouterr().out.lower()


class TestInitCommand:
    def test_init_creates_valid_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        args = MagicMock()
        args.force = False

        exit_code = cmd_init(args)

        assert exit_code == 0
        config = json.loads((tmp_path / "rqlitebrowser.json").read_text())
        assert config["rqlite"]["url"] == "http://localhost:4001"
        assert config["transfer"]["csv_batch_size"] == 1000
        assert "next steps" in capsys.readouterr().out.lower()

    def test_init_fails_if_file_exists_without_force(self, workspace, capsys):
        args = MagicMock()
        args.force = False

        assert cmd_init(args) == 1
        assert "already exists" in capsys.readouterr().out.lower()

    def test_init_overwrites_with_force_flag(self, workspace, capsys):
        args = MagicMock()
        args.force = True

        assert cmd_init(args) == 0
        assert "overwritten" in capsys.readouterr().out.lower()
        config = json.loads((workspace / "rqlitebrowser.json").read_text())
        assert "rqlite" in config


class TestHealthCommand:
    def test_health_without_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        args = MagicMock()
        args.config = None
        args.check_db = False

        exit_code = cmd_health(args)

        output = capsys.readouterr().out.lower()
        assert exit_code == 0
        assert "health check" in output
        assert "not found" in output
        assert "httpx" in output

    def test_health_detects_invalid_json(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "rqlitebrowser.json").write_text("{invalid json content")
        args = MagicMock()
        args.config = None
        args.check_db = False

        assert cmd_health(args) != 0
        assert "invalid" in capsys.readouterr().out.lower()

    def test_health_check_db_failure(self, workspace, capsys):
        (workspace / "bad.json").write_text(
            json.dumps({"rqlite": {"url": "http://127.0.0.1:9", "timeout": 0.5}})
        )

        exit_code = main(["health", "--config", "bad.json", "--check-db"])

        assert exit_code == 1
        assert "could not reach" in capsys.readouterr().out.lower()


class TestConnectionsCommand:
    def test_add_list_remove(self, workspace, capsys):
        assert main(["connections", "add", "local", "http://localhost:4001", "--skip-check"]) == 0
        assert main(["connections", "add", "local", "http://other:4001", "--skip-check"]) == 1
        capsys.readouterr()

        assert main(["connections", "list"]) == 0
        output = capsys.readouterr().out
        assert "local\thttp://localhost:4001" in output

        assert main(["connections", "remove", "local"]) == 0
        assert main(["connections", "remove", "local"]) == 1
        capsys.readouterr()
        main(["connections", "list"])
        assert "no saved connections" in capsys.readouterr().out.lower()

    def test_add_checks_before_saving(self, workspace, monkeypatch, capsys):
        async def unreachable(self):
            return False

        monkeypatch.setattr(cli.RqliteClient, "test_connection", unreachable)

        assert main(["connections", "add", "down", "http://down:4001"]) == 1
        assert "not saved" in capsys.readouterr().out
        main(["connections", "list"])
        assert "down" not in capsys.readouterr().out

    def test_unknown_saved_connection(self, workspace, capsys):
        assert main(["tables", "--connection", "missing"]) == 1
        assert "no saved connection" in capsys.readouterr().out.lower()


class TestTransferCommands:
    def test_tables(self, workspace, fake_client, capsys):
        fake_client.db.execute("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT)")
        fake_client.db.execute("INSERT INTO people VALUES (1, 'a'), (2, 'b')")

        assert main(["tables"]) == 0
        assert "people\t2" in capsys.readouterr().out

    def test_import_then_export(self, workspace, fake_client, capsys):
        fake_client.db.execute("CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT)")
        source = workspace / "people.csv"
        source.write_text('id,name\n1,Alice\n2,"Bob, Jr."\n')

        assert main(["import", str(source), "--table", "people", "--quiet"]) == 0
        assert "2 row(s) inserted" in capsys.readouterr().out
        assert fake_client.count("people") == 2

        target = workspace / "out.sql"
        assert main(["export", "--table", "people", "--output", str(target)]) == 0
        assert "Exported 2 row(s)" in capsys.readouterr().out
        assert "VALUES (2, 'Bob, Jr.');" in target.read_text()

    def test_import_error_exit_code(self, workspace, fake_client, capsys):
        source = workspace / "people.csv"
        source.write_text("id,name\n1,Alice\n")

        assert main(["import", str(source), "--table", "missing", "--quiet"]) == 1
        assert "no such table" in capsys.readouterr().out

    def test_export_of_empty_table(self, workspace, fake_client, capsys):
        fake_client.db.execute("CREATE TABLE empty (id INTEGER)")

        assert main(["export", "--table", "empty", "--output", "e.csv", "--quiet"]) == 0
        assert "nothing written" in capsys.readouterr().out
