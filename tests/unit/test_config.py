"""
Unit tests for settings models and ConfigManager
"""

import json
import os

import pytest

from rqlitebrowser.config import BrowserSettings, ConfigManager, RqliteSettings
from rqlitebrowser.utils.exceptions import ConfigurationError


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = ConfigManager().load()

    assert settings.rqlite.url == "http://localhost:4001"
    assert settings.rqlite.timeout == 30.0
    assert settings.rqlite.console_timeout == 5.0
    assert settings.transfer.csv_batch_size == 1000
    assert settings.transfer.sql_batch_size == 500
    assert settings.transfer.page_size == 5000
    assert settings.transfer.concurrency == 3
    assert settings.transfer.max_pending_batches == 16


def test_url_trailing_slash_stripped():
    assert RqliteSettings(url="http://db:4001/").url == "http://db:4001"


def test_file_then_environment(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "custom.json"
    config_path.write_text(
        json.dumps(
            {
                "rqlite": {"url": "http://from-file:4001", "username": "file-user"},
                "transfer": {"page_size": 100, "max_pending_batches": None},
            }
        )
    )
    monkeypatch.setenv("RQLITE_URL", "http://from-env:4001")
    monkeypatch.setenv("RQLITEBROWSER_LOG_LEVEL", "DEBUG")

    settings = ConfigManager(config_path).load()

    assert settings.rqlite.url == "http://from-env:4001"
    assert settings.rqlite.username == "file-user"
    assert settings.transfer.page_size == 100
    assert settings.transfer.max_pending_batches is None
    assert settings.logging.level == "DEBUG"


def test_dotenv_file_is_read(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("RQLITE_USERNAME=dotenv-user\n")

    try:
        settings = ConfigManager(tmp_path / "absent.json").load()
        assert settings.rqlite.username == "dotenv-user"
    finally:
        os.environ.pop("RQLITE_USERNAME", None)


def test_save_and_reload(tmp_path):
    manager = ConfigManager(tmp_path / "nested" / "rqlitebrowser.json")
    settings = BrowserSettings()
    settings.transfer.concurrency = 5

    path = manager.save(settings)

    assert json.loads(path.read_text())["transfer"]["concurrency"] == 5
    assert ConfigManager(path).load().transfer.concurrency == 5


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2]",
        json.dumps({"rqlite": {"url": "not a url"}}),
        json.dumps({"transfer": {"page_size": 0}}),
    ],
)
def test_invalid_configuration(tmp_path, monkeypatch, content):
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "bad.json"
    config_path.write_text(content)

    with pytest.raises(ConfigurationError):
        ConfigManager(config_path).load()
