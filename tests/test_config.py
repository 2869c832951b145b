"""Tests for YAML configuration loading."""

import pytest
from pydantic import ValidationError

from sheetchat.config import SheetChatConfig, load_config, resolve_env_vars


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


def write(path, text):
    path.write_text(text)
    return path


def test_defaults_without_file():
    config = load_config()
    assert config == SheetChatConfig()
    assert config.agent.max_steps == 10
    assert config.storage.database_url is None


def test_explicit_file(tmp_path):
    path = write(tmp_path / "custom.yaml", "agent:\n  max_steps: 4\nserver:\n  port: 9000\n")
    config = load_config(str(path))
    assert config.agent.max_steps == 4
    assert config.server.port == 9000
    assert config.server.host == "127.0.0.1"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_discovers_file_in_working_directory(tmp_path):
    write(tmp_path / "sheetchat.yaml", "agent:\n  model: claude-test\n")
    assert load_config().agent.model == "claude-test"


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = write(tmp_path / "env.yaml", "agent:\n  max_tokens: 512\n")
    monkeypatch.setenv("SHEETCHAT_CONFIG_PATH", str(path))
    assert load_config().agent.max_tokens == 512


def test_env_var_references(tmp_path, monkeypatch):
    monkeypatch.setenv("SHEET_DB", "sqlite:///tmp/x.db")
    path = write(tmp_path / "c.yaml", "storage:\n  database_url: '${SHEET_DB}'\n")
    assert load_config(str(path)).storage.database_url == "sqlite:///tmp/x.db"


def test_missing_env_var_resolves_empty(monkeypatch):
    monkeypatch.delenv("SHEETCHAT_UNSET_VALUE", raising=False)
    assert resolve_env_vars("a${SHEETCHAT_UNSET_VALUE}b") == "ab"


def test_env_overrides_beat_file(tmp_path, monkeypatch):
    path = write(tmp_path / "c.yaml", "agent:\n  max_steps: 4\n")
    monkeypatch.setenv("SHEETCHAT_AGENT_MAX_STEPS", "7")
    assert load_config(str(path)).agent.max_steps == 7


def test_unrelated_env_vars_ignored(monkeypatch):
    monkeypatch.setenv("SHEETCHAT_NOPE_FIELD", "1")
    monkeypatch.setenv("SHEETCHAT_AGENT_UNKNOWN", "1")
    assert load_config() == SheetChatConfig()


def test_invalid_values(tmp_path):
    path = write(tmp_path / "c.yaml", "agent:\n  max_steps: 0\n")
    with pytest.raises(ValidationError):
        load_config(str(path))


def test_empty_file(tmp_path):
    path = write(tmp_path / "c.yaml", "")
    assert load_config(str(path)) == SheetChatConfig()
