"""Tests for settings resolution."""

from __future__ import annotations

import json

import pytest

from linecli.config import (
    Settings,
    build_settings,
    config_paths,
    data_dir,
    default_config_path,
    example_config,
    load_config,
    sanitize_base_url,
)
from linecli.exceptions import ConfigError


def _write_config(tmp_path, data) -> None:
    path = tmp_path / "config" / "line-cli" / "config.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data))


class TestPaths:
    def test_data_dir_honours_xdg(self, tmp_path):
        assert data_dir() == tmp_path / "data" / "line-cli"

    def test_search_order(self, tmp_path):
        assert config_paths() == [
            tmp_path / "config" / "line-cli" / "config.json",
            tmp_path / "home" / ".config" / "line-cli" / "config.json",
            tmp_path / "home" / ".line-cli.json",
        ]

    def test_without_xdg(self, tmp_path, monkeypatch):
        monkeypatch.delenv("XDG_CONFIG_HOME")
        assert config_paths()[0] == tmp_path / "home" / ".config" / "line-cli" / "config.json"
        assert default_config_path() == config_paths()[0]

    def test_sanitize_base_url(self):
        assert sanitize_base_url("https://api.line.me/") == "https://api.line.me"


class TestLoadConfig:
    def test_no_file(self):
        assert load_config() == ({}, None)

    def test_first_match_wins(self, tmp_path):
        _write_config(tmp_path, {"account": "xdg"})
        (tmp_path / "home" / ".line-cli.json").write_text(json.dumps({"account": "legacy"}))
        data, path = load_config()
        assert data == {"account": "xdg"}
        assert path == tmp_path / "config" / "line-cli" / "config.json"

    def test_legacy_file(self, tmp_path):
        (tmp_path / "home" / ".line-cli.json").write_text(json.dumps({"output": "json"}))
        data, path = load_config()
        assert data == {"output": "json"}
        assert path.name == ".line-cli.json"

    def test_corrupt_file(self, tmp_path):
        _write_config(tmp_path, "{not json")
        with pytest.raises(ConfigError, match="failed to read config file"):
            load_config()

    def test_non_object_file(self, tmp_path):
        _write_config(tmp_path, "[1, 2]")
        with pytest.raises(ConfigError, match="JSON object"):
            load_config()


class TestBuildSettings:
    def test_defaults(self):
        assert build_settings() == Settings()

    def test_file_values(self, tmp_path):
        _write_config(tmp_path, {"account": "work", "output": "table", "debug": True, "credential_backend": "file"})
        settings = build_settings()
        assert settings.account == "work"
        assert settings.output == "table"
        assert settings.debug is True
        assert settings.credential_backend == "file"
        assert settings.config_path is not None

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        _write_config(tmp_path, {"account": "work", "output": "table"})
        monkeypatch.setenv("LINE_ACCOUNT", "env-acct")
        monkeypatch.setenv("LINE_OUTPUT", "json")
        settings = build_settings()
        assert settings.account == "env-acct"
        assert settings.output == "json"

    def test_flag_overrides_env(self, monkeypatch):
        monkeypatch.setenv("LINE_ACCOUNT", "env-acct")
        monkeypatch.setenv("LINE_CREDENTIAL_BACKEND", "keyring")
        settings = build_settings(account="flag-acct", backend="file")
        assert settings.account == "flag-acct"
        assert settings.credential_backend == "file"

    def test_invalid_output(self):
        with pytest.raises(ConfigError, match="invalid output format"):
            build_settings(output="yaml")

    def test_invalid_backend_from_env(self, monkeypatch):
        monkeypatch.setenv("LINE_CREDENTIAL_BACKEND", "vault")
        with pytest.raises(ConfigError, match="invalid credential backend"):
            build_settings()


def test_example_config_is_valid_json():
    data = json.loads(example_config())
    assert set(data) == {"account", "output", "debug", "credential_backend"}
