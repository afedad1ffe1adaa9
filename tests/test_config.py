"""Tests for paths and sync config loading and saving."""

import json
import stat

import pytest

from switchboard.config import (
    AppConfig,
    Paths,
    SyncConfig,
    delete_sync_config,
    load_app_config,
    load_sync_config,
    save_app_config,
    save_sync_config,
    touch_last_sync,
)
from switchboard.errors import ParseError


class TestPaths:
    def test_default_uses_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SWITCHBOARD_ROOT", str(tmp_path))
        assert Paths.default().root == tmp_path

    def test_default_falls_back_to_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("SWITCHBOARD_ROOT", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert Paths.default().root == tmp_path

    def test_derived_locations(self, tmp_path):
        paths = Paths(tmp_path)
        assert paths.storage_file("codex") == tmp_path / ".switchboard" / "codex.json"
        assert paths.codex_config == tmp_path / ".codex" / "config.toml"
        assert paths.gemini_env == tmp_path / ".gemini" / ".env"
        assert paths.opencode_config == tmp_path / ".config" / "opencode" / "opencode.json"
        assert paths.openclaw_models.parts[-4:] == ("agents", "main", "agent", "models.json")


class TestAppConfig:
    def test_load_missing_file(self, paths):
        config = load_app_config(paths)
        assert config.version == 1
        assert config.sync is None

    def test_sync_roundtrip(self, paths, sync_config):
        save_sync_config(sync_config, paths)
        loaded = load_sync_config(paths)

        assert loaded.webdav_url == sync_config.webdav_url
        assert loaded.username == "alice"
        assert loaded.password == "secret"
        assert loaded.auth_type == "password"
        assert loaded.remote_dir == "/switchboard"

    def test_sync_password_dropped_unless_remembered(self, paths, sync_config):
        sync_config.sync_password = "hunter2"
        save_sync_config(sync_config, paths)
        raw = json.loads(paths.config_file.read_text())
        assert "syncPassword" not in raw["sync"]

        sync_config.remember_sync_password = True
        save_sync_config(sync_config, paths)
        raw = json.loads(paths.config_file.read_text())
        assert raw["sync"]["syncPassword"] == "hunter2"
        assert load_sync_config(paths).sync_password == "hunter2"

    def test_unknown_keys_preserved(self, paths):
        paths.store_dir.mkdir(parents=True)
        paths.config_file.write_text(json.dumps({"version": 1, "theme": "dark"}))

        save_sync_config(SyncConfig("https://dav", "u", "p"), paths)
        raw = json.loads(paths.config_file.read_text())
        assert raw["theme"] == "dark"
        assert raw["sync"]["webdavUrl"] == "https://dav"

    def test_delete_sync_config(self, paths, sync_config):
        save_sync_config(sync_config, paths)
        delete_sync_config(paths)
        assert load_sync_config(paths) is None

    def test_touch_last_sync(self, paths, sync_config):
        save_sync_config(sync_config, paths)
        touch_last_sync(paths)
        assert load_sync_config(paths).last_sync > 0

    def test_invalid_json_raises(self, paths):
        paths.store_dir.mkdir(parents=True)
        paths.config_file.write_text("{not json")
        with pytest.raises(ParseError) as exc:
            load_app_config(paths)
        assert str(paths.config_file) in str(exc.value)

    def test_file_is_owner_only(self, paths):
        save_app_config(AppConfig(), paths)
        mode = stat.S_IMODE(paths.config_file.stat().st_mode)
        assert mode == 0o600
        assert stat.S_IMODE(paths.store_dir.stat().st_mode) == 0o700
