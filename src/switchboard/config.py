"""Configuration management: filesystem layout and sync settings."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from switchboard.errors import ParseError
from switchboard.files import read_json_object, write_json

ROOT_ENV_VAR = "SWITCHBOARD_ROOT"
STORE_DIRNAME = ".switchboard"
CONFIG_VERSION = 1

AUTH_TYPES = ("password", "digest")


@dataclass(frozen=True)
class Paths:
    """Every location switchboard reads or writes, derived from one root.

    Production code uses Paths.default(); tests build Paths(tmp_path) so each
    test gets an isolated store and isolated tool config files.
    """

    root: Path

    @classmethod
    def default(cls) -> Paths:
        override = os.environ.get(ROOT_ENV_VAR)
        if override:
            return cls(Path(override).expanduser())
        return cls(Path.home())

    @property
    def store_dir(self) -> Path:
        return self.root / STORE_DIRNAME

    @property
    def config_file(self) -> Path:
        return self.store_dir / "config.json"

    def storage_file(self, tool: str) -> Path:
        return self.store_dir / f"{tool}.json"

    # Native tool config locations

    @property
    def codex_config(self) -> Path:
        return self.root / ".codex" / "config.toml"

    @property
    def codex_auth(self) -> Path:
        return self.root / ".codex" / "auth.json"

    @property
    def claude_settings(self) -> Path:
        return self.root / ".claude" / "settings.json"

    @property
    def gemini_settings(self) -> Path:
        return self.root / ".gemini" / "settings.json"

    @property
    def gemini_env(self) -> Path:
        return self.root / ".gemini" / ".env"

    @property
    def opencode_config(self) -> Path:
        return self.root / ".config" / "opencode" / "opencode.json"

    @property
    def openclaw_config(self) -> Path:
        return self.root / ".openclaw" / "openclaw.json"

    @property
    def openclaw_models(self) -> Path:
        return self.root / ".openclaw" / "agents" / "main" / "agent" / "models.json"


@dataclass
class SyncConfig:
    """WebDAV connection settings plus the (optionally remembered) sync password."""

    webdav_url: str
    username: str
    password: str
    auth_type: str = "password"
    remote_dir: str = "/"
    sync_password: str | None = None
    remember_sync_password: bool = False
    last_sync: int | None = None


@dataclass
class AppConfig:
    """Root configuration object stored in <store dir>/config.json."""

    version: int = CONFIG_VERSION
    sync: SyncConfig | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def _sync_from_dict(d: dict) -> SyncConfig:
    return SyncConfig(
        webdav_url=d.get("webdavUrl", ""),
        username=d.get("username", ""),
        password=d.get("password", ""),
        auth_type=d.get("authType", "password"),
        remote_dir=d.get("remoteDir", "/"),
        sync_password=d.get("syncPassword"),
        remember_sync_password=d.get("rememberSyncPassword", False),
        last_sync=d.get("lastSync"),
    )


def _sync_to_dict(s: SyncConfig) -> dict[str, Any]:
    sd: dict[str, Any] = {
        "webdavUrl": s.webdav_url,
        "username": s.username,
        "password": s.password,
        "authType": s.auth_type,
        "remoteDir": s.remote_dir,
    }
    if s.remember_sync_password:
        sd["rememberSyncPassword"] = True
        if s.sync_password:
            sd["syncPassword"] = s.sync_password
    if s.last_sync is not None:
        sd["lastSync"] = s.last_sync
    return sd


def load_app_config(paths: Paths) -> AppConfig:
    """Load config from disk. Returns empty AppConfig if file doesn't exist."""
    data = read_json_object(paths.config_file)
    sync_raw = data.pop("sync", None)
    if sync_raw is not None and not isinstance(sync_raw, dict):
        raise ParseError(paths.config_file, "'sync' must be an object")
    return AppConfig(
        version=data.pop("version", CONFIG_VERSION),
        sync=_sync_from_dict(sync_raw) if sync_raw else None,
        extra=data,
    )


def save_app_config(config: AppConfig, paths: Paths) -> None:
    """Save config to disk. Unknown top-level keys are written back untouched."""
    data: dict[str, Any] = {"version": config.version, **config.extra}
    if config.sync:
        data["sync"] = _sync_to_dict(config.sync)
    write_json(paths.config_file, data)


def load_sync_config(paths: Paths) -> SyncConfig | None:
    return load_app_config(paths).sync


def save_sync_config(sync: SyncConfig, paths: Paths) -> None:
    """Persist WebDAV settings. The sync password is kept only if remembered."""
    config = load_app_config(paths)
    config.sync = sync
    save_app_config(config, paths)


def delete_sync_config(paths: Paths) -> None:
    config = load_app_config(paths)
    config.sync = None
    save_app_config(config, paths)


def touch_last_sync(paths: Paths) -> None:
    config = load_app_config(paths)
    if config.sync:
        config.sync.last_sync = int(time.time() * 1000)
        save_app_config(config, paths)
