"""Gemini CLI writer: ~/.gemini/settings.json and ~/.gemini/.env."""

from __future__ import annotations

import logging
from pathlib import Path

from switchboard.errors import ParseError
from switchboard.files import read_json_object, write_json, write_text_atomic
from switchboard.models import Provider
from switchboard.writers.base import ConfigWriter, parse_model_meta, set_default, table

logger = logging.getLogger("switchboard.writers")


def parse_env(path: Path) -> dict[str, str]:
    """Read a dotenv file. Blank lines and # comments are ignored."""
    if not path.exists():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(path, str(e)) from e
    env = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ParseError(path, f"line {lineno}: expected KEY=VALUE")
        key, _, value = stripped.partition("=")
        env[key.strip()] = value.strip()
    return env


def dump_env(env: dict[str, str]) -> str:
    return "".join(f"{key}={env[key]}\n" for key in sorted(env))


def _set_or_remove(env: dict[str, str], key: str, value: str | None) -> None:
    if value:
        env[key] = value
    else:
        env.pop(key, None)


class GeminiWriter(ConfigWriter):
    def _write(self, provider: Provider) -> None:
        settings_path = self.paths.gemini_settings
        env_path = self.paths.gemini_env

        settings = read_json_object(settings_path)
        env = parse_env(env_path)

        ide = table(settings, "ide", settings_path)
        set_default(ide, "enabled", True)
        security = table(settings, "security", settings_path)
        auth = table(security, "auth", settings_path)
        set_default(auth, "selectedType", "gemini-api-key")

        _set_or_remove(env, "GOOGLE_GEMINI_BASE_URL", provider.base_url)
        _set_or_remove(env, "GEMINI_API_KEY", provider.api_key)

        meta = parse_model_meta(provider.model)
        if meta is not None:
            extra_env = meta.get("env")
            if isinstance(extra_env, dict):
                for key, value in extra_env.items():
                    env[str(key)] = str(value)
            default_model = meta.get("defaultModel")
            if default_model and "GEMINI_MODEL" not in (extra_env or {}):
                env["GEMINI_MODEL"] = str(default_model)
        elif provider.model and provider.model.strip():
            env["GEMINI_MODEL"] = provider.model.strip()

        write_json(settings_path, settings)
        write_text_atomic(env_path, dump_env(env))
        logger.info("Applied provider %r to %s", provider.name, env_path)

    @property
    def target_paths(self) -> list[Path]:
        return [self.paths.gemini_settings, self.paths.gemini_env]
