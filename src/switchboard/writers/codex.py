"""Codex CLI writer: ~/.codex/config.toml and ~/.codex/auth.json."""

from __future__ import annotations

import logging
from pathlib import Path

from switchboard.backup import backup_bak
from switchboard.files import read_json_object, read_toml, write_json, write_toml
from switchboard.models import Provider
from switchboard.writers.base import ConfigWriter, set_default, table

logger = logging.getLogger("switchboard.writers")

GMN_HOST = "gmn.chuangzuoli.com"
GMN_PROVIDER_KEY = "gmn"
DEFAULT_MODEL = "gpt-5.2-codex"

TOP_LEVEL_DEFAULTS = {
    "model_reasoning_effort": "high",
    "model_verbosity": "high",
    "web_search": "live",
    "disable_response_storage": True,
    "windows_wsl_setup_acknowledged": True,
    "sandbox_mode": "workspace-write",
}

DEPRECATED_FEATURES = (
    "web_search_request",
    "plan_tool",
    "view_image_tool",
    "rmcp_client",
    "streamable_shell",
)


def provider_key(provider: Provider) -> str:
    """Key used under [model_providers] for this provider."""
    if GMN_HOST in provider.base_url.lower():
        return GMN_PROVIDER_KEY
    return provider.name


class CodexWriter(ConfigWriter):
    """Writes model_provider and its [model_providers.<key>] table."""

    def _write(self, provider: Provider) -> None:
        config_path = self.paths.codex_config
        auth_path = self.paths.codex_auth

        # Parse both before writing either.
        config = read_toml(config_path)
        auth = read_json_object(auth_path)

        key = provider_key(provider)
        config["model_provider"] = key
        if provider.model:
            config["model"] = provider.model
        else:
            set_default(config, "model", DEFAULT_MODEL)
        for name, value in TOP_LEVEL_DEFAULTS.items():
            set_default(config, name, value)

        sandbox = table(config, "sandbox_workspace_write", config_path)
        set_default(sandbox, "network_access", True)

        features = config.get("features")
        if isinstance(features, dict):
            for name in DEPRECATED_FEATURES:
                features.pop(name, None)
            if not features:
                del config["features"]

        providers = table(config, "model_providers", config_path)
        if key != provider.name:
            providers.pop(provider.name, None)
        entry = table(providers, key, config_path)
        entry["name"] = key
        entry["base_url"] = provider.base_url
        entry["wire_api"] = "responses"
        entry["requires_openai_auth"] = True

        write_toml(config_path, config)

        if auth_path.exists():
            backup_bak(auth_path)
        auth["OPENAI_API_KEY"] = provider.api_key
        write_json(auth_path, auth)

        logger.info("Applied provider %r to %s", provider.name, config_path)

    @property
    def target_paths(self) -> list[Path]:
        return [self.paths.codex_config, self.paths.codex_auth]
