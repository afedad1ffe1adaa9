"""OpenClaw writer: ~/.openclaw/openclaw.json and the main agent's models.json."""

from __future__ import annotations

import copy
import logging
from pathlib import Path

from switchboard.files import read_json_object, write_json
from switchboard.models import Provider
from switchboard.writers.base import ConfigWriter, set_default, table

logger = logging.getLogger("switchboard.writers")

DEFAULT_PROVIDER_NAME = "gmn"
API = "openai-responses"
PRIMARY_MODEL = "gpt-5.3-codex"

HEADERS = {
    "User-Agent": "curl/8.0",
    "OpenAI-Beta": "responses=v1",
}


def _model(model_id: str) -> dict:
    return {
        "id": model_id,
        "name": model_id,
        "api": API,
        "reasoning": False,
        "input": ["text"],
        "cost": {"input": 0, "output": 0, "cacheRead": 0, "cacheWrite": 0},
        "contextWindow": 200000,
        "maxTokens": 8192,
    }


DEFAULT_MODELS = [_model("gpt-5.3-codex"), _model("gpt-5.2-codex")]


def _apply_provider_entry(entry: dict, provider: Provider) -> None:
    entry["baseUrl"] = provider.base_url
    entry["apiKey"] = provider.api_key
    entry["api"] = API
    entry["authHeader"] = True
    set_default(entry, "headers", dict(HEADERS))
    set_default(entry, "models", copy.deepcopy(DEFAULT_MODELS))


class OpenClawWriter(ConfigWriter):
    def _write(self, provider: Provider) -> None:
        config_path = self.paths.openclaw_config
        models_path = self.paths.openclaw_models
        name = provider.name.strip() or DEFAULT_PROVIDER_NAME

        config = read_json_object(config_path)
        models_doc = read_json_object(models_path)

        models = table(config, "models", config_path)
        set_default(models, "mode", "merge")
        entry = table(table(models, "providers", config_path), name, config_path)
        _apply_provider_entry(entry, provider)

        agents = table(config, "agents", config_path)
        defaults = table(agents, "defaults", config_path)
        workspace = defaults.get("workspace")
        if not isinstance(workspace, str) or not workspace.strip():
            defaults["workspace"] = str(self.paths.root)
        model = table(defaults, "model", config_path)
        model["primary"] = f"{name}/{PRIMARY_MODEL}"
        set_default(defaults, "thinkingDefault", "xhigh")

        agent_entry = table(table(models_doc, "providers", models_path), name, models_path)
        _apply_provider_entry(agent_entry, provider)

        write_json(config_path, config)
        write_json(models_path, models_doc)
        logger.info("Applied provider %r to %s", name, config_path)

    @property
    def target_paths(self) -> list[Path]:
        return [self.paths.openclaw_config, self.paths.openclaw_models]
