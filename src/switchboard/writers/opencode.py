"""OpenCode writer: ~/.config/opencode/opencode.json."""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path

from switchboard.files import read_json_object, write_json
from switchboard.models import Provider
from switchboard.writers.base import ConfigWriter, table

logger = logging.getLogger("switchboard.writers")

OPENCODE_SCHEMA = "https://opencode.ai/config.json"
DEFAULT_NPM_PACKAGE = "@ai-sdk/openai"

REASONING_EFFORTS = ("xhigh", "high", "medium", "low")

DEFAULT_MODELS = {
    "gpt-5.2-codex": {
        "variants": {
            effort: {
                "reasoningEffort": effort,
                "textVerbosity": "low",
                "reasoningSummary": "auto",
            }
            for effort in REASONING_EFFORTS
        }
    }
}


def provider_key(name: str) -> str:
    """Normalize a provider name into an opencode.json provider key."""
    key = re.sub(r"\s+", "-", name.strip().lower())
    key = re.sub(r"[^a-z0-9\-_]", "", key)
    return key or "provider"


def parse_meta(raw: str | None) -> dict:
    """Provider.model for OpenCode is either JSON {npm, models} or a bare npm package name."""
    if not raw or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {"npm": raw.strip()}
    return parsed if isinstance(parsed, dict) else {}


class OpenCodeWriter(ConfigWriter):
    def _write(self, provider: Provider) -> None:
        path = self.paths.opencode_config
        config = read_json_object(path)

        meta = parse_meta(provider.model)
        key = provider_key(provider.name)

        config["$schema"] = OPENCODE_SCHEMA
        providers = table(config, "provider", path)
        entry = table(providers, key, path)
        entry["npm"] = meta.get("npm") or DEFAULT_NPM_PACKAGE
        entry["name"] = provider.name

        options = table(entry, "options", path)
        options["baseURL"] = provider.base_url
        options["apiKey"] = provider.api_key

        if isinstance(meta.get("models"), dict):
            entry["models"] = meta["models"]
        elif "models" not in entry:
            entry["models"] = copy.deepcopy(DEFAULT_MODELS)

        write_json(path, config)
        logger.info("Applied provider %r to %s", provider.name, path)

    @property
    def target_paths(self) -> list[Path]:
        return [self.paths.opencode_config]
