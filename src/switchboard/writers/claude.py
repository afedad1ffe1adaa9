"""Claude Code writer: ~/.claude/settings.json."""

from __future__ import annotations

import logging
from pathlib import Path

from switchboard.files import read_json_object, write_json
from switchboard.models import Provider
from switchboard.writers.base import ConfigWriter, set_default, table

logger = logging.getLogger("switchboard.writers")

ENV_DEFAULTS = {
    "CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC": 1,
    "CLAUDE_CODE_MAX_OUTPUT_TOKENS": 32000,
}


class ClaudeWriter(ConfigWriter):
    def _write(self, provider: Provider) -> None:
        path = self.paths.claude_settings
        settings = read_json_object(path)

        env = table(settings, "env", path)
        env["ANTHROPIC_AUTH_TOKEN"] = provider.api_key
        env["ANTHROPIC_BASE_URL"] = provider.base_url
        for name, value in ENV_DEFAULTS.items():
            set_default(env, name, value)

        permissions = table(settings, "permissions", path)
        set_default(permissions, "allow", [])
        set_default(permissions, "deny", [])

        write_json(path, settings)
        logger.info("Applied provider %r to %s", provider.name, path)

    @property
    def target_paths(self) -> list[Path]:
        return [self.paths.claude_settings]
