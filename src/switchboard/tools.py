"""The closed set of supported tools and their registry entries."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from switchboard.errors import ValidationError
from switchboard.models import PresetTemplate
from switchboard.presets import get_presets
from switchboard.writers import ClaudeWriter, CodexWriter, GeminiWriter, OpenClawWriter, OpenCodeWriter
from switchboard.writers.base import ConfigWriter


class Tool(str, Enum):
    CODEX = "codex"
    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENCODE = "opencode"
    OPENCLAW = "openclaw"


@dataclass(frozen=True)
class ToolSpec:
    tool: Tool
    display_name: str
    writer_cls: type[ConfigWriter]
    # Gemini's official API is addressed without a base URL.
    allows_empty_base_url: bool = False

    @property
    def storage_filename(self) -> str:
        return f"{self.tool.value}.json"

    @property
    def presets(self) -> list[PresetTemplate]:
        return get_presets(self.tool.value)


TOOLS: dict[Tool, ToolSpec] = {
    Tool.CODEX: ToolSpec(Tool.CODEX, "Codex", CodexWriter),
    Tool.CLAUDE: ToolSpec(Tool.CLAUDE, "Claude Code", ClaudeWriter),
    Tool.GEMINI: ToolSpec(Tool.GEMINI, "Gemini CLI", GeminiWriter, allows_empty_base_url=True),
    Tool.OPENCODE: ToolSpec(Tool.OPENCODE, "OpenCode", OpenCodeWriter),
    Tool.OPENCLAW: ToolSpec(Tool.OPENCLAW, "OpenClaw", OpenClawWriter),
}

_missing = set(Tool) - set(TOOLS)
if _missing:
    raise RuntimeError(f"tools without a registry entry: {sorted(t.value for t in _missing)}")

SYNC_TOOLS: tuple[Tool, ...] = tuple(Tool)


def parse_tool(name) -> Tool:
    """Tool for a name like "codex"; ValidationError for anything unsupported."""
    if isinstance(name, Tool):
        return name
    try:
        return Tool(str(name).strip().lower())
    except ValueError:
        supported = ", ".join(t.value for t in Tool)
        raise ValidationError(f"Unsupported tool: {name} (expected one of: {supported})") from None
