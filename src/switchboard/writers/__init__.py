"""Config writers that apply a provider to each tool's native config files."""

from switchboard.config import Paths
from switchboard.writers.base import ConfigWriter
from switchboard.writers.claude import ClaudeWriter
from switchboard.writers.codex import CodexWriter
from switchboard.writers.gemini import GeminiWriter
from switchboard.writers.openclaw import OpenClawWriter
from switchboard.writers.opencode import OpenCodeWriter


def create_writer(tool, paths: Paths) -> ConfigWriter:
    """Factory: create the writer for a tool (a Tool member or its name)."""
    # tools imports the writer classes above, so it is looked up at call time.
    from switchboard.tools import TOOLS, parse_tool

    return TOOLS[parse_tool(tool)].writer_cls(paths)
