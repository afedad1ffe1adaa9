"""Built-in preset templates for each supported tool."""

from switchboard.models import PresetTemplate

PRESETS = {
    "codex": [
        {
            "name": "88Code",
            "base_url": "https://www.88code.org/openai/v1",
            "description": "88Code API service",
        },
    ],
    "claude": [
        {
            "name": "Anthropic Official",
            "base_url": "https://api.anthropic.com",
            "description": "Official Anthropic API",
        },
        {
            "name": "GMN",
            "base_url": "https://gmn.chuangzuoli.com/api",
            "description": "GMN service (Claude compatible)",
        },
    ],
    "gemini": [
        {
            "name": "Google Gemini (API Key)",
            "base_url": "",
            "description": "Official Gemini API, authenticated with GEMINI_API_KEY",
        },
        {
            "name": "GMN",
            "base_url": "https://gmn.chuangzuoli.cn/openai",
            "description": "GMN service (Codex/Gemini compatible)",
        },
    ],
    "opencode": [
        {
            "name": "GMN",
            "base_url": "https://gmn.chuangzuoli.com",
            "description": "GMN service (OpenCode compatible)",
        },
    ],
    "openclaw": [
        {
            "name": "GMN",
            "base_url": "https://gmn.chuangzuoli.com/v1",
            "description": "GMN service (OpenClaw compatible)",
        },
    ],
}


def get_presets(tool: str) -> list[PresetTemplate]:
    """Fresh built-in PresetTemplate objects for a tool (empty if it has none)."""
    return [PresetTemplate(is_built_in=True, **entry) for entry in PRESETS.get(tool, [])]
