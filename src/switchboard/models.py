"""Provider records and per-tool storage documents."""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from typing import Any

from switchboard.errors import ParseError

_ID_ALPHABET = string.ascii_lowercase + string.digits

# Keys Provider maps explicitly; anything else on a stored record is kept in extra.
_PROVIDER_KEYS = {
    "id",
    "name",
    "baseUrl",
    "apiKey",
    "model",
    "desc",
    "createdAt",
    "updatedAt",
    "lastModified",
    "lastUsedAt",
}


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_id(tool: str) -> str:
    """Provider id: {tool}-{unixMillis}-{random6}."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{tool}-{now_ms()}-{suffix}"


@dataclass
class Provider:
    """A named API endpoint + credential profile for one tool."""

    id: str
    name: str
    base_url: str
    api_key: str
    created_at: int
    updated_at: int
    model: str | None = None
    desc: str | None = None
    last_used_at: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict) -> Provider:
        created = d.get("createdAt", 0)
        # Older stores only carry lastModified.
        updated = d.get("updatedAt", d.get("lastModified", created))
        return cls(
            id=d["id"],
            name=d["name"],
            base_url=d.get("baseUrl", ""),
            api_key=d.get("apiKey", ""),
            created_at=created,
            updated_at=updated,
            model=d.get("model"),
            desc=d.get("desc"),
            last_used_at=d.get("lastUsedAt"),
            extra={k: v for k, v in d.items() if k not in _PROVIDER_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "baseUrl": self.base_url,
            "apiKey": self.api_key,
        }
        if self.model is not None:
            d["model"] = self.model
        if self.desc is not None:
            d["desc"] = self.desc
        d["createdAt"] = self.created_at
        d["updatedAt"] = self.updated_at
        if self.last_used_at is not None:
            d["lastUsedAt"] = self.last_used_at
        d.update(self.extra)
        return d


@dataclass
class PresetTemplate:
    """A base URL template offered when adding a provider."""

    name: str
    base_url: str
    description: str = ""
    is_built_in: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> PresetTemplate:
        return cls(
            name=d["name"],
            base_url=d.get("baseUrl", ""),
            description=d.get("description", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        # isBuiltIn is a listing-time flag, never persisted.
        return {
            "name": self.name,
            "baseUrl": self.base_url,
            "description": self.description,
        }


@dataclass
class ToolStorage:
    """Contents of <store dir>/<tool>.json."""

    providers: list[Provider] = field(default_factory=list)
    current_provider_id: str | None = None
    presets: list[PresetTemplate] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def find(self, provider_id: str) -> Provider | None:
        for p in self.providers:
            if p.id == provider_id:
                return p
        return None

    def find_by_name(self, name: str) -> Provider | None:
        for p in self.providers:
            if p.name == name:
                return p
        return None

    @property
    def current(self) -> Provider | None:
        if not self.current_provider_id:
            return None
        return self.find(self.current_provider_id)

    @classmethod
    def from_dict(cls, d: dict, source: Any = "<storage>") -> ToolStorage:
        if not isinstance(d, dict):
            raise ParseError(source, "expected a JSON object")
        raw_providers = d.get("providers", [])
        if not isinstance(raw_providers, list):
            raise ParseError(source, "'providers' must be a list")
        try:
            providers = [Provider.from_dict(p) for p in raw_providers]
        except (KeyError, TypeError, AttributeError) as e:
            raise ParseError(source, f"malformed provider record: {e}") from e

        raw_presets = d.get("presets")
        presets = None
        if raw_presets is not None:
            try:
                presets = [PresetTemplate.from_dict(p) for p in raw_presets]
            except (KeyError, TypeError, AttributeError) as e:
                raise ParseError(source, f"malformed preset record: {e}") from e

        return cls(
            providers=providers,
            current_provider_id=d.get("currentProviderId"),
            presets=presets,
            extra={
                k: v
                for k, v in d.items()
                if k not in ("providers", "currentProviderId", "presets")
            },
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.current_provider_id:
            data["currentProviderId"] = self.current_provider_id
        data["providers"] = [p.to_dict() for p in self.providers]
        if self.presets is not None:
            data["presets"] = [p.to_dict() for p in self.presets]
        data.update(self.extra)
        return data


def mask_api_key(api_key: str, visible_chars: int = 4) -> str:
    """Mask an API key for safe display.

    Example: ``"sk-abcdefghijk"`` -> ``"sk-*******hijk"``
    """
    if not api_key:
        return ""
    if len(api_key) <= visible_chars:
        return "*" * len(api_key)
    prefix = api_key[:3] if len(api_key) > 3 else ""
    suffix = api_key[-visible_chars:]
    hidden_len = len(api_key) - len(prefix) - visible_chars
    return f"{prefix}{'*' * max(hidden_len, 4)}{suffix}"
