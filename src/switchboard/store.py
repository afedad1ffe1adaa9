"""Provider Store: per-tool provider CRUD, presets, and switching."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlsplit

from switchboard.config import Paths
from switchboard.errors import NameConflictError, NotFoundError, ValidationError
from switchboard.files import read_json, write_json
from switchboard.models import PresetTemplate, Provider, ToolStorage, generate_id, now_ms
from switchboard.tools import TOOLS, parse_tool
from switchboard.writers import create_writer
from switchboard.writers.base import ConfigWriter

logger = logging.getLogger("switchboard.store")

CLONE_OVERRIDES = ("base_url", "api_key", "model", "desc")


def load_storage(path: Path) -> ToolStorage:
    """Read a <tool>.json document. A missing file is an empty storage."""
    data = read_json(path)
    if data is None:
        return ToolStorage()
    return ToolStorage.from_dict(data, source=path)


def save_storage(path: Path, storage: ToolStorage) -> None:
    write_json(path, storage.to_dict())


def validate_base_url(url: str, allow_empty: bool = False) -> None:
    if not url:
        if allow_empty:
            return
        raise ValidationError("base URL must not be empty")
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ValidationError(f"invalid base URL '{url}': expected http(s)://host[...]")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip()


def _optional(value: str | None) -> str | None:
    """Trim an optional field; an empty string clears it."""
    value = _clean(value)
    return value or None


class ProviderStore:
    """Provider records for one tool, persisted in <store dir>/<tool>.json.

    Only switch() and apply() touch the tool's native config, except that
    editing the active provider re-applies it.
    """

    def __init__(self, tool, paths: Paths, writer: ConfigWriter | None = None):
        self.tool = parse_tool(tool)
        self.spec = TOOLS[self.tool]
        self.paths = paths
        self._writer = writer

    @property
    def writer(self) -> ConfigWriter:
        if self._writer is None:
            self._writer = create_writer(self.tool, self.paths)
        return self._writer

    @property
    def storage_path(self) -> Path:
        return self.paths.storage_file(self.tool.value)

    def load(self) -> ToolStorage:
        return load_storage(self.storage_path)

    def save(self, storage: ToolStorage) -> None:
        save_storage(self.storage_path, storage)

    # -- validation --

    def _validate(self, name: str, base_url: str, api_key: str) -> None:
        if not name:
            raise ValidationError(f"{self.tool.value}: provider name must not be empty")
        validate_base_url(base_url, allow_empty=self.spec.allows_empty_base_url)
        if not api_key:
            raise ValidationError(f"{self.tool.value}: API key must not be empty")

    def _check_name_free(self, storage: ToolStorage, name: str, exclude_id: str | None = None) -> None:
        for p in storage.providers:
            if p.id != exclude_id and p.name.strip() == name:
                raise NameConflictError(self.tool.value, name)

    def _require(self, storage: ToolStorage, name: str) -> Provider:
        name = name.strip()
        for p in storage.providers:
            if p.name.strip() == name:
                return p
        raise NotFoundError(f"{self.tool.value}: provider '{name}' not found")

    # -- providers --

    def add(
        self,
        name: str,
        base_url: str,
        api_key: str,
        model: str | None = None,
        desc: str | None = None,
    ) -> Provider:
        name, base_url, api_key = _clean(name), _clean(base_url), _clean(api_key)
        self._validate(name, base_url, api_key)

        storage = self.load()
        self._check_name_free(storage, name)

        ts = now_ms()
        provider = Provider(
            id=generate_id(self.tool.value),
            name=name,
            base_url=base_url,
            api_key=api_key,
            created_at=ts,
            updated_at=ts,
            model=_optional(model),
            desc=_optional(desc),
        )
        storage.providers.append(provider)
        self.save(storage)
        logger.info("Added %s provider %r", self.tool.value, name)
        return provider

    def list(self) -> list[Provider]:
        """All providers, newest first (ties broken by id)."""
        providers = self.load().providers
        providers.sort(key=lambda p: p.id)
        providers.sort(key=lambda p: p.created_at, reverse=True)
        return providers

    def get(self, name: str) -> Provider:
        return self._require(self.load(), name)

    def get_by_id(self, provider_id: str) -> Provider:
        provider = self.load().find(provider_id)
        if provider is None:
            raise NotFoundError(f"{self.tool.value}: provider id '{provider_id}' not found")
        return provider

    def update(
        self,
        name: str,
        new_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        desc: str | None = None,
    ) -> Provider:
        """Edit a provider in place. Arguments left as None are unchanged.

        Passing an empty model or desc clears it. If the provider is the
        active one, its native config is re-written.
        """
        storage = self.load()
        provider = self._require(storage, name)

        candidate_name = provider.name if new_name is None else _clean(new_name)
        candidate_url = provider.base_url if base_url is None else _clean(base_url)
        candidate_key = provider.api_key if api_key is None else _clean(api_key)
        self._validate(candidate_name, candidate_url, candidate_key)
        if candidate_name != provider.name.strip():
            self._check_name_free(storage, candidate_name, exclude_id=provider.id)

        provider.name = candidate_name
        provider.base_url = candidate_url
        provider.api_key = candidate_key
        if model is not None:
            provider.model = _optional(model)
        if desc is not None:
            provider.desc = _optional(desc)
        provider.updated_at = now_ms()

        is_current = storage.current_provider_id == provider.id
        if is_current:
            self.writer.write(provider)
        self.save(storage)
        logger.info("Updated %s provider %r", self.tool.value, provider.name)
        return provider

    def delete(self, name: str) -> Provider:
        storage = self.load()
        provider = self._require(storage, name)
        storage.providers = [p for p in storage.providers if p.id != provider.id]
        if storage.current_provider_id == provider.id:
            storage.current_provider_id = None
        self.save(storage)
        logger.info("Removed %s provider %r", self.tool.value, provider.name)
        return provider

    def switch(self, provider_id: str) -> Provider:
        """Make a provider active and write it to the tool's native config.

        The writer runs before the store is saved, so a writer failure leaves
        the store file untouched and propagates unchanged.
        """
        storage = self.load()
        provider = storage.find(provider_id)
        if provider is None:
            raise NotFoundError(f"{self.tool.value}: provider id '{provider_id}' not found")

        self.writer.write(provider)

        provider.last_used_at = now_ms()
        storage.current_provider_id = provider.id
        self.save(storage)
        logger.info("Switched %s to provider %r", self.tool.value, provider.name)
        return provider

    def apply(self, name: str) -> Provider:
        return self.switch(self.get(name).id)

    def current(self) -> Provider | None:
        return self.load().current

    def clone(self, source_name: str, new_name: str, overrides: dict | None = None) -> Provider:
        """Copy a provider under a new name. desc and usage history are not copied."""
        overrides = dict(overrides or {})
        unknown = set(overrides) - set(CLONE_OVERRIDES)
        if unknown:
            raise ValidationError(f"cannot override {', '.join(sorted(unknown))} when cloning")

        storage = self.load()
        source = self._require(storage, source_name)
        new_name = _clean(new_name)

        base_url = _clean(overrides.get("base_url", source.base_url))
        api_key = _clean(overrides.get("api_key", source.api_key))
        self._validate(new_name, base_url, api_key)
        self._check_name_free(storage, new_name)

        ts = now_ms()
        clone = Provider(
            id=generate_id(self.tool.value),
            name=new_name,
            base_url=base_url,
            api_key=api_key,
            created_at=ts,
            updated_at=ts,
            model=_optional(overrides.get("model", source.model)),
            desc=_optional(overrides.get("desc")),
            extra=dict(source.extra),
        )
        storage.providers.append(clone)
        self.save(storage)
        logger.info("Cloned %s provider %r as %r", self.tool.value, source.name, new_name)
        return clone

    # -- presets --

    def list_presets(self) -> list[PresetTemplate]:
        """Built-in presets followed by user presets."""
        user = self.load().presets or []
        return self.spec.presets + user

    def _check_preset_name_free(self, storage: ToolStorage, name: str, exclude: str | None = None) -> None:
        taken = [p.name.strip() for p in self.spec.presets]
        taken += [p.name.strip() for p in storage.presets or [] if p.name.strip() != exclude]
        if name in taken:
            raise NameConflictError(self.tool.value, name, kind="preset")

    def _require_user_preset(self, storage: ToolStorage, name: str) -> PresetTemplate:
        name = name.strip()
        if any(p.name.strip() == name for p in self.spec.presets):
            raise ValidationError(f"{self.tool.value}: built-in preset '{name}' cannot be modified")
        for preset in storage.presets or []:
            if preset.name.strip() == name:
                return preset
        raise NotFoundError(f"{self.tool.value}: preset '{name}' not found")

    def add_preset(self, name: str, base_url: str, description: str = "") -> PresetTemplate:
        name, base_url, description = _clean(name), _clean(base_url), _clean(description)
        if not name:
            raise ValidationError(f"{self.tool.value}: preset name must not be empty")
        validate_base_url(base_url, allow_empty=self.spec.allows_empty_base_url)

        storage = self.load()
        self._check_preset_name_free(storage, name)
        preset = PresetTemplate(name=name, base_url=base_url, description=description)
        if storage.presets is None:
            storage.presets = []
        storage.presets.append(preset)
        self.save(storage)
        return preset

    def update_preset(
        self,
        name: str,
        new_name: str | None = None,
        base_url: str | None = None,
        description: str | None = None,
    ) -> PresetTemplate:
        storage = self.load()
        preset = self._require_user_preset(storage, name)

        if new_name is not None:
            new_name = _clean(new_name)
            if not new_name:
                raise ValidationError(f"{self.tool.value}: preset name must not be empty")
            if new_name != preset.name.strip():
                self._check_preset_name_free(storage, new_name, exclude=preset.name.strip())
            preset.name = new_name
        if base_url is not None:
            base_url = _clean(base_url)
            validate_base_url(base_url, allow_empty=self.spec.allows_empty_base_url)
            preset.base_url = base_url
        if description is not None:
            preset.description = _clean(description)

        self.save(storage)
        return preset

    def delete_preset(self, name: str) -> None:
        storage = self.load()
        preset = self._require_user_preset(storage, name)
        storage.presets = [p for p in storage.presets if p is not preset]
        self.save(storage)
