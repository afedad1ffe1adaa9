"""Sync engine: upload, download and merge provider stores through WebDAV.

Remote layout is one JSON document per tool at <remoteDir>/<tool>.json, the
same schema as the local store file with every providers[].apiKey encrypted
by the sync password.

download() and merge() touch several local files per run. Every file is
backed up (or recorded as newly created) before its first write, and any
failure restores all of them before the original exception propagates.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable

from switchboard.backup import backup, restore
from switchboard.config import Paths, touch_last_sync
from switchboard.crypto import decrypt_providers, encrypt_providers
from switchboard.errors import NotFoundError, ParseError, ValidationError
from switchboard.files import dump_json
from switchboard.models import PresetTemplate, Provider, ToolStorage
from switchboard.store import load_storage, save_storage
from switchboard.tools import SYNC_TOOLS, Tool
from switchboard.writers import create_writer
from switchboard.writers.base import ConfigWriter

logger = logging.getLogger("switchboard.sync")


@dataclass
class SyncReport:
    """Outcome of one sync run."""

    mode: str
    tools_changed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    backups: list[Path] = field(default_factory=list)
    already_in_sync: bool = False


@dataclass
class MergeResult:
    merged: list[Provider]
    has_changes: bool
    # discarded id -> id of the record that took its slot
    replaced: dict[str, str] = field(default_factory=dict)


def remote_name(tool: Tool) -> str:
    return f"{tool.value}.json"


def _snapshot(providers: list[Provider]) -> dict[str, dict]:
    return {p.id: p.to_dict() for p in providers}


def _preset_snapshot(presets: list[PresetTemplate] | None) -> list[dict]:
    return [p.to_dict() for p in presets or []]


def _free_name(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    n = 2
    while f"{name}_{n}" in taken:
        n += 1
    return f"{name}_{n}"


def _settle_name(merged: list[Provider], index: int) -> None:
    """Resolve a name clash between merged[index] and any other record."""
    record = merged[index]
    holder = next(
        (i for i, p in enumerate(merged) if i != index and p.name == record.name),
        None,
    )
    if holder is None:
        return
    taken = {p.name for p in merged}
    other = merged[holder]
    if (other.created_at, other.id) <= (record.created_at, record.id):
        merged[index] = replace(record, name=_free_name(record.name, taken))
    else:
        merged[holder] = replace(other, name=_free_name(other.name, taken))
        logger.debug("Renamed %s to %s after name clash", other.id, merged[holder].name)


def merge_providers(local: list[Provider], remote: list[Provider]) -> MergeResult:
    """Merge two provider lists; a provider record is the unit of conflict.

    A remote record claims the slot of a merged record with the same id, or
    failing that the same (baseUrl, apiKey). Within a slot the greater
    updatedAt wins and ties keep what is already there. Unmatched remote
    records are appended.

    When a remote record entering the list shares its name with another merged
    record, the older of the two (by createdAt, then id) keeps the name and the
    other becomes <name>_<n> (smallest free n >= 2). Both machines pick the
    same holder, so repeated merges converge.
    """
    merged = [replace(p, extra=dict(p.extra)) for p in local]
    replaced: dict[str, str] = {}

    for incoming in remote:
        slot = next((i for i, p in enumerate(merged) if p.id == incoming.id), None)
        if slot is None:
            slot = next(
                (
                    i
                    for i, p in enumerate(merged)
                    if p.base_url == incoming.base_url and p.api_key == incoming.api_key
                ),
                None,
            )

        if slot is None:
            merged.append(replace(incoming, extra=dict(incoming.extra)))
            _settle_name(merged, len(merged) - 1)
            continue

        existing = merged[slot]
        if incoming.updated_at <= existing.updated_at:
            continue
        merged[slot] = replace(incoming, extra=dict(incoming.extra))
        _settle_name(merged, slot)
        if existing.id != incoming.id:
            replaced[existing.id] = incoming.id
            logger.debug("Record %s superseded by %s", existing.id, incoming.id)

    has_changes = _snapshot(merged) != _snapshot(local)
    return MergeResult(merged=merged, has_changes=has_changes, replaced=replaced)


def merge_presets(
    local: list[PresetTemplate] | None,
    remote: list[PresetTemplate] | None,
) -> list[PresetTemplate] | None:
    """Union by name; the local preset wins a name collision."""
    if local is None and remote is None:
        return None
    merged = list(local or [])
    names = {p.name for p in merged}
    for preset in remote or []:
        if preset.name not in names:
            merged.append(preset)
            names.add(preset.name)
    return merged


def _resolve(replaced: dict[str, str], provider_id: str | None) -> str | None:
    seen = set()
    while provider_id in replaced and provider_id not in seen:
        seen.add(provider_id)
        provider_id = replaced[provider_id]
    return provider_id


class _Rollback:
    """Backups and newly created files of one run, for restoring on failure."""

    def __init__(self):
        self.backups: dict[Path, Path] = {}
        self.created: list[Path] = []

    def protect(self, path: Path) -> None:
        if path in self.backups or path in self.created:
            return
        if path.exists():
            self.backups[path] = backup(path)
        else:
            self.created.append(path)

    def rollback(self) -> None:
        for original, saved in self.backups.items():
            restore(saved)
            logger.info("Rolled back %s", original)
        for path in self.created:
            if path.exists():
                path.unlink()
                logger.info("Removed %s created during failed sync", path)


class SyncEngine:
    """Reconciles local provider stores with the encrypted remote copy."""

    def __init__(
        self,
        paths: Paths,
        transport,
        sync_password: str,
        tools: tuple[Tool, ...] = SYNC_TOOLS,
        writer_factory: Callable[[Tool, Paths], ConfigWriter] = create_writer,
    ):
        if not sync_password:
            raise ValidationError("a sync password is required")
        self.paths = paths
        self.transport = transport
        self.sync_password = sync_password
        self.tools = tuple(tools)
        self.writer_factory = writer_factory

    # -- encoding --

    def _encode(self, storage: ToolStorage) -> str:
        encrypted = replace(storage, providers=encrypt_providers(storage.providers, self.sync_password))
        return dump_json(encrypted.to_dict())

    def _decode(self, tool: Tool, text: str) -> ToolStorage:
        source = f"remote {remote_name(tool)}"
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(source, str(e)) from e
        storage = ToolStorage.from_dict(data, source=source)
        storage.providers = decrypt_providers(storage.providers, self.sync_password)
        return storage

    def _fetch_remote(self) -> dict[Tool, ToolStorage]:
        """Download and decrypt every tool that has remote data."""
        present = [t for t in self.tools if self.transport.exists(remote_name(t))]
        return {t: self._decode(t, self.transport.download(remote_name(t))) for t in present}

    # -- local application --

    def _apply_active(self, tool: Tool, storage: ToolStorage, report: SyncReport) -> None:
        provider = storage.current
        if provider is None:
            report.skipped.append(f"{tool.value}: no active provider to apply")
            return
        self.writer_factory(tool, self.paths).write(provider)

    def _protect_tool(self, tool: Tool, txn: _Rollback) -> None:
        txn.protect(self.paths.storage_file(tool.value))
        for target in self.writer_factory(tool, self.paths).target_paths:
            txn.protect(target)

    # -- modes --

    def upload(self) -> SyncReport:
        """Overwrite the remote copy with the local stores."""
        report = SyncReport(mode="upload")
        for tool in self.tools:
            storage = load_storage(self.paths.storage_file(tool.value))
            self.transport.upload(remote_name(tool), self._encode(storage))
            report.tools_changed.append(tool.value)
        touch_last_sync(self.paths)
        logger.info("Uploaded %d tool(s)", len(report.tools_changed))
        return report

    def download(self) -> SyncReport:
        """Overwrite the local stores with the remote copy and re-apply active providers."""
        remote = self._fetch_remote()
        if not remote:
            raise NotFoundError("no remote data found; upload first")

        report = SyncReport(mode="download")
        for tool in self.tools:
            if tool not in remote:
                report.skipped.append(f"{tool.value}: no remote data")

        txn = _Rollback()
        try:
            for tool, incoming in remote.items():
                path = self.paths.storage_file(tool.value)
                local = load_storage(path)
                if incoming.presets is None:
                    incoming.presets = local.presets

                self._protect_tool(tool, txn)
                save_storage(path, incoming)
                self._apply_active(tool, incoming, report)
                report.tools_changed.append(tool.value)
        except Exception:
            logger.warning("Download failed, restoring local files")
            txn.rollback()
            raise

        report.backups = list(txn.backups.values())
        touch_last_sync(self.paths)
        logger.info("Downloaded %d tool(s)", len(report.tools_changed))
        return report

    def merge(self) -> SyncReport:
        """Merge local and remote, write the result locally, then upload it."""
        remote = self._fetch_remote()
        if not remote:
            logger.info("No remote data, uploading instead of merging")
            return self.upload()

        plans = []
        for tool in self.tools:
            local = load_storage(self.paths.storage_file(tool.value))
            theirs = remote.get(tool, ToolStorage())
            result = merge_providers(local.providers, theirs.providers)
            presets = merge_presets(local.presets, theirs.presets)

            merged = ToolStorage(
                providers=result.merged,
                current_provider_id=_resolve(result.replaced, local.current_provider_id),
                presets=presets,
                extra=dict(local.extra),
            )
            local_changed = result.has_changes or (
                _preset_snapshot(presets) != _preset_snapshot(local.presets)
            )
            remote_stale = (
                tool not in remote
                or _snapshot(merged.providers) != _snapshot(theirs.providers)
                or _preset_snapshot(presets) != _preset_snapshot(theirs.presets)
            )
            if tool not in remote and not local.providers and not local.presets:
                remote_stale = False
            if local_changed or remote_stale:
                plans.append((tool, merged, local_changed))

        report = SyncReport(mode="merge")
        if not plans:
            report.already_in_sync = True
            logger.info("Local and remote are already in sync")
            return report

        txn = _Rollback()
        try:
            for tool, merged, local_changed in plans:
                if local_changed:
                    self._protect_tool(tool, txn)
                    save_storage(self.paths.storage_file(tool.value), merged)
                    self._apply_active(tool, merged, report)
            for tool, merged, _ in plans:
                self.transport.upload(remote_name(tool), self._encode(merged))
                report.tools_changed.append(tool.value)
        except Exception:
            logger.warning("Merge failed, restoring local files")
            txn.rollback()
            raise

        report.backups = list(txn.backups.values())
        touch_last_sync(self.paths)
        logger.info("Merged %d tool(s)", len(report.tools_changed))
        return report
