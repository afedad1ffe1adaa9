"""Export provider stores to a directory and import them back."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from switchboard.backup import backup, restore
from switchboard.config import Paths
from switchboard.errors import SourceNotFoundError
from switchboard.files import ensure_dir, read_json
from switchboard.models import ToolStorage
from switchboard.tools import SYNC_TOOLS, Tool

logger = logging.getLogger("switchboard.transfer")


@dataclass
class TransferResult:
    directory: Path
    files: list[str] = field(default_factory=list)
    backups: list[Path] = field(default_factory=list)


def export_config(paths: Paths, target_dir: Path, tools: tuple[Tool, ...] = SYNC_TOOLS) -> TransferResult:
    """Copy every existing <tool>.json store file into target_dir.

    Exported files hold plaintext API keys.
    """
    sources = [paths.storage_file(t.value) for t in tools]
    existing = [p for p in sources if p.is_file()]
    if not existing:
        raise SourceNotFoundError(f"nothing to export: no store files in {paths.store_dir}")

    target_dir = Path(target_dir)
    ensure_dir(target_dir)
    result = TransferResult(directory=target_dir)
    for src in existing:
        shutil.copy2(src, target_dir / src.name)
        result.files.append(src.name)
    logger.info("Exported %s to %s", ", ".join(result.files), target_dir)
    return result


def import_config(paths: Paths, source_dir: Path, tools: tuple[Tool, ...] = SYNC_TOOLS) -> TransferResult:
    """Copy <tool>.json files from source_dir into the store, backing up what they replace.

    Every found file is validated before anything is copied. If a copy fails,
    the files already replaced are restored from their backups.
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise SourceNotFoundError(f"not a directory: {source_dir}")

    found = [source_dir / f"{t.value}.json" for t in tools]
    found = [p for p in found if p.is_file()]
    if not found:
        names = ", ".join(f"{t.value}.json" for t in tools)
        raise SourceNotFoundError(f"no store files ({names}) found in {source_dir}")

    for src in found:
        ToolStorage.from_dict(read_json(src), source=src)

    ensure_dir(paths.store_dir)
    result = TransferResult(directory=source_dir)
    restored: dict[Path, Path] = {}
    created: list[Path] = []
    try:
        for src in found:
            dst = paths.store_dir / src.name
            if dst.exists():
                saved = backup(dst)
                restored[dst] = saved
                result.backups.append(saved)
            else:
                created.append(dst)
            shutil.copy2(src, dst)
            result.files.append(src.name)
    except Exception:
        for saved in restored.values():
            restore(saved)
        for dst in created:
            if dst.exists():
                dst.unlink()
        raise

    logger.info("Imported %s from %s", ", ".join(result.files), source_dir)
    return result
