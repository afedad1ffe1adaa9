"""Timestamped copy-before-overwrite backups with bounded retention."""

from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path

from switchboard.errors import BackupNotFoundError, SourceNotFoundError

logger = logging.getLogger("switchboard.backup")

DEFAULT_KEEP = 3
BACKUP_MARKER = ".backup."
_BACKUP_SUFFIX = re.compile(r"\.backup\.(\d+)$")


def _pattern_for(path: Path) -> re.Pattern:
    return re.compile(re.escape(path.name) + r"\.backup\.(\d+)$")


def list_backups(path: Path) -> list[Path]:
    """Backups of path, oldest first.

    Only siblings named exactly <basename>.backup.<digits> count; backups of
    other files in the same directory have their own window.
    """
    if not path.parent.exists():
        return []
    pattern = _pattern_for(path)
    found = []
    for sibling in path.parent.iterdir():
        m = pattern.fullmatch(sibling.name)
        if m and sibling.is_file():
            found.append((int(m.group(1)), sibling))
    found.sort(key=lambda item: item[0])
    return [p for _, p in found]


def backup(path: Path, keep: int = DEFAULT_KEEP) -> Path:
    """Copy path to path.backup.<unixMillis> and prune to the newest keep backups.

    Returns the new backup's path.
    """
    if not path.is_file():
        raise SourceNotFoundError(f"cannot back up {path}: file does not exist")

    stamp = int(time.time() * 1000)
    existing = list_backups(path)
    if existing:
        newest = int(_BACKUP_SUFFIX.search(existing[-1].name).group(1))
        stamp = max(stamp, newest + 1)
    target = path.with_name(f"{path.name}{BACKUP_MARKER}{stamp}")

    shutil.copy2(path, target)
    logger.info("Backed up %s -> %s", path, target.name)

    _prune(path, keep)
    return target


def _prune(path: Path, keep: int) -> None:
    backups = list_backups(path)
    excess = len(backups) - keep
    for old in backups[: max(excess, 0)]:
        old.unlink()
        logger.debug("Removed old backup %s", old)


def original_for(backup_path: Path) -> Path:
    """Strip the .backup.<digits> suffix."""
    m = _BACKUP_SUFFIX.search(backup_path.name)
    if not m:
        raise ValueError(f"not a backup file name: {backup_path.name}")
    return backup_path.with_name(backup_path.name[: m.start()])


def restore(backup_path: Path) -> Path:
    """Copy a timestamped backup over its original. Returns the original's path."""
    if not backup_path.is_file():
        raise BackupNotFoundError(f"backup not found: {backup_path}")
    original = original_for(backup_path)
    shutil.copy2(backup_path, original)
    logger.info("Restored %s from %s", original, backup_path.name)
    return original


def backup_bak(path: Path) -> Path:
    """Single-slot backup: path -> path.bak (overwrites a previous .bak)."""
    if not path.is_file():
        raise SourceNotFoundError(f"cannot back up {path}: file does not exist")
    target = path.with_name(path.name + ".bak")
    shutil.copy2(path, target)
    return target


def restore_bak(path: Path) -> None:
    bak = path.with_name(path.name + ".bak")
    if not bak.is_file():
        raise BackupNotFoundError(f"backup not found: {bak}")
    shutil.copy2(bak, path)
