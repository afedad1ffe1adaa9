"""Abstract base class for native config writers."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from switchboard.config import Paths
from switchboard.errors import ParseError
from switchboard.files import write_bytes_atomic
from switchboard.models import Provider

logger = logging.getLogger("switchboard.writers")


class ConfigWriter(ABC):
    """Applies a Provider to one tool's native config files.

    Every writer is zero-breaking: keys it does not own are copied through
    unchanged. The keys it does own fall into three classes:

    - managed: always overwritten from the provider
    - defaulted: set only when absent
    - deprecated: deleted when present

    write() is all-or-nothing across target_paths: if any file fails to
    write, every target is put back as it was before re-raising.
    """

    def __init__(self, paths: Paths):
        self.paths = paths

    def write(self, provider: Provider) -> None:
        """Apply provider to the tool's config. Raises ParseError on bad input files."""
        snapshot = {path: path.read_bytes() if path.exists() else None for path in self.target_paths}
        try:
            self._write(provider)
        except Exception:
            logger.warning("Writing %r failed, restoring %d file(s)", provider.name, len(snapshot))
            for path, content in snapshot.items():
                if content is None:
                    path.unlink(missing_ok=True)
                else:
                    write_bytes_atomic(path, content)
            raise

    @abstractmethod
    def _write(self, provider: Provider) -> None:
        """Read, update and write the tool's files."""

    @property
    @abstractmethod
    def target_paths(self) -> list[Path]:
        """Every file write() may create or modify."""


def table(doc: dict, key: str, source: Any) -> dict:
    """Return doc[key] as a dict, creating it if absent.

    A non-table value in that slot is a user document we don't understand,
    so it is reported rather than replaced.
    """
    value = doc.get(key)
    if value is None:
        value = {}
        doc[key] = value
    elif not isinstance(value, dict):
        raise ParseError(source, f"'{key}' must be a table/object, got {type(value).__name__}")
    return value


def set_default(doc: dict, key: str, value: Any) -> None:
    if key not in doc:
        doc[key] = value


def parse_model_meta(raw: str | None) -> dict | None:
    """Some tools accept a JSON object in Provider.model instead of a model name."""
    if not raw or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
