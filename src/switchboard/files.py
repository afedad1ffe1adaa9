"""File helpers: atomic writes with owner-only permissions, strict reads."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

try:
    import tomllib
except ModuleNotFoundError:  # Python 3.10
    import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from switchboard.errors import ParseError

DIR_MODE = 0o700
FILE_MODE = 0o600


def ensure_dir(path: Path) -> None:
    """Create path (and parents) if missing. New directories are owner-only."""
    path.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)


def write_bytes_atomic(path: Path, content: bytes) -> None:
    """Write content to path via a temp file in the same directory + rename."""
    ensure_dir(path.parent)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
        os.chmod(tmp, FILE_MODE)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def write_text_atomic(path: Path, content: str) -> None:
    write_bytes_atomic(path, content.encode("utf-8"))


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_json(path: Path, data: Any) -> None:
    write_text_atomic(path, dump_json(data))


def write_toml(path: Path, data: dict) -> None:
    write_text_atomic(path, tomli_w.dumps(data))


def read_json(path: Path, default: Any = None) -> Any:
    """Load JSON from path. Returns default if the file doesn't exist.

    A file that exists but doesn't parse raises ParseError; callers never get
    a silently reset document.
    """
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(path, str(e)) from e


def read_json_object(path: Path) -> dict:
    """Like read_json, but the document must be a JSON object (or absent)."""
    data = read_json(path, default={})
    if not isinstance(data, dict):
        raise ParseError(path, "expected a JSON object at the top level")
    return data


def read_toml(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ParseError(path, str(e)) from e
