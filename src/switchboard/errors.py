"""Error types raised by switchboard."""

from __future__ import annotations


class SwitchboardError(Exception):
    """Base class for every error switchboard raises on purpose."""


class NotFoundError(SwitchboardError):
    """A provider, preset, remote object or file does not exist."""


class ValidationError(SwitchboardError):
    """Input is malformed: bad URL, empty required field, unknown tool."""


class NameConflictError(ValidationError):
    """A name is already taken within a tool's store."""

    def __init__(self, tool: str, name: str, kind: str = "provider"):
        super().__init__(f"{kind} name '{name}' already exists for {tool}")
        self.tool = tool
        self.name = name


class DecryptionError(SwitchboardError):
    """Remote payload could not be decrypted with the sync password."""

    def __init__(self, message: str = "wrong sync password or corrupted data"):
        super().__init__(message)


class TransportError(SwitchboardError):
    """WebDAV server unreachable, timed out, or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(SwitchboardError):
    """A file on disk is not valid JSON/TOML. Never auto-repaired."""

    def __init__(self, path, reason: str):
        super().__init__(f"cannot parse {path}: {reason}")
        self.path = path


class SourceNotFoundError(NotFoundError):
    """The file to back up or export does not exist."""


class BackupNotFoundError(NotFoundError):
    """The backup to restore from does not exist."""
