"""Typed failures raised by the message archive and its collaborators."""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class ArchiveError(Exception):
    """Base class for every recoverable archive failure."""

    kind = "archive_error"


class NotFound(ArchiveError):
    """Identity absent from the cache and from the user's active day file."""

    kind = "not_found"

    def __init__(self, user: str, key: str, what: str = "message") -> None:
        super().__init__(f"{what} {key!r} not found for user {user!r}")
        self.user = user
        self.key = key


class StorageError(ArchiveError):
    """Directory or file could not be created or written."""

    kind = "storage_error"

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class SerializationError(ArchiveError):
    """A stored file exists but its contents cannot be parsed."""

    kind = "serialization_error"

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class UpstreamError(ArchiveError):
    """An embeddings or chat-completion provider call failed."""

    kind = "upstream_error"
