"""Per-user message archive with date-partitioned day files and cosine recall.

Typical usage
-------------
from archive import FsMessageRepo, Message
repo = FsMessageRepo("/tmp/archive")
repo.save(date.today(), "alice", Message("user", "Hello", "h1", (0.1, 0.2, 0.3)))
repo.get("alice", "h1")
"""
from __future__ import annotations

from .errors import ArchiveError, NotFound, SerializationError, StorageError, UpstreamError
from .models import Message
from .repository import MessageRepo, StubMessageRepo
from .similarity import cosine_similarity, rank, top_k
from .store import FsMessageRepo

__all__ = [
    "ArchiveError",
    "FsMessageRepo",
    "Message",
    "MessageRepo",
    "NotFound",
    "SerializationError",
    "StorageError",
    "StubMessageRepo",
    "UpstreamError",
    "cosine_similarity",
    "rank",
    "top_k",
]
