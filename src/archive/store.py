"""File-backed message archive: date-partitioned JSON day files plus a write-through cache."""
from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from utils.io import JSONFileError, atomic_write_json, ensure_dir, read_json

from . import paths
from .cache import MessageCache
from .errors import NotFound, SerializationError, StorageError
from .models import Message, dump_messages, load_messages
from .similarity import Scored, rank

logger = logging.getLogger(__name__)


class FsMessageRepo:
    """
    Per-user message archive on the local filesystem.

    - One JSON array per (user, day) at ``{root}/muninn/{user}/{YYYY-MM-DD}/messages.json``
    - In-memory cache keyed by (hash, user), populated on save and on lookup misses
    - Reads resolve the user's *active day*: today if its file has messages,
      otherwise the most recent dated directory that does

    Public API:
        save(day, user, message) -> Message
        get(user, hash) -> Message                 (raises NotFound)
        list_all(user) -> List[Message]
        search(user, query_vector) -> List[(score, Message)]

    Single-process only: the day files assume one writer.
    """

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        *,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.root = paths.storage_root(root)
        self._today = today or date.today
        self._cache = MessageCache()

    @property
    def cache(self) -> MessageCache:
        return self._cache

    # ----------------- paths -----------------
    def day_file(self, user: str, day: date) -> Path:
        return paths.day_file(user, day, self.root)

    # ----------------- disk -----------------
    def _read_day(self, path: Path) -> List[Message]:
        """Load one day file. Absent -> []; unreadable or malformed -> SerializationError."""
        try:
            data = read_json(path, default=[])
        except JSONFileError as e:
            logger.error("Corrupt day file %s: %s", path, e.reason)
            raise SerializationError(str(e), path) from e
        except OSError as e:
            logger.error("Cannot read day file %s: %s", path, e)
            raise SerializationError(f"Cannot read {path}: {e}", path) from e
        try:
            return load_messages(data)
        except SerializationError as e:
            logger.error("Malformed day file %s: %s", path, e)
            raise SerializationError(f"{path}: {e}", path) from e

    def _write_day(self, path: Path, messages: Sequence[Message]) -> None:
        try:
            ensure_dir(path.parent)
        except OSError as e:
            logger.error("Cannot create day directory %s: %s", path.parent, e)
            raise StorageError(str(e), path.parent) from e
        try:
            atomic_write_json(path, dump_messages(messages))
        except ValueError as e:
            logger.error("Cannot encode day file %s: %s", path, e)
            raise SerializationError(str(e), path) from e
        except OSError as e:
            logger.error("Error writing day file %s: %s", path, e)
            raise StorageError(f"Failed to write {path}: {e}", path) from e

    def _past_days(self, user: str) -> List[date]:
        """Dated subdirectories of the user's root, newest first."""
        root = paths.user_root(user, self.root)
        if not root.is_dir():
            return []
        days: List[date] = []
        try:
            entries = list(root.iterdir())
        except OSError as e:
            raise StorageError(f"Cannot list {root}: {e}", root) from e
        for entry in entries:
            if not entry.is_dir():
                continue
            parsed = paths.parse_day(entry.name)
            if parsed is None:
                logger.warning("Skipping non-date directory %s", entry)
                continue
            days.append(parsed)
        return sorted(days, reverse=True)

    def _active_day(self, user: str) -> Tuple[Optional[date], List[Message]]:
        today = self._today()
        messages = self._read_day(self.day_file(user, today))
        if messages:
            return today, messages
        for day in self._past_days(user):
            if day == today:
                continue
            messages = self._read_day(self.day_file(user, day))
            if messages:
                logger.debug("Falling back to %s for user %s", day, user)
                return day, messages
        return None, []

    # ----------------- public API -----------------
    def save(self, day: date, user: str, message: Message) -> Message:
        """Persist message into the (user, day) file and the cache.

        A message whose hash is already in that day file replaces the old
        record in place. The cache is only updated once the file is written.
        """
        path = self.day_file(user, day)
        with self._cache.lock(user):
            messages = self._read_day(path)
            for i, existing in enumerate(messages):
                if existing.hash == message.hash:
                    messages[i] = message
                    break
            else:
                messages.append(message)
            self._write_day(path, messages)
            self._cache.put(user, message)
        logger.debug("Saved %s for user %s on %s (%d in file)", message.hash, user, day, len(messages))
        return message

    def get(self, user: str, key: str) -> Message:
        with self._cache.lock(user):
            found = self._cache.get(user, key)
            if found is not None:
                logger.debug("Cache hit %s for user %s", key, user)
                return found
            day, messages = self._active_day(user)
            logger.debug("Cache miss %s for user %s, loaded %d from %s", key, user, len(messages), day)
            self._cache.merge(user, messages)
            found = self._cache.get(user, key)
        if found is None:
            raise NotFound(user, key)
        return found

    def list_all(self, user: str) -> List[Message]:
        with self._cache.lock(user):
            _, messages = self._active_day(user)
        return messages

    def search(self, user: str, query_vector: Sequence[float]) -> List[Scored]:
        """Cosine similarity of query_vector against every active-day message (unsorted)."""
        return rank(query_vector, self.list_all(user))
