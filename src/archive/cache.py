"""Write-through message cache partitioned by user."""
from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional

from .models import Message


class _Shard:
    """One user's slice of the cache plus the lock that serialises the user's I/O."""

    __slots__ = ("lock", "messages")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.messages: Dict[str, Message] = {}


class MessageCache:
    """Mapping from (hash, user) to Message, sharded per user.

    Each user gets its own shard and lock, so work for one user never waits
    on another user's file I/O. Only shard creation touches the registry lock.
    """

    def __init__(self) -> None:
        self._shards: Dict[str, _Shard] = {}
        self._registry_lock = threading.Lock()

    def shard(self, user: str) -> _Shard:
        shard = self._shards.get(user)
        if shard is None:
            with self._registry_lock:
                shard = self._shards.setdefault(user, _Shard())
        return shard

    def lock(self, user: str) -> threading.RLock:
        return self.shard(user).lock

    def get(self, user: str, key: str) -> Optional[Message]:
        shard = self.shard(user)
        with shard.lock:
            return shard.messages.get(key)

    def put(self, user: str, message: Message) -> None:
        shard = self.shard(user)
        with shard.lock:
            shard.messages[message.hash] = message

    def merge(self, user: str, messages: Iterable[Message]) -> None:
        shard = self.shard(user)
        with shard.lock:
            for m in messages:
                shard.messages[m.hash] = m

    def count(self, user: str) -> int:
        shard = self._shards.get(user)
        return len(shard.messages) if shard else 0
