"""The capability set every message archive exposes, plus a fixed-response stub."""
from __future__ import annotations

from datetime import date
from typing import List, Protocol, Sequence, runtime_checkable

from .models import Message
from .similarity import Scored


@runtime_checkable
class MessageRepo(Protocol):
    def save(self, day: date, user: str, message: Message) -> Message: ...

    def get(self, user: str, key: str) -> Message: ...

    def list_all(self, user: str) -> List[Message]: ...

    def search(self, user: str, query_vector: Sequence[float]) -> List[Scored]: ...


STUB_EMBEDDING = (0.1, 0.2, 0.3)


class StubMessageRepo:
    """Canned answers for isolating callers from the filesystem. Keeps no state."""

    def save(self, day: date, user: str, message: Message) -> Message:
        return message

    def get(self, user: str, key: str) -> Message:
        return Message(role="user", content="Hello", hash=key, embedding=STUB_EMBEDDING)

    def list_all(self, user: str) -> List[Message]:
        return []

    def search(self, user: str, query_vector: Sequence[float]) -> List[Scored]:
        return [(0.1, Message(role="user", content="Hello", hash="123", embedding=STUB_EMBEDDING))]
