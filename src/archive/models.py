from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from .errors import SerializationError


@dataclass(frozen=True)
class Message:
    """A single chat turn stored in the archive."""

    role: str                                  # "user" | "assistant" | "system"
    content: str                               # message text
    hash: str                                  # caller-supplied identity, unique per user
    embedding: Tuple[float, ...] = field(default=())

    def __post_init__(self) -> None:
        # Stored copy is an immutable tuple of plain floats (numpy scalars included).
        object.__setattr__(self, "embedding", tuple(float(x) for x in self.embedding))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "hash": self.hash,
            "embedding": list(self.embedding),
        }

    @classmethod
    def from_dict(cls, obj: Any) -> "Message":
        """Parse one on-disk record, raising SerializationError on bad shape."""
        if not isinstance(obj, dict):
            raise SerializationError(f"message record must be an object, got {type(obj).__name__}")
        for key in ("role", "content", "hash"):
            if not isinstance(obj.get(key), str):
                raise SerializationError(f"message record field {key!r} must be a string")
        raw = obj.get("embedding", [])
        if not isinstance(raw, list) or not all(
            isinstance(x, (int, float)) and not isinstance(x, bool) for x in raw
        ):
            raise SerializationError("message record field 'embedding' must be a list of numbers")
        return cls(
            role=obj["role"],
            content=obj["content"],
            hash=obj["hash"],
            embedding=tuple(float(x) for x in raw),
        )


def dump_messages(messages: Iterable[Message]) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in messages]


def load_messages(data: Any) -> List[Message]:
    """Parse a day file's JSON array."""
    if not isinstance(data, list):
        raise SerializationError(f"day file must hold a JSON array, got {type(data).__name__}")
    return [Message.from_dict(item) for item in data]
