"""Per-user key/value attributes stored next to the user's day folders."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from archive import paths
from archive.errors import NotFound, SerializationError, StorageError
from utils.io import JSONFileError, atomic_write_json, ensure_dir, read_json

logger = logging.getLogger(__name__)

ATTRIBUTES_FILE = "attributes.json"


@dataclass(frozen=True)
class Attribute:
    attribute: str
    value: str


class AttributeStore:
    """JSON object per user at ``{root}/muninn/{user}/attributes.json``, cached after first read."""

    def __init__(self, root: Optional[Union[str, Path]] = None) -> None:
        self.root = paths.storage_root(root)
        self._values: Dict[str, Dict[str, str]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock(self, user: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(user, threading.Lock())

    def _path(self, user: str) -> Path:
        return paths.user_root(user, self.root) / ATTRIBUTES_FILE

    def _load(self, user: str) -> Dict[str, str]:
        if user in self._values:
            return self._values[user]
        path = self._path(user)
        try:
            data = read_json(path, default={})
        except (JSONFileError, OSError) as e:
            raise SerializationError(f"Cannot read attributes {path}: {e}", path) from e
        if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
            raise SerializationError(f"Attributes file {path} must map names to strings", path)
        self._values[user] = dict(data)
        return self._values[user]

    def save(self, user: str, attribute: str, value: str) -> Attribute:
        path = self._path(user)
        with self._lock(user):
            current = dict(self._load(user))
            current[attribute] = value
            try:
                ensure_dir(path.parent)
                atomic_write_json(path, current)
            except OSError as e:
                logger.error("Error writing attributes for %s: %s", user, e)
                raise StorageError(f"Failed to write {path}: {e}", path) from e
            self._values[user] = current
        return Attribute(attribute=attribute, value=value)

    def get(self, user: str, attribute: str) -> Attribute:
        with self._lock(user):
            value = self._load(user).get(attribute)
        if value is None:
            raise NotFound(user, attribute, what="attribute")
        return Attribute(attribute=attribute, value=value)
