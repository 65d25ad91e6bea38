"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path
from typing import Callable, List

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from archive import FsMessageRepo, Message  # noqa: E402


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the root directory of the project."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    for var in ["MUNINN_CONFIG", "MESSAGE_STORAGE_PATH", "OPENAI_API_KEY"]:
        monkeypatch.delenv(var, raising=False)
    for var in list(os.environ):
        if var.startswith("MUNINN__"):
            monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(scope="function")
def storage_root(tmp_path: Path) -> Path:
    """Temporary archive root."""
    d = tmp_path / "archive"
    d.mkdir(parents=True, exist_ok=True)
    return d


@pytest.fixture
def make_repo(storage_root: Path) -> Callable[..., FsMessageRepo]:
    """Build a fresh store over the same root (a new instance is a cold restart)."""
    def _make(today: date | None = None) -> FsMessageRepo:
        if today is None:
            return FsMessageRepo(storage_root)
        return FsMessageRepo(storage_root, today=lambda: today)
    return _make


def make_message(key: str, content: str = "Hello", role: str = "user", embedding=(0.1, 0.2, 0.3)) -> Message:
    return Message(role=role, content=content, hash=key, embedding=tuple(embedding))


class FakeEmbeddings:
    """Deterministic embeddings keyed by text; unknown text maps to a fixed vector."""

    def __init__(self, vectors: dict | None = None, default=(1.0, 0.0, 0.0)) -> None:
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.calls: List[str] = []

    def get_embeddings(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.vectors.get(text, self.default))


class FailingEmbeddings:
    def get_embeddings(self, text: str) -> List[float]:
        from archive import UpstreamError

        raise UpstreamError("embeddings provider unavailable")


class SpyChat:
    """Records the last context it was asked to complete."""

    def __init__(self, reply: str = "ok") -> None:
        self.reply = reply
        self.last_context = None

    def complete(self, context) -> str:
        self.last_context = list(context)
        return self.reply
