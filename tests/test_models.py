from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import date
from pathlib import Path

import numpy as np
import pytest

from archive import Message, SerializationError, StorageError
from archive import paths
from archive.models import dump_messages, load_messages


def test_message_is_immutable_and_normalises_embedding():
    m = Message(role="user", content="Hello", hash="h1", embedding=[1, 2.5])
    assert m.embedding == (1.0, 2.5)
    with pytest.raises(FrozenInstanceError):
        m.content = "changed"  # type: ignore[misc]



def test_numpy_scalars_become_python_floats():
    m = Message("user", "Hello", "h1", tuple(np.array([0.1, 0.2, 0.3], dtype=np.float32)))
    assert all(type(x) is float for x in m.embedding)
    assert m.embedding == pytest.approx((0.1, 0.2, 0.3))

def test_message_wire_format():
    m = Message("assistant", "Hi", "h2", (0.5,))
    assert m.to_dict() == {"role": "assistant", "content": "Hi", "hash": "h2", "embedding": [0.5]}
    assert Message.from_dict(m.to_dict()) == m
    assert load_messages(dump_messages([m, m])) == [m, m]


@pytest.mark.parametrize(
    "record",
    [
        "not a dict",
        {"role": "user", "content": "x"},
        {"role": "user", "content": 1, "hash": "h"},
        {"role": "user", "content": "x", "hash": "h", "embedding": "0.1"},
        {"role": "user", "content": "x", "hash": "h", "embedding": [True]},
    ],
)
def test_from_dict_rejects_bad_records(record):
    with pytest.raises(SerializationError):
        Message.from_dict(record)


def test_load_messages_requires_array():
    with pytest.raises(SerializationError):
        load_messages({"role": "user"})


def test_day_file_layout(tmp_path: Path):
    p = paths.day_file("Alice", date(2024, 1, 1), tmp_path)
    assert p == tmp_path / "muninn" / "Alice" / "2024-01-01" / "messages.json"
    # user identifiers are case-sensitive
    assert paths.day_file("alice", date(2024, 1, 1), tmp_path) != p


def test_storage_root_precedence(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("MESSAGE_STORAGE_PATH", str(tmp_path / "env"))
    assert paths.storage_root(tmp_path / "explicit") == tmp_path / "explicit"
    assert paths.storage_root() == tmp_path / "env"

    monkeypatch.delenv("MESSAGE_STORAGE_PATH")
    monkeypatch.setattr(paths, "local_data_dir", lambda: tmp_path / "platform")
    assert paths.storage_root() == tmp_path / "platform"


def test_local_data_dir_on_linux(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(paths.platform, "system", lambda: "Linux")
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    assert paths.local_data_dir() == tmp_path


@pytest.mark.parametrize("name,expected", [
    ("2024-01-01", date(2024, 1, 1)),
    ("2024-1-1", None),
    ("latest", None),
    ("2024-02-30", None),
])
def test_parse_day(name, expected):
    assert paths.parse_day(name) == expected


@pytest.mark.parametrize("user", ["", ".", "..", "a/b", "a\\b"])
def test_unsafe_user_rejected(user, tmp_path: Path):
    with pytest.raises(StorageError):
        paths.user_root(user, tmp_path)
