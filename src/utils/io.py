from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Union

PathLike = Union[str, Path]


class JSONFileError(ValueError):
    """A JSON file exists but its contents cannot be decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Invalid JSON in {path}: {reason}")
        self.path = path
        self.reason = reason


def ensure_dir(p: PathLike) -> Path:
    """Ensure that a directory exists, returning it as a Path."""
    p = Path(p)
    try:
        p.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OSError(f"Failed to create directory {p}: {e}") from e
    return p


def read_json(path: PathLike, default: Any = None) -> Any:
    """Read a whole JSON document.

    Parameters
    ----------
    path : str | Path
        The JSON file path.
    default : Any
        Returned when the file does not exist.

    Raises
    ------
    JSONFileError
        The file exists but is not valid UTF-8 JSON.
    OSError
        The file exists but cannot be read.
    """
    p = Path(path)
    if not p.exists():
        return default
    with open(p, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise JSONFileError(p, str(e)) from e


def atomic_write_json(path: PathLike, data: Any) -> None:
    """Safely write a JSON file atomically to avoid corruption."""
    p = Path(path)
    try:
        text = json.dumps(data, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Failed to serialize data for {p}: {e}") from e

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", delete=False, dir=str(p.parent), suffix=".tmp"
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, p)
    except OSError:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise
