"""Map (user, calendar date) to the on-disk location of a day file.

Layout::

    {root}/muninn/{user}/{YYYY-MM-DD}/messages.json

The root is ``MESSAGE_STORAGE_PATH`` when set, otherwise the platform's
per-user local data directory.
"""
from __future__ import annotations

import os
import platform
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Union

from .errors import StorageError

NAMESPACE = "muninn"
MESSAGES_FILE = "messages.json"
DATE_FORMAT = "%Y-%m-%d"
STORAGE_ENV = "MESSAGE_STORAGE_PATH"

PathLike = Union[str, Path]


def local_data_dir() -> Path:
    """Return the platform-standard per-user local data directory."""
    home = Path.home()
    system = platform.system()
    if system == "Windows":
        return Path(os.environ.get("LOCALAPPDATA") or home / "AppData" / "Local")
    if system == "Darwin":
        return home / "Library" / "Application Support"
    return Path(os.environ.get("XDG_DATA_HOME") or home / ".local" / "share")


def storage_root(override: Optional[PathLike] = None) -> Path:
    if override:
        return Path(override)
    env = os.environ.get(STORAGE_ENV)
    if env:
        return Path(env)
    return local_data_dir()


def _check_user(user: str) -> str:
    # No normalisation (users stay case-sensitive); only refuse values
    # that would leave the namespace directory.
    if not user or user in {".", ".."} or "/" in user or "\\" in user or "\x00" in user:
        raise StorageError(f"invalid user identifier for storage path: {user!r}")
    return user


def user_root(user: str, root: Optional[PathLike] = None) -> Path:
    return storage_root(root) / NAMESPACE / _check_user(user)


def day_dir(user: str, day: date, root: Optional[PathLike] = None) -> Path:
    return user_root(user, root) / day.strftime(DATE_FORMAT)


def day_file(user: str, day: date, root: Optional[PathLike] = None) -> Path:
    return day_dir(user, day, root) / MESSAGES_FILE


def parse_day(name: str) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` directory name; None for anything else."""
    try:
        parsed = datetime.strptime(name, DATE_FORMAT).date()
    except ValueError:
        return None
    # strptime accepts unpadded fields ("2024-1-1"); only canonical names map to a day.
    if parsed.strftime(DATE_FORMAT) != name:
        return None
    return parsed
