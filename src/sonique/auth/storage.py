"""Durable key/value storage backing the session store.

:class:`~sonique.auth.session.SessionStore` never touches the filesystem
itself; it reads and writes string values through a
:class:`KeyValueStorage`. Two backends are provided:

- :class:`FileStorage` -- one JSON document per profile, typically
  ``~/.local/share/sonique/credentials/<profile>.json``. Files are written
  atomically (temp file + ``os.replace``) with ``0o600`` permissions so
  that tokens are never world-readable, even momentarily.
- :class:`MemoryStorage` -- a plain dict, for tests and for running several
  independent sessions in one process.

Multi-key updates go through :meth:`KeyValueStorage.update` so that a
reader either sees the state before or after the whole change, never
half of it.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Optional

from sonique.config import atomic_write, get_credentials_dir


class KeyValueStorage(ABC):
    """String-to-string storage with atomic multi-key updates."""

    @abstractmethod
    def read_all(self) -> dict[str, str]:
        """Return a copy of every stored key/value pair."""
        ...

    @abstractmethod
    def update(
        self,
        values: Optional[Mapping[str, str]] = None,
        remove: Iterable[str] = (),
    ) -> None:
        """Set *values* and delete the *remove* keys in a single write.

        Removing a key that is not present is not an error.
        """
        ...

    def get(self, key: str) -> Optional[str]:
        return self.read_all().get(key)

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def delete(self, *keys: str) -> None:
        self.update(remove=keys)


class MemoryStorage(KeyValueStorage):
    """In-process storage; lost when the object is garbage collected."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def read_all(self) -> dict[str, str]:
        return dict(self._data)

    def update(
        self,
        values: Optional[Mapping[str, str]] = None,
        remove: Iterable[str] = (),
    ) -> None:
        data = dict(self._data)
        for key in remove:
            data.pop(key, None)
        data.update(values or {})
        self._data = data


class FileStorage(KeyValueStorage):
    """JSON-file storage for a single profile.

    The file is re-read on every access so that a login completed by one
    process is visible to the next command. A missing, unreadable, or
    malformed file reads as empty; non-string values are dropped.

    Args:
        path: The JSON file to use.

    Example::

        storage = FileStorage.for_profile("default")
        storage.set("sp_access_token", "tok123")
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @classmethod
    def for_profile(cls, profile_name: str) -> FileStorage:
        """Return the storage file for *profile_name* under the data directory."""
        return cls(get_credentials_dir() / f"{profile_name}.json")

    @property
    def path(self) -> Path:
        """The filesystem path of the backing JSON file."""
        return self._path

    def read_all(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def update(
        self,
        values: Optional[Mapping[str, str]] = None,
        remove: Iterable[str] = (),
    ) -> None:
        data = self.read_all()
        for key in remove:
            data.pop(key, None)
        data.update(values or {})

        if not data:
            # Nothing left to keep; an absent file is the empty state.
            if self._path.is_file():
                self._path.unlink()
            return

        text = json.dumps(data, indent=2, sort_keys=True) + "\n"
        atomic_write(self._path, text, mode=0o600)
