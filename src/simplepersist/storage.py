"""Key-value backing stores.

The coordinator only needs two synchronous operations, modelled on the Web
Storage API: ``get_item`` and ``set_item``.  Any object providing them can be
used as a backing store.  Two implementations ship with the package:

* :class:`MemoryStorage` keeps records in a dict (tests, ephemeral state).
* :class:`FileStorage` keeps every record in one JSON document on disk and is
  the platform default used when no storage is configured.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

_logger = logging.getLogger(__name__)

#: Environment variable overriding the platform default storage file.
STORAGE_PATH_ENV = "SIMPLEPERSIST_STORAGE_PATH"


@runtime_checkable
class StorageLike(Protocol):
    """Synchronous string key-value store."""

    def get_item(self, key: str) -> str | None:
        """Return the value stored under *key*, or ``None`` if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...


class MemoryStorage:
    """In-process storage backed by a plain dict."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class FileStorage:
    """Stores all records as one JSON object at a fixed path.

    - Missing, empty or unparseable files read as an empty store.
    - Every write rewrites the document atomically (temp file + replace).
    - A lock serializes access from multiple attachments sharing the file.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            doc = json.loads(raw)
        except json.JSONDecodeError:
            _logger.warning("Ignoring unreadable storage file path=%s", self._path, exc_info=True)
            return {}
        if not isinstance(doc, dict):
            _logger.warning("Ignoring storage file with non-object root path=%s", self._path)
            return {}
        return {str(k): v for k, v in doc.items() if isinstance(v, str)}

    def _save(self, doc: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, sort_keys=True)
            f.write("\n")
        tmp_path.replace(self._path)

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            doc = self._load()
            doc[key] = value
            self._save(doc)

    def remove_item(self, key: str) -> None:
        with self._lock:
            doc = self._load()
            if doc.pop(key, None) is not None:
                self._save(doc)

    def items(self) -> dict[str, str]:
        with self._lock:
            return self._load()


def default_storage_path() -> Path:
    """Location of the platform default storage file."""
    env_path = os.environ.get(STORAGE_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".simplepersist" / "storage.json"


@functools.cache
def platform_storage() -> FileStorage:
    """Process-wide default storage, created on first use.

    Call ``platform_storage.cache_clear()`` to pick up a changed
    :data:`STORAGE_PATH_ENV`.
    """
    path = default_storage_path()
    _logger.debug("Using platform default storage path=%s", path)
    return FileStorage(path)
