"""Backing-store key derivation."""

from __future__ import annotations

from collections.abc import Callable

from simplepersist.exceptions import PersistConfigError

#: Namespace prepended to every store id by the default key factory.
DEFAULT_KEY_PREFIX = "pinia-"

KeyFactory = Callable[[str], str]


def make_key(store_id: str) -> str:
    """Return the default backing-store key for *store_id*.

    Distinct store ids always map to distinct keys, so independent stores
    can share one backing store.
    """
    if not store_id:
        raise PersistConfigError("store id must be non-empty to derive a storage key")
    return f"{DEFAULT_KEY_PREFIX}{store_id}"


def prefixed_key_factory(prefix: str) -> KeyFactory:
    """Build a key factory using *prefix* instead of :data:`DEFAULT_KEY_PREFIX`."""

    def _make_key(store_id: str) -> str:
        if not store_id:
            raise PersistConfigError("store id must be non-empty to derive a storage key")
        return f"{prefix}{store_id}"

    return _make_key
