"""Persistence configuration and option resolution.

Options are given at two levels:

* :class:`GlobalPersistOptions` apply to every persisted store created
  through one plugin instance.
* :class:`PersistOptions` are declared per store and win over the global
  ones, field by field.

:func:`resolve_options` merges both over the built-in defaults into an
:class:`EffectivePersistConfig`, which is fixed for the lifetime of one
attachment.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from simplepersist.keys import KeyFactory, make_key, prefixed_key_factory
from simplepersist.serializer import JsonSerializer, Serializer
from simplepersist.storage import FileStorage, StorageLike, platform_storage

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class PersistContext:
    """What lifecycle hooks receive: the store and its effective options."""

    store: Any
    options: EffectivePersistConfig


RestoreHook = Callable[[PersistContext], None]
RestoreErrorHandler = Callable[[Exception], None]


class BasePersistOptions(BaseModel):
    """Options recognised at both the global and the store level.

    ``None`` means "not set here" and falls through to the next level.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    storage: StorageLike | None = None
    serializer: Serializer | None = None
    debounce_ms: float | None = Field(
        default=None,
        ge=0,
        description="Save coalescing window in milliseconds; 0 disables debouncing.",
    )
    before_restore: RestoreHook | None = None
    after_restore: RestoreHook | None = None
    on_restore_error: RestoreErrorHandler | None = None


class PersistOptions(BasePersistOptions):
    """Per-store options."""

    key: str | None = Field(default=None, min_length=1, description="Backing-store key override.")


class GlobalPersistOptions(BasePersistOptions):
    """Defaults shared by every store attached through one plugin."""

    make_key: KeyFactory | None = None

    @classmethod
    def from_env(cls, **overrides: Any) -> GlobalPersistOptions:
        """Create global options from environment variables.

        Reads ``SIMPLEPERSIST_DEBOUNCE_MS``, ``SIMPLEPERSIST_KEY_PREFIX`` and
        ``SIMPLEPERSIST_STORAGE_PATH``. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        GlobalPersistOptions
            Populated options.
        """
        env = os.environ
        kwargs: dict[str, Any] = {}

        debounce_env = env.get("SIMPLEPERSIST_DEBOUNCE_MS")
        if debounce_env is not None and "debounce_ms" not in overrides:
            kwargs["debounce_ms"] = float(debounce_env)

        prefix_env = env.get("SIMPLEPERSIST_KEY_PREFIX")
        if prefix_env is not None and "make_key" not in overrides:
            kwargs["make_key"] = prefixed_key_factory(prefix_env)

        path_env = env.get("SIMPLEPERSIST_STORAGE_PATH")
        if path_env and "storage" not in overrides:
            kwargs["storage"] = FileStorage(os.path.expanduser(path_env))

        kwargs.update(overrides)
        return cls(**kwargs)


@dataclasses.dataclass(frozen=True)
class EffectivePersistConfig:
    """Resolved settings for one persisted store.

    Parameters
    ----------
    key : str
        Backing-store key the snapshot is written under.
    storage : StorageLike
        Backing key-value store.
    serializer : Serializer
        Snapshot codec.
    debounce_ms : float
        Save coalescing window; ``0`` saves synchronously on every change.
    before_restore, after_restore : callable or None
        Lifecycle hooks receiving a :class:`PersistContext`.
    on_restore_error : callable or None
        Receives the exception raised while restoring. When absent the
        exception propagates out of the attach call.
    """

    key: str
    storage: StorageLike
    serializer: Serializer
    debounce_ms: float = 0
    before_restore: RestoreHook | None = None
    after_restore: RestoreHook | None = None
    on_restore_error: RestoreErrorHandler | None = None


def coerce_persist_options(value: PersistOptions | Mapping[str, Any] | bool | None) -> PersistOptions | None:
    """Normalize a store's ``persist`` declaration.

    ``None``/``False`` mean the store is not persisted, ``True`` persists it
    with global options only, and a mapping is validated into
    :class:`PersistOptions`.
    """
    if value is None or value is False:
        return None
    if value is True:
        return PersistOptions()
    if isinstance(value, PersistOptions):
        return value
    return PersistOptions.model_validate(dict(value))


def _pick(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def resolve_options(
    global_options: GlobalPersistOptions | None,
    store_options: PersistOptions | None,
    store_id: str,
) -> EffectivePersistConfig:
    """Merge store-level over global over built-in defaults.

    The platform default storage is only created when neither level
    configures one.
    """
    glob = global_options or GlobalPersistOptions()
    local = store_options or PersistOptions()

    key = local.key
    if key is None:
        key_factory = glob.make_key or make_key
        key = key_factory(store_id)

    storage = _pick(local.storage, glob.storage)
    if storage is None:
        storage = platform_storage()

    config = EffectivePersistConfig(
        key=key,
        storage=storage,
        serializer=_pick(local.serializer, glob.serializer) or JsonSerializer(),
        debounce_ms=_pick(local.debounce_ms, glob.debounce_ms) or 0,
        before_restore=_pick(local.before_restore, glob.before_restore),
        after_restore=_pick(local.after_restore, glob.after_restore),
        on_restore_error=_pick(local.on_restore_error, glob.on_restore_error),
    )
    _logger.debug(
        "Resolved persist options store_id=%s key=%s storage=%s debounce_ms=%s",
        store_id,
        config.key,
        type(config.storage).__name__,
        config.debounce_ms,
    )
    return config
