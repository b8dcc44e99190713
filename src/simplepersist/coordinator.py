"""Attach a save/restore lifecycle to an observable store.

An attachment runs once per store::

    created -> validating -> restoring -> restored | restore_failed -> subscribed -> disposed

Validation and restore both happen synchronously inside
:meth:`PersistenceCoordinator.attach`; a store that fails validation is never
read from or written to. After that every change notification from the store
schedules a save, and the returned :class:`Attachment` is the only handle
that stops it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any, Protocol

from simplepersist._redact import redact_snapshot
from simplepersist.config import (
    EffectivePersistConfig,
    GlobalPersistOptions,
    PersistContext,
    PersistOptions,
    coerce_persist_options,
    resolve_options,
)
from simplepersist.debounce import Debouncer, TimerLoop
from simplepersist.exceptions import PersistConfigError, PersistStateError

_logger = logging.getLogger(__name__)


class AttachmentState(StrEnum):
    CREATED = "created"
    VALIDATING = "validating"
    RESTORING = "restoring"
    RESTORED = "restored"
    RESTORE_FAILED = "restore_failed"
    SUBSCRIBED = "subscribed"
    DISPOSED = "disposed"


class PersistableStore(Protocol):
    """Capabilities a store must offer to be persisted."""

    id: str

    def serialize_state(self) -> Any: ...

    def restore_state(self, data: Any) -> None: ...

    def subscribe(self, listener: Callable[..., None]) -> Callable[[], None]: ...

    def dispose(self) -> None: ...


@dataclasses.dataclass(frozen=True)
class StoreCapabilities:
    """Bound store operations, checked once at attach time."""

    store_id: str
    serialize_state: Callable[[], Any]
    restore_state: Callable[[Any], None]
    subscribe: Callable[[Callable[..., None]], Callable[[], None]]
    dispose: Callable[[], None] | None = None


def _require_method(store: Any, name: str) -> Callable[..., Any]:
    method = getattr(store, name, None)
    if not callable(method):
        raise PersistConfigError(f"A store using simplepersist must have a {name}() method")
    return method


def ensure_capabilities(store: Any) -> StoreCapabilities:
    """Check that *store* can be persisted.

    Raises
    ------
    PersistConfigError
        If the store has no usable id or lacks ``serialize_state``,
        ``restore_state`` or ``subscribe``.
    """
    restore = _require_method(store, "restore_state")
    serialize = _require_method(store, "serialize_state")
    subscribe = _require_method(store, "subscribe")

    store_id = getattr(store, "id", None)
    if not isinstance(store_id, str) or not store_id:
        raise PersistConfigError("A store using simplepersist must have a non-empty string id")

    dispose = getattr(store, "dispose", None)
    return StoreCapabilities(
        store_id=store_id,
        serialize_state=serialize,
        restore_state=restore,
        subscribe=subscribe,
        dispose=dispose if callable(dispose) else None,
    )


def _timer_loop_for(store_id: str, debounce_ms: int, loop: TimerLoop | None) -> TimerLoop | None:
    """Return the loop debounced saves are scheduled on, binding the running one if needed."""
    if debounce_ms == 0 or loop is not None:
        return loop
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        raise PersistConfigError(
            f"Store {store_id!r} debounces saves by {debounce_ms} ms but no event loop is running; "
            "attach it from inside a running loop or pass loop="
        ) from None


class Attachment:
    """Live persistence binding between one store and its storage key.

    An attachment starts in ``created``; :meth:`validate` checks the store and
    resolves its configuration before :meth:`restore` touches storage.
    Release it with :meth:`close` (stop persisting) or :meth:`dispose`
    (stop persisting, then dispose the store). It is also a context manager
    that closes on exit.
    """

    def __init__(
        self,
        store: Any,
        options: PersistOptions,
        global_options: GlobalPersistOptions | None = None,
        *,
        loop: TimerLoop | None = None,
    ) -> None:
        self._store = store
        self._options = options
        self._global_options = global_options
        self._loop = loop
        self._state = AttachmentState.CREATED
        self._caps: StoreCapabilities | None = None
        self._config: EffectivePersistConfig | None = None
        self._debouncer: Debouncer | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._restored = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def store(self) -> Any:
        return self._store

    @property
    def config(self) -> EffectivePersistConfig:
        if self._config is None:
            raise PersistStateError(f"Attachment for store {self._store_label()} has not been validated")
        return self._config

    @property
    def key(self) -> str:
        return self.config.key

    @property
    def state(self) -> AttachmentState:
        return self._state

    @property
    def restored(self) -> bool:
        """Whether persisted data was found and applied at attach time."""
        return self._restored

    @property
    def closed(self) -> bool:
        return self._state is AttachmentState.DISPOSED

    @property
    def save_pending(self) -> bool:
        return self._debouncer is not None and self._debouncer.pending

    def _bound(self) -> tuple[StoreCapabilities, EffectivePersistConfig, Debouncer]:
        if self.closed:
            raise PersistStateError(f"Attachment for store {self._store_label()} is disposed")
        if self._caps is None or self._config is None or self._debouncer is None:
            raise PersistStateError(f"Attachment for store {self._store_label()} has not been validated")
        return self._caps, self._config, self._debouncer

    def _store_label(self) -> str:
        if self._caps is not None:
            return repr(self._caps.store_id)
        return repr(getattr(self._store, "id", None))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check the store's capabilities and resolve its configuration.

        Raises
        ------
        PersistConfigError
            If the store lacks a required capability, or saves are debounced
            with no loop to schedule them on.
        PersistStateError
            If the attachment was already validated.
        """
        if self._state is not AttachmentState.CREATED:
            raise PersistStateError(f"Attachment for store {self._store_label()} is {self._state.value}")
        self._state = AttachmentState.VALIDATING
        caps = ensure_capabilities(self._store)
        config = resolve_options(self._global_options, self._options, caps.store_id)
        loop = _timer_loop_for(caps.store_id, config.debounce_ms, self._loop)
        self._caps = caps
        self._config = config
        self._debouncer = Debouncer(self._save, config.debounce_ms, loop=loop)

    def _context(self) -> PersistContext:
        return PersistContext(store=self._store, options=self.config)

    def restore(self) -> None:
        """Read the persisted record and apply it to the store."""
        caps, config, _ = self._bound()
        self._state = AttachmentState.RESTORING
        if config.before_restore is not None:
            config.before_restore(self._context())

        stored = config.storage.get_item(config.key)
        if not stored:
            _logger.debug("No persisted record store_id=%s key=%s", caps.store_id, config.key)
            return

        try:
            data = config.serializer.deserialize(stored)
            caps.restore_state(data)
            if config.after_restore is not None:
                config.after_restore(self._context())
        except Exception as exc:
            self._state = AttachmentState.RESTORE_FAILED
            if config.on_restore_error is None:
                raise
            _logger.warning(
                "Restore failed store_id=%s key=%s record_len=%d",
                caps.store_id,
                config.key,
                len(stored),
                exc_info=True,
            )
            config.on_restore_error(exc)
            return

        self._restored = True
        self._state = AttachmentState.RESTORED
        _logger.debug("Restored store_id=%s key=%s", caps.store_id, config.key)

    def subscribe(self) -> None:
        """Start saving on every change notification from the store."""
        caps, _, _ = self._bound()
        if self._unsubscribe is not None:
            return
        self._unsubscribe = caps.subscribe(self._on_change)
        self._state = AttachmentState.SUBSCRIBED

    def _on_change(self, *_args: Any, **_kwargs: Any) -> None:
        if self.closed or self._debouncer is None:
            return
        self._debouncer.trigger()

    def _save(self) -> None:
        if self.closed:
            return
        caps, config, _ = self._bound()
        snapshot = caps.serialize_state()
        record = config.serializer.serialize(snapshot)
        config.storage.set_item(config.key, record)
        _logger.debug(
            "Saved store_id=%s key=%s snapshot=%s",
            caps.store_id,
            config.key,
            redact_snapshot(snapshot),
        )

    def persist(self) -> None:
        """Save the current state now, replacing any pending debounced save."""
        _, _, debouncer = self._bound()
        if not debouncer.flush():
            self._save()

    def close(self) -> None:
        """Unsubscribe and cancel any pending save. Safe to call repeatedly."""
        if self.closed:
            return
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        self._state = AttachmentState.DISPOSED
        if self._debouncer is not None:
            self._debouncer.cancel()
        if unsubscribe is not None:
            unsubscribe()
        _logger.debug("Detached store_id=%s", self._store_label())

    def dispose(self) -> None:
        """Close the attachment, then run the store's own disposal."""
        self.close()
        if self._caps is not None and self._caps.dispose is not None:
            self._caps.dispose()

    def __enter__(self) -> Attachment:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        key = self._config.key if self._config is not None else None
        return f"Attachment(store_id={self._store_label()}, key={key!r}, state={self._state.value!r})"


class PersistenceCoordinator:
    """Attaches stores to their backing storage using shared global options.

    Usage::

        coordinator = PersistenceCoordinator(GlobalPersistOptions(storage=MemoryStorage()))
        with coordinator.attach(store, PersistOptions(debounce_ms=500)) as handle:
            ...
    """

    def __init__(
        self,
        global_options: GlobalPersistOptions | None = None,
        *,
        loop: TimerLoop | None = None,
    ) -> None:
        self._global_options = global_options or GlobalPersistOptions()
        self._loop = loop

    @property
    def global_options(self) -> GlobalPersistOptions:
        return self._global_options

    def attach(
        self,
        store: Any,
        options: PersistOptions | Mapping[str, Any] | bool | None = True,
    ) -> Attachment | None:
        """Validate *store*, restore its persisted state and start saving.

        Returns ``None`` without touching the store when *options* is
        ``None`` or ``False``.

        Raises
        ------
        PersistConfigError
            If the store lacks a required capability, or saves are debounced
            while no event loop is running and none was injected.
        Exception
            Whatever restoring raised, unless ``on_restore_error`` is set.
        """
        persist = coerce_persist_options(options)
        if persist is None:
            return None

        attachment = Attachment(store, persist, self._global_options, loop=self._loop)
        attachment.validate()
        attachment.restore()
        attachment.subscribe()
        return attachment


def attach(
    store: Any,
    options: PersistOptions | Mapping[str, Any] | bool | None = True,
    global_options: GlobalPersistOptions | None = None,
    *,
    loop: TimerLoop | None = None,
) -> Attachment | None:
    """Shortcut for ``PersistenceCoordinator(global_options, loop=loop).attach(store, options)``."""
    return PersistenceCoordinator(global_options, loop=loop).attach(store, options)
