"""Debounced action scheduling on an asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

_logger = logging.getLogger(__name__)


class _TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerLoop(Protocol):
    """The part of :class:`asyncio.AbstractEventLoop` the debouncer needs."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _TimerHandle: ...


class Debouncer:
    """Coalesce rapid triggers into one delayed call of *action*.

    Each :meth:`trigger` cancels the pending timer and arms a new one, so
    only the last trigger within a ``wait_ms`` window runs the action.  With
    ``wait_ms == 0`` every trigger runs the action synchronously and no
    event loop is involved.

    The timer is armed on *loop* when given, otherwise on the loop running
    at trigger time.
    """

    def __init__(
        self,
        action: Callable[[], None],
        wait_ms: float,
        *,
        loop: TimerLoop | None = None,
    ) -> None:
        if wait_ms < 0:
            raise ValueError("wait_ms must be >= 0")
        self._action = action
        self._wait_ms = wait_ms
        self._loop = loop
        self._handle: _TimerHandle | None = None

    @property
    def wait_ms(self) -> float:
        return self._wait_ms

    @property
    def pending(self) -> bool:
        """Whether a scheduled call is waiting to fire."""
        return self._handle is not None

    def trigger(self) -> None:
        if not self._wait_ms:
            self._action()
            return

        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._wait_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        """Drop the pending call, if any. Safe to call repeatedly."""
        handle = self._handle
        self._handle = None
        if handle is None:
            return
        handle.cancel()
        _logger.debug("Cancelled pending debounced call")

    def flush(self) -> bool:
        """Run the pending call now. Returns whether one was pending."""
        if self._handle is None:
            return False
        self.cancel()
        self._action()
        return True

    def _fire(self) -> None:
        self._handle = None
        self._action()


def make_debounce(
    action: Callable[[], None],
    wait_ms: float,
    *,
    loop: TimerLoop | None = None,
) -> tuple[Callable[[], None], Callable[[], None]]:
    """Return ``(trigger, cancel)`` for a fresh :class:`Debouncer`."""
    debouncer = Debouncer(action, wait_ms, loop=loop)
    return debouncer.trigger, debouncer.cancel
