from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest

from simplepersist.mapper import Ref, StateMapper
from simplepersist.storage import MemoryStorage


class FakeTimerHandle:
    def __init__(self, when_ms: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.when_ms = when_ms
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Deterministic stand-in for ``asyncio`` timers, driven by :meth:`advance`."""

    def __init__(self) -> None:
        self.now_ms = 0.0
        self._timers: list[FakeTimerHandle] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.now_ms + delay * 1000.0, callback, args)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, ms: float) -> None:
        target = self.now_ms + ms
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when_ms)
            self._timers.remove(timer)
            self.now_ms = timer.when_ms
            timer.callback(*timer.args)
        self._timers = [t for t in self._timers if not t.cancelled]
        self.now_ms = target


class RecordingStorage(MemoryStorage):
    def __init__(self, initial: dict[str, str] | None = None, *, clock: FakeLoop | None = None) -> None:
        super().__init__(initial)
        self.writes: list[tuple[str, str]] = []
        self.write_times: list[float] = []
        self.reads: list[str] = []
        self._clock = clock

    def get_item(self, key: str) -> str | None:
        self.reads.append(key)
        return super().get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self.writes.append((key, value))
        if self._clock is not None:
            self.write_times.append(self._clock.now_ms)
        super().set_item(key, value)


class CounterStore:
    """Minimal observable store exposing the persistence capabilities."""

    def __init__(self, store_id: str = "test", *, count: int = 0, name: str = "original") -> None:
        self.id = store_id
        self.count = Ref(count)
        self.name = Ref(name)
        self._mapper = StateMapper(
            {"count": self.count, "name": self.name},
            {"count": 0, "name": "original"},
        )
        self._listeners: list[Callable[..., None]] = []
        self.dispose_calls = 0

    def set(self, **changes: Any) -> None:
        for field, value in changes.items():
            getattr(self, field).value = value
        for listener in list(self._listeners):
            listener({"type": "direct", "store_id": self.id})

    def serialize_state(self) -> dict[str, Any]:
        return self._mapper.serialize_state()

    def restore_state(self, data: dict[str, Any]) -> None:
        self._mapper.restore_state(data)

    def subscribe(self, listener: Callable[..., None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispose(self) -> None:
        self.dispose_calls += 1
        self._listeners.clear()


@pytest.fixture
def fake_loop() -> FakeLoop:
    return FakeLoop()


@pytest.fixture
def storage(fake_loop: FakeLoop) -> RecordingStorage:
    return RecordingStorage(clock=fake_loop)


@pytest.fixture(autouse=True)
def isolated_platform_storage(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Point the platform default storage at a temp file so tests never touch ~."""
    from simplepersist.storage import platform_storage

    monkeypatch.setenv("SIMPLEPERSIST_STORAGE_PATH", str(tmp_path / "platform.json"))
    platform_storage.cache_clear()
    yield
    platform_storage.cache_clear()
