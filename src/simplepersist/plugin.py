"""Host integration: a plugin callable a store registry invokes per store.

The registry calls the plugin once for every store it creates, passing the
store and whatever the store declared as its ``persist`` option.  Stores
without a ``persist`` declaration are returned untouched.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from typing import Any

from simplepersist.config import GlobalPersistOptions, PersistOptions
from simplepersist.coordinator import Attachment, PersistenceCoordinator
from simplepersist.debounce import TimerLoop

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class PluginContext:
    """A store being created and its declared persistence options."""

    store: Any
    persist: PersistOptions | Mapping[str, Any] | bool | None = None


class SimplePersistPlugin:
    """Callable plugin attaching persistence to stores that ask for it."""

    def __init__(
        self,
        global_options: GlobalPersistOptions | None = None,
        *,
        loop: TimerLoop | None = None,
    ) -> None:
        self._coordinator = PersistenceCoordinator(global_options, loop=loop)

    @property
    def coordinator(self) -> PersistenceCoordinator:
        return self._coordinator

    def __call__(self, context: PluginContext) -> Attachment | None:
        attachment = self._coordinator.attach(context.store, context.persist)
        if attachment is None:
            _logger.debug("Store has no persist option, skipping store=%r", context.store)
        return attachment


def create_simple_persist(
    global_options: GlobalPersistOptions | None = None,
    *,
    loop: TimerLoop | None = None,
) -> SimplePersistPlugin:
    """Create a plugin sharing *global_options* across every store it attaches."""
    return SimplePersistPlugin(global_options, loop=loop)
