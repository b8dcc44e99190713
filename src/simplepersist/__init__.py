"""simplepersist - Save and restore observable store state to key-value storage."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("simplepersist")
except PackageNotFoundError:
    __version__ = "0+local"
from simplepersist.config import (
    EffectivePersistConfig,
    GlobalPersistOptions,
    PersistContext,
    PersistOptions,
    resolve_options,
)
from simplepersist.coordinator import (
    Attachment,
    AttachmentState,
    PersistableStore,
    PersistenceCoordinator,
    StoreCapabilities,
    attach,
    ensure_capabilities,
)
from simplepersist.debounce import Debouncer, make_debounce
from simplepersist.exceptions import (
    PersistConfigError,
    PersistRestoreError,
    PersistStateError,
    SimplePersistError,
)
from simplepersist.keys import DEFAULT_KEY_PREFIX, make_key, prefixed_key_factory
from simplepersist.mapper import Ref, StateMapper, make_state_mapper
from simplepersist.plugin import PluginContext, SimplePersistPlugin, create_simple_persist
from simplepersist.serializer import JsonSerializer, ModelSerializer, Serializer
from simplepersist.storage import FileStorage, MemoryStorage, StorageLike, platform_storage

__all__ = [
    "__version__",
    "DEFAULT_KEY_PREFIX",
    "Attachment",
    "AttachmentState",
    "Debouncer",
    "EffectivePersistConfig",
    "FileStorage",
    "GlobalPersistOptions",
    "JsonSerializer",
    "MemoryStorage",
    "ModelSerializer",
    "PersistConfigError",
    "PersistContext",
    "PersistOptions",
    "PersistRestoreError",
    "PersistStateError",
    "PersistableStore",
    "PersistenceCoordinator",
    "PluginContext",
    "Ref",
    "Serializer",
    "SimplePersistError",
    "SimplePersistPlugin",
    "StateMapper",
    "StorageLike",
    "StoreCapabilities",
    "attach",
    "create_simple_persist",
    "ensure_capabilities",
    "make_debounce",
    "make_key",
    "make_state_mapper",
    "platform_storage",
    "prefixed_key_factory",
    "resolve_options",
]
