"""Local persistence for reservoir state, batch progress and preferences."""

from .store import KeyValueStore, MemoryStore, JsonFileStore
from .progress import (
    BatchProgressKey,
    BatchProgressRecord,
    BatchProgressStore,
    PreferenceStore,
)

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "BatchProgressKey",
    "BatchProgressRecord",
    "BatchProgressStore",
    "PreferenceStore",
]
