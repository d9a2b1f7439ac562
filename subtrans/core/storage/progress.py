"""Batch progress and preference records on top of a KeyValueStore."""

import logging
import time
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from .store import KeyValueStore

logger = logging.getLogger(__name__)


class BatchProgressKey(BaseModel):
    """Identifies one subtitle file across sessions."""

    file_name: str
    file_size: int

    @property
    def storage_key(self) -> str:
        return f"progress_{self.file_name}_{self.file_size}"


class BatchProgressRecord(BaseModel):
    """Saved translation state of a file, one slot per input line."""

    timestamp: float = Field(default_factory=time.time)
    lines: List[Optional[str]]

    @property
    def completed_count(self) -> int:
        return sum(1 for line in self.lines if line is not None)


class BatchProgressStore:
    """Save and restore per-file batch progress.

    Storage failures never interrupt a batch: a failed save is logged and the
    batch continues with its in-memory state.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, key: BatchProgressKey, lines: List[Optional[str]]) -> None:
        record = BatchProgressRecord(lines=list(lines))
        try:
            self.store.set(key.storage_key, record.model_dump_json())
        except OSError as e:
            logger.warning(f"[Progress] Could not save progress for {key.file_name}: {e}")

    def load(self, key: BatchProgressKey, expected_lines: int) -> Optional[BatchProgressRecord]:
        """Restore progress if it matches the current file.

        Args:
            key: File identity
            expected_lines: Line count of the file as loaded now

        Returns:
            The saved record, or None when absent, corrupt or of another length
        """
        raw = self.store.get(key.storage_key)
        if raw is None:
            return None
        try:
            record = BatchProgressRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"[Progress] Failed to parse saved progress for {key.file_name}: {e}")
            return None
        if len(record.lines) != expected_lines:
            return None
        return record

    def clear(self, key: BatchProgressKey) -> None:
        self.store.remove(key.storage_key)


class PreferenceStore:
    """Boolean preference flags such as focus mode."""

    PREFIX = "pref_"

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get_flag(self, name: str, default: bool = False) -> bool:
        raw = self.store.get(self.PREFIX + name)
        if raw is None:
            return default
        return raw == "true"

    def set_flag(self, name: str, value: bool) -> None:
        self.store.set(self.PREFIX + name, "true" if value else "false")
