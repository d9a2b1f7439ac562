"""Batch translation data models."""

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import List, Optional

from subtrans.core.resilience.errors import ErrorKind


class SubtitleFormat(str, Enum):
    """Line-oriented input formats.

    ASS and SRT are structured: only some of their lines carry dialogue.
    """

    PLAIN = "plain"
    ASS = "ass"
    SRT = "srt"

    @property
    def is_structured(self) -> bool:
        return self is not SubtitleFormat.PLAIN

    @classmethod
    def from_filename(cls, file_name: str) -> "SubtitleFormat":
        suffix = PurePath(file_name).suffix.lower()
        if suffix == ".ass":
            return cls.ASS
        if suffix == ".srt":
            return cls.SRT
        return cls.PLAIN


@dataclass(frozen=True)
class BatchLineRecord:
    """One input line split for translation."""

    index: int
    header: str  # Structural prefix kept verbatim (empty if none)
    content: str  # Stripped translatable text
    original: str


@dataclass
class BatchPlan:
    """Which lines of a file still need translating."""

    lines: List[Optional[str]]  # Output state, pass-through lines already filled
    pending: List[int]  # Indices still to translate, in order

    @property
    def is_complete(self) -> bool:
        return not self.pending


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class BatchResult:
    """Outcome of a batch run.

    ``lines`` holds one slot per input line; slots that were not translated
    yet are None, so the result can be saved and resumed later.
    """

    status: BatchStatus
    lines: List[Optional[str]]
    total_lines: int
    processed_lines: int
    chunk_size: int
    chunks_completed: int = 0
    error: Optional[BaseException] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def is_resumable(self) -> bool:
        return self.status is not BatchStatus.COMPLETED

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def merged_lines(self, originals: List[str]) -> List[str]:
        """Translated lines with untranslated slots falling back to the source."""
        return [
            line if line is not None else originals[i]
            for i, line in enumerate(self.lines)
        ]
