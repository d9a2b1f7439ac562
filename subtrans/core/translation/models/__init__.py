"""Translation data models.

This module provides structured data models for the orchestrator,
ensuring type safety and clear contracts between components.
"""

from .context import Tone, GlossaryEntry, FewShotExample, TranslationContext
from .batch import (
    SubtitleFormat,
    BatchLineRecord,
    BatchPlan,
    BatchStatus,
    BatchResult,
)

__all__ = [
    # Context models
    "Tone",
    "GlossaryEntry",
    "FewShotExample",
    "TranslationContext",
    # Batch models
    "SubtitleFormat",
    "BatchLineRecord",
    "BatchPlan",
    "BatchStatus",
    "BatchResult",
]
