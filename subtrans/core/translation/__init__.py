"""Subtitle translation core.

- TranslationOrchestrator: Single-shot, streaming and batch translation
- ContentDeduplicator: Batch line planning and reconstruction
- ModelTier / select_tier: Complexity-based model choice
- OutputProcessor: Cleaning of model output
"""

from .models import (
    Tone,
    GlossaryEntry,
    FewShotExample,
    TranslationContext,
    SubtitleFormat,
    BatchLineRecord,
    BatchPlan,
    BatchStatus,
    BatchResult,
)
from .model_selector import ModelTier, select_tier, resolve_model
from .dedup import ContentDeduplicator
from .output_processor import OutputProcessor
from .cache import TranslationCache, make_cache_key
from .streaming import StreamRegistry, StreamSession, StreamTicket
from .orchestrator import TranslationOrchestrator, ConnectionCheck

__all__ = [
    "Tone",
    "GlossaryEntry",
    "FewShotExample",
    "TranslationContext",
    "SubtitleFormat",
    "BatchLineRecord",
    "BatchPlan",
    "BatchStatus",
    "BatchResult",
    "ModelTier",
    "select_tier",
    "resolve_model",
    "ContentDeduplicator",
    "OutputProcessor",
    "TranslationCache",
    "make_cache_key",
    "StreamRegistry",
    "StreamTicket",
    "StreamSession",
    "TranslationOrchestrator",
    "ConnectionCheck",
]
