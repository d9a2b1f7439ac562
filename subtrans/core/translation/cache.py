"""In-memory translation cache."""

from typing import Dict, Optional, Tuple

from .models.context import TranslationContext

CacheKey = Tuple[str, ...]


def make_cache_key(model: str, text: str, context: TranslationContext) -> CacheKey:
    """Key of a single-shot translation: model, text and the context fields
    that change the wording (title, tone, speaker, listener)."""
    return (model, text) + context.cache_fields()


class TranslationCache:
    """Unbounded process-lifetime cache of single-shot results."""

    def __init__(self):
        self._entries: Dict[CacheKey, str] = {}

    def get(self, key: CacheKey) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: CacheKey, value: str) -> None:
        self._entries[key] = value

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
