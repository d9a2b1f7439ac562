"""Execution tier selection."""

from enum import Enum

from subtrans.config import Settings

from .models.context import TranslationContext

# Longer inputs need the high-capability tier
LONG_TEXT_CHARS = 200


class ModelTier(str, Enum):
    """Named execution profile."""

    AUTO = "auto"
    FAST = "fast"  # Low latency, short single lines
    PRO = "pro"  # High capability, rich context or long text


def select_tier(text: str, context: TranslationContext) -> ModelTier:
    """Pick the tier for a request.

    Glossaries and few-shot examples need stronger reasoning, as do long or
    multi-line inputs. Everything else goes to the fast tier.
    """
    if context.has_glossary or context.has_examples:
        return ModelTier.PRO

    if len(text) > LONG_TEXT_CHARS or "\n" in text:
        return ModelTier.PRO

    return ModelTier.FAST


def resolve_model(
    tier: ModelTier,
    text: str,
    context: TranslationContext,
    settings: Settings,
) -> str:
    """Resolve a requested tier (possibly AUTO) to a model id."""
    if tier is ModelTier.AUTO:
        tier = select_tier(text, context)
    if tier is ModelTier.PRO:
        return settings.pro_model
    return settings.fast_model
