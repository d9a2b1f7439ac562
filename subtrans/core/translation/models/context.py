"""Translation context models.

This module defines the per-request context passed along with the text to
translate. The orchestrator treats it as opaque input for prompt building,
cache keys and model selection.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Tone(str, Enum):
    """Dialogue tone hint."""

    AUTO = "Auto"
    CASUAL = "Casual"
    FORMAL = "Formal"
    AGGRESSIVE = "Aggressive"
    ROUGH = "Rough"
    INTIMATE = "Intimate"


class GlossaryEntry(BaseModel):
    """Term that must be translated consistently."""

    model_config = ConfigDict(frozen=True)

    term: str = Field(..., description="Source term")
    definition: str = Field(default="", description="Required rendering or explanation")


class FewShotExample(BaseModel):
    """A user correction used as a style reference."""

    model_config = ConfigDict(frozen=True)

    original: str
    translated: str


class TranslationContext(BaseModel):
    """Immutable context for a single translation request."""

    model_config = ConfigDict(frozen=True)

    movie_title: str = Field(default="", description="Source material label")
    speaker: str = Field(default="", description="Who is speaking")
    listener: str = Field(default="", description="Who is spoken to")
    tone: Tone = Field(default=Tone.AUTO)
    scene_description: str = Field(default="")
    glossary: List[GlossaryEntry] = Field(
        default_factory=list, description="Ordered term -> definition pairs"
    )
    few_shot_examples: List[FewShotExample] = Field(
        default_factory=list, description="Ordered correction examples"
    )

    @field_validator("glossary")
    @classmethod
    def _unique_terms(cls, entries: List[GlossaryEntry]) -> List[GlossaryEntry]:
        """Keep the first definition of each term, preserving order."""
        seen = set()
        unique = []
        for entry in entries:
            if entry.term in seen:
                continue
            seen.add(entry.term)
            unique.append(entry)
        return unique

    @property
    def has_glossary(self) -> bool:
        return bool(self.glossary)

    @property
    def has_examples(self) -> bool:
        return bool(self.few_shot_examples)

    def glossary_text(self) -> str:
        """Render the glossary as ``term: definition`` lines."""
        return "\n".join(
            f"{e.term}: {e.definition}" if e.definition else e.term
            for e in self.glossary
        )

    def cache_fields(self) -> tuple:
        """Context fields that take part in the translation cache key."""
        return (self.movie_title, self.tone.value, self.speaker, self.listener)
