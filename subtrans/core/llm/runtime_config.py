"""LLM runtime configuration.

Single source of the generation parameters that reach the upstream call.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from subtrans.config import Settings


# Subtitles for action and drama trip default filters too often
DEFAULT_SAFETY_SETTINGS: List[Dict[str, str]] = [
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_ONLY_HIGH"},
]


@dataclass
class LLMRuntimeConfig:
    """Complete LLM configuration resolved for a single request."""

    # Connection parameters
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    # Generation parameters
    temperature: float = 0.3
    max_tokens: int = 8192
    safety_settings: List[Dict[str, str]] = field(
        default_factory=lambda: [dict(s) for s in DEFAULT_SAFETY_SETTINGS]
    )
    high_reasoning: bool = False

    @classmethod
    def for_model(cls, model: str, settings: Settings) -> "LLMRuntimeConfig":
        """Build the translation config for a model id.

        Gemini 3 models get the high reasoning level so they can analyse the
        scene before translating.
        """
        return cls(
            model=model,
            api_key=settings.gemini_api_key,
            base_url=settings.llm_base_url,
            temperature=settings.temperature,
            max_tokens=settings.max_output_tokens,
            high_reasoning="gemini-3" in model,
        )

    def to_litellm_kwargs(self) -> Dict[str, Any]:
        """Convert to kwargs for litellm.acompletion()."""
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        if self.api_key:
            kwargs["api_key"] = self.api_key

        if self.base_url:
            kwargs["api_base"] = self.base_url

        if self.safety_settings:
            kwargs["safety_settings"] = self.safety_settings

        if self.high_reasoning:
            kwargs["reasoning_effort"] = "high"

        return kwargs

    def with_overrides(
        self,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> "LLMRuntimeConfig":
        """Create a copy with specific overrides applied."""
        return replace(
            self,
            temperature=temperature if temperature is not None else self.temperature,
            max_tokens=max_tokens if max_tokens is not None else self.max_tokens,
        )
