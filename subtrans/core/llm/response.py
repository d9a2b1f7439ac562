"""LLM request and response models.

Provider-agnostic shapes exchanged with the gateway. The orchestrator only
depends on the response text and, when the provider reports it, the exact
token count.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Message(BaseModel):
    """Single message in LLM conversation."""

    role: str = Field(..., description="Message role: 'system' or 'user'")
    content: str = Field(..., description="Message content")


class PromptBundle(BaseModel):
    """Rendered prompts ready for the gateway."""

    system_prompt: Optional[str] = Field(default=None, description="System instruction")
    user_prompt: str = Field(..., description="User message with the text to translate")

    def to_openai_format(self) -> List[Dict[str, str]]:
        """Convert to OpenAI-style message dicts, as expected by LiteLLM."""
        messages = []
        if self.system_prompt:
            messages.append(Message(role="system", content=self.system_prompt))
        messages.append(Message(role="user", content=self.user_prompt))
        return [m.model_dump() for m in messages]

    @property
    def prompt_text(self) -> str:
        """All prompt text, used for token estimates."""
        return (self.system_prompt or "") + self.user_prompt


class TokenUsage(BaseModel):
    """Token consumption details."""

    prompt_tokens: int = Field(default=0, description="Tokens in the prompt")
    completion_tokens: int = Field(default=0, description="Tokens in the completion")
    total_tokens: int = Field(default=0, description="Total tokens used")

    def model_post_init(self, __context: Any) -> None:
        """Calculate total if not provided."""
        if not self.total_tokens and (self.prompt_tokens or self.completion_tokens):
            self.total_tokens = self.prompt_tokens + self.completion_tokens


class LLMResponse(BaseModel):
    """Complete (non-streamed) response from the upstream model."""

    content: str = Field(..., description="Response content from LLM")
    model: str = Field(..., description="Model identifier used")
    usage: Optional[TokenUsage] = Field(
        default=None, description="Exact usage when the provider reports it"
    )
    latency_ms: int = Field(default=0, description="Response latency in milliseconds")

    @property
    def total_tokens(self) -> Optional[int]:
        if self.usage is None or not self.usage.total_tokens:
            return None
        return self.usage.total_tokens


def estimate_tokens(prompt: str, output: str = "") -> int:
    """Estimate tokens charged for a call without usage metadata.

    About 3.5 characters per prompt token and 2 per output token, plus a
    fixed 50 for instructions and overhead.
    """
    input_tokens = math.ceil(len(prompt) / 3.5)
    output_tokens = math.ceil(len(output) / 2)
    return input_tokens + output_tokens + 50
