"""LLM integration package.

This package provides:
- LLMRuntimeConfig: Generation parameters for one upstream call
- LLMGateway / LiteLLMGateway: Upstream model access
- PromptBundle / LLMResponse: Request and response shapes
"""

from .runtime_config import LLMRuntimeConfig, DEFAULT_SAFETY_SETTINGS
from .response import Message, PromptBundle, TokenUsage, LLMResponse, estimate_tokens
from .gateway import LLMGateway, LiteLLMGateway

__all__ = [
    "LLMRuntimeConfig",
    "DEFAULT_SAFETY_SETTINGS",
    "Message",
    "PromptBundle",
    "TokenUsage",
    "LLMResponse",
    "estimate_tokens",
    "LLMGateway",
    "LiteLLMGateway",
]
