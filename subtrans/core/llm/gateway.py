"""LLM Gateway for upstream model access.

This module provides an abstract gateway interface for the upstream model
service, along with the LiteLLM implementation. Provider exceptions are
normalized into ``UpstreamServiceError`` here so that the rest of the
orchestrator only sees a status code and a message.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import AsyncIterator, NoReturn

from litellm import acompletion

from subtrans.core.resilience.errors import UpstreamServiceError

from .response import LLMResponse, PromptBundle, TokenUsage
from .runtime_config import LLMRuntimeConfig

logger = logging.getLogger(__name__)


class LLMGateway(ABC):
    """Abstract gateway for the upstream model service."""

    @abstractmethod
    async def generate(self, bundle: PromptBundle, config: LLMRuntimeConfig) -> LLMResponse:
        """Make a complete (non-streaming) call.

        Args:
            bundle: Rendered prompts
            config: Model and generation parameters

        Returns:
            LLMResponse with text and optional exact usage
        """
        pass

    @abstractmethod
    def stream(self, bundle: PromptBundle, config: LLMRuntimeConfig) -> AsyncIterator[str]:
        """Make a streaming call.

        Args:
            bundle: Rendered prompts
            config: Model and generation parameters

        Yields:
            Partial text chunks as they arrive
        """
        pass

    @abstractmethod
    async def ping(self, config: LLMRuntimeConfig) -> None:
        """Send a minimal request, raising on failure."""
        pass


def _raise_upstream(error: Exception, model: str) -> NoReturn:
    status_code = getattr(error, "status_code", None)
    logger.error(f"[LLM Gateway] Call failed: model={model}, status={status_code}, error={error}")
    raise UpstreamServiceError(str(error), status_code=status_code) from error


class LiteLLMGateway(LLMGateway):
    """Gateway for all providers using LiteLLM."""

    async def generate(self, bundle: PromptBundle, config: LLMRuntimeConfig) -> LLMResponse:
        start_time = time.time()

        kwargs = config.to_litellm_kwargs()
        kwargs["messages"] = bundle.to_openai_format()

        logger.info(
            f"[LLM Gateway] Calling LiteLLM: model={config.model}, "
            f"temperature={config.temperature}, max_tokens={config.max_tokens}"
        )

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            _raise_upstream(e, config.model)

        latency_ms = int((time.time() - start_time) * 1000)

        usage = None
        if getattr(response, "usage", None):
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        result = LLMResponse(
            content=response.choices[0].message.content or "",
            model=config.model,
            usage=usage,
            latency_ms=latency_ms,
        )
        logger.info(f"[LLM Gateway] Response: tokens={result.total_tokens}, latency={latency_ms}ms")
        return result

    async def stream(self, bundle: PromptBundle, config: LLMRuntimeConfig) -> AsyncIterator[str]:
        kwargs = config.to_litellm_kwargs()
        kwargs["messages"] = bundle.to_openai_format()
        kwargs["stream"] = True

        logger.info(f"[LLM Gateway] Streaming: model={config.model}, temperature={config.temperature}")

        try:
            response = await acompletion(**kwargs)
            async for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            _raise_upstream(e, config.model)

    async def ping(self, config: LLMRuntimeConfig) -> None:
        kwargs = config.with_overrides(max_tokens=1).to_litellm_kwargs()
        kwargs.pop("reasoning_effort", None)
        kwargs["messages"] = [{"role": "user", "content": "ping"}]
        try:
            await acompletion(**kwargs)
        except Exception as e:
            _raise_upstream(e, config.model)
