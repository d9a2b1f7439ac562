"""API dependencies.

The orchestrator owns process-wide state (token reservoir, circuit breaker,
metrics, cache), so every request shares one instance.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from subtrans.config import settings
from subtrans.core.llm import LiteLLMGateway
from subtrans.core.storage import JsonFileStore
from subtrans.core.translation import TranslationOrchestrator

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_orchestrator() -> TranslationOrchestrator:
    """Return the process-wide orchestrator, creating it on first use."""
    logger.info(f"[API] Creating orchestrator, state file: {settings.state_file}")
    return TranslationOrchestrator(
        gateway=LiteLLMGateway(),
        store=JsonFileStore(settings.state_file),
        settings=settings,
    )


Orchestrator = Annotated[TranslationOrchestrator, Depends(get_orchestrator)]
