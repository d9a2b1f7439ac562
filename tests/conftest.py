"""Shared fixtures: a scripted gateway, a manual clock and a recording sleep."""

from collections import deque
from datetime import datetime
from typing import Callable, List, Optional, Union

import pytest

from subtrans.config import Settings
from subtrans.core.llm import LLMGateway, LLMResponse, LLMRuntimeConfig, PromptBundle
from subtrans.core.storage import MemoryStore
from subtrans.core.translation import TranslationOrchestrator

Scripted = Union[str, LLMResponse, BaseException, Callable[[PromptBundle], str]]

# Midday, so small clock movements never cross a local date boundary
START_TIME = datetime(2026, 10, 19, 12, 0, 0).timestamp()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep that returns immediately, advancing the clock."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds)


def batch_input_lines(bundle: PromptBundle) -> List[str]:
    """Unique lines sent in a batch prompt."""
    block = bundle.user_prompt.split("\n\n")[0]
    return block.split("\n")[1:]


def translate_batch_lines(bundle: PromptBundle) -> str:
    """Answer a batch prompt with one "MM <line>" per input line."""
    return "\n".join(f"MM {line}" for line in batch_input_lines(bundle))


class FakeGateway(LLMGateway):
    """Gateway answering from a script of responses."""

    def __init__(self, *script: Scripted, default: Optional[Scripted] = None):
        self.script = deque(script)
        self.default = default
        self.bundles: List[PromptBundle] = []
        self.configs: List[LLMRuntimeConfig] = []
        self.stream_chunks: List[str] = []
        self.stream_error: Optional[BaseException] = None
        self.stream_calls = 0
        self.ping_error: Optional[BaseException] = None
        self.on_ping: Optional[Callable[[], None]] = None
        self.pinged: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.bundles)

    async def generate(self, bundle: PromptBundle, config: LLMRuntimeConfig) -> LLMResponse:
        self.bundles.append(bundle)
        self.configs.append(config)
        item = self.script.popleft() if self.script else self.default
        if item is None:
            raise AssertionError("FakeGateway script exhausted")
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, LLMResponse):
            return item
        if callable(item):
            item = item(bundle)
        return LLMResponse(content=item, model=config.model)

    async def stream(self, bundle: PromptBundle, config: LLMRuntimeConfig):
        self.stream_calls += 1
        self.bundles.append(bundle)
        self.configs.append(config)
        for chunk in self.stream_chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    async def ping(self, config: LLMRuntimeConfig) -> None:
        self.pinged.append(config.model)
        if self.on_ping is not None:
            self.on_ping()
        if self.ping_error is not None:
            raise self.ping_error


def make_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        gemini_api_key="test-key",
        fast_model="gemini/fast",
        pro_model="gemini/pro",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleep(clock: ManualClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(gateway, store, settings, clock, sleep) -> TranslationOrchestrator:
    return TranslationOrchestrator(
        gateway=gateway,
        store=store,
        settings=settings,
        sleep=sleep,
        clock=clock,
        monotonic=clock,
    )


@pytest.fixture
def build_orchestrator(store, clock, sleep):
    """Factory for orchestrators with custom gateway and settings."""

    def build(gateway: FakeGateway, **setting_overrides) -> TranslationOrchestrator:
        return TranslationOrchestrator(
            gateway=gateway,
            store=store,
            settings=make_settings(**setting_overrides),
            sleep=sleep,
            clock=clock,
            monotonic=clock,
        )

    return build
