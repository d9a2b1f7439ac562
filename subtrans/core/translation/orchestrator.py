"""Translation request orchestrator.

Composes the resilience components with the upstream gateway and exposes
single-shot, streaming and batch translation:

    request -> ModelSelector / ContentDeduplicator -> RetryEngine
            -> reservoir + breaker admission -> LLMGateway
            -> classify on failure -> MetricsHub on every outcome
"""

import asyncio
import logging
import time
from contextlib import aclosing
from typing import AsyncIterator, Callable, List, Optional, Sequence, Set

from pydantic import BaseModel

from subtrans.config import Settings, settings as default_settings
from subtrans.core.llm import LLMGateway, LLMRuntimeConfig, estimate_tokens
from subtrans.core.resilience import (
    CircuitBreaker,
    ErrorKind,
    MetricsHub,
    MetricsSnapshot,
    OperationAborted,
    ReservoirState,
    RetryEngine,
    ServiceStatus,
    TokenReservoir,
    classify,
)
from subtrans.core.resilience.retry import Sleep
from subtrans.core.storage import (
    BatchProgressKey,
    BatchProgressStore,
    KeyValueStore,
    PreferenceStore,
)

from .cache import TranslationCache, make_cache_key
from .dedup import ContentDeduplicator
from .model_selector import ModelTier, resolve_model
from .models.batch import BatchResult, BatchStatus, SubtitleFormat
from .models.context import TranslationContext
from .output_processor import OutputProcessor
from .prompts import build_batch_prompt, build_translation_prompt
from .streaming import StreamRegistry, StreamSession, StreamTicket

logger = logging.getLogger(__name__)


class ConnectionCheck(BaseModel):
    """Result of probing one model."""

    ok: bool
    latency_ms: int = 0
    message: Optional[str] = None


class TranslationOrchestrator:
    """Owns the shared reservoir, breaker, metrics and cache for one process.

    All upstream calls made through one instance share a single daily budget
    and a single breaker. Batch chunks are issued strictly one after another.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        store: KeyValueStore,
        settings: Settings = default_settings,
        output_processor: Optional[OutputProcessor] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """Initialize the orchestrator.

        Args:
            gateway: Upstream model gateway
            store: Key/value store for reservoir and batch progress
            settings: Application settings
            output_processor: Text-cleaning collaborator
            sleep: Awaitable sleep used for every wait
            clock: Wall clock (reservoir day boundary, breaker cooldown)
            monotonic: Monotonic clock for latency
        """
        self.gateway = gateway
        self.settings = settings
        self.output_processor = output_processor or OutputProcessor()
        self._sleep = sleep
        self._clock = clock
        self._monotonic = monotonic

        self.reservoir = TokenReservoir(store, capacity=settings.token_capacity, clock=clock)
        self.reservoir.load()
        self.metrics = MetricsHub(reservoir_tokens=self.reservoir.remaining)
        self.breaker = CircuitBreaker(
            self.metrics,
            failure_threshold=settings.circuit_failure_threshold,
            cooldown_seconds=settings.circuit_cooldown_seconds,
            clock=clock,
        )
        self.retry_engine = RetryEngine(
            breaker=self.breaker,
            metrics=self.metrics,
            reservoir=self.reservoir,
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            jitter=settings.retry_jitter,
            rate_limit_wait=settings.rate_limit_wait,
            sleep=sleep,
            clock=monotonic,
        )
        self.deduplicator = ContentDeduplicator()
        self.cache = TranslationCache()
        self.progress = BatchProgressStore(store)
        self.preferences = PreferenceStore(store)
        self._streams = StreamRegistry()
        self._active_batches: Set[asyncio.Event] = set()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def get_metrics(self) -> MetricsSnapshot:
        return self.metrics.snapshot()

    def get_reservoir(self) -> ReservoirState:
        return self.reservoir.snapshot()

    def subscribe_metrics(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self.metrics.subscribe(listener)

    def clear_cache(self) -> int:
        return self.cache.clear()

    def reset_system_health(self) -> MetricsSnapshot:
        """Operator reset of the metrics. Budget and breaker are untouched."""
        return self.metrics.reset(reservoir_tokens=self.reservoir.remaining)

    def clear_batch_progress(self, key: BatchProgressKey) -> None:
        """Forget saved progress so the next run of the file starts over."""
        self.progress.clear(key)
        logger.info(f"[Orchestrator] Cleared saved progress for {key.file_name}")

    def stop_batches(self) -> int:
        """Signal every running batch to stop before its next upstream call.

        Returns:
            Number of batches signalled
        """
        running = [event for event in self._active_batches if not event.is_set()]
        for event in running:
            event.set()
        if running:
            logger.info(f"[Orchestrator] Stop requested for {len(running)} batch(es)")
        return len(running)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _config_for(self, model: str) -> LLMRuntimeConfig:
        return LLMRuntimeConfig.for_model(model, self.settings)

    def _charge_tokens(self, count: int) -> None:
        state = self.reservoir.consume(count)
        self.metrics.increment(total_tokens_used=max(0, count))
        self.metrics.update(reservoir_tokens=state.remaining)

    async def _pause(self, seconds: float, cancel: Optional[asyncio.Event]) -> bool:
        """Wait, waking early on abort.

        Returns:
            False if the abort signal was set
        """
        if cancel is None:
            await self._sleep(seconds)
            return True
        if cancel.is_set():
            return False

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        watcher = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, watcher):
                if not task.done():
                    task.cancel()
        return not cancel.is_set()

    # ------------------------------------------------------------------
    # Single-shot
    # ------------------------------------------------------------------

    async def translate(
        self,
        text: str,
        context: TranslationContext,
        tier: ModelTier = ModelTier.AUTO,
    ) -> str:
        """Translate one request, served from cache when possible.

        Args:
            text: Line or block to translate (may be a full ASS line)
            context: Translation context
            tier: Requested tier, AUTO lets the selector decide

        Returns:
            Cleaned translation

        Raises:
            QuotaExhaustedError, CircuitOpenError, or the last upstream error
        """
        if not text.strip():
            return ""

        model = resolve_model(tier, text, context, self.settings)
        cache_key = make_cache_key(model, text, context)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"[Orchestrator] Cache hit: model={model}")
            return cached

        bundle = build_translation_prompt(text, context)
        config = self._config_for(model)

        async def call() -> str:
            response = await self.gateway.generate(bundle, config)
            tokens = response.total_tokens
            if tokens is None:
                tokens = estimate_tokens(bundle.prompt_text, response.content)
            self._charge_tokens(tokens)
            return self.output_processor.process(response.content)

        result = await self.retry_engine.execute(call)
        self.cache.set(cache_key, result)
        return result

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def translate_stream(
        self,
        text: str,
        context: TranslationContext,
        tier: ModelTier = ModelTier.AUTO,
    ) -> StreamSession:
        """Stream a translation as raw text chunks.

        The ticket is taken here, when the stream is created, so a stream
        created later supersedes this one even if neither has started
        iterating yet. A superseded stream ends silently; the returned
        session reports it through ``is_stale``. Streams are never retried.
        """
        ticket = self._streams.issue()
        return StreamSession(ticket, self._stream(text, context, tier, ticket))

    async def _stream(
        self,
        text: str,
        context: TranslationContext,
        tier: ModelTier,
        ticket: StreamTicket,
    ) -> AsyncIterator[str]:
        if not text.strip() or ticket.is_stale:
            return

        model = resolve_model(tier, text, context, self.settings)
        bundle = build_translation_prompt(text, context)
        config = self._config_for(model)

        self.retry_engine.check_admission()
        self.metrics.increment(total_requests=1)

        start = self._monotonic()
        output: List[str] = []
        try:
            async with aclosing(self.gateway.stream(bundle, config)) as chunks:
                async for chunk in chunks:
                    if ticket.is_stale:
                        logger.info(f"[Orchestrator] Stream {ticket.number} superseded, stopping")
                        self._charge_tokens(estimate_tokens(bundle.prompt_text, "".join(output)))
                        return
                    output.append(chunk)
                    yield chunk
        except Exception as e:
            self.retry_engine.record_failure(e)
            if ticket.is_stale:
                logger.info(f"[Orchestrator] Discarding failure of superseded stream {ticket.number}: {e}")
                return
            raise

        latency_ms = round((self._monotonic() - start) * 1000)
        self._charge_tokens(estimate_tokens(bundle.prompt_text, "".join(output)))
        self.retry_engine.record_success(latency_ms)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def translate_batch_chunk(
        self,
        lines: Sequence[str],
        context: TranslationContext,
        line_format: SubtitleFormat = SubtitleFormat.PLAIN,
        tier: ModelTier = ModelTier.AUTO,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> List[str]:
        """Translate one chunk with a single deduplicated upstream call.

        Args:
            lines: Raw lines of the chunk
            context: Translation context
            line_format: Input format (ASS headers are kept out of the prompt)
            tier: Requested tier
            should_abort: Abort check run before every attempt

        Returns:
            One output line per input line

        Raises:
            BatchAlignmentError: Once retries are spent on mismatched output
        """
        if not lines:
            return []

        records = self.deduplicator.split(lines, line_format)
        unique = self.deduplicator.unique_contents(records)
        if not unique:
            return list(lines)

        model = resolve_model(tier, "\n".join(unique), context, self.settings)
        bundle = build_batch_prompt(unique, context)
        config = self._config_for(model)

        logger.info(
            f"[Orchestrator] Batch chunk: {len(lines)} lines, {len(unique)} unique, model={model}"
        )

        async def call() -> List[str]:
            response = await self.gateway.generate(bundle, config)
            tokens = response.total_tokens
            if tokens is None:
                tokens = estimate_tokens(bundle.prompt_text, response.content)
            self._charge_tokens(tokens)
            translations = self.output_processor.process_lines(response.content)
            return self.deduplicator.reconstruct(records, unique, translations)

        return await self.retry_engine.execute(call, should_abort=should_abort)

    async def translate_batch(
        self,
        lines: Sequence[str],
        context: TranslationContext,
        line_format: SubtitleFormat = SubtitleFormat.PLAIN,
        tier: ModelTier = ModelTier.AUTO,
        completed: Optional[Sequence[Optional[str]]] = None,
        progress_key: Optional[BatchProgressKey] = None,
        cancel: Optional[asyncio.Event] = None,
        chunk_size: Optional[int] = None,
    ) -> BatchResult:
        """Translate a whole file in sequential chunks.

        Rate-limited chunks shrink the chunk size for the rest of this run
        and are retried after a cooldown. Any other failure stops the run and
        returns the partial state, which ``completed`` accepts to resume.

        Args:
            lines: All raw lines of the file
            context: Translation context
            line_format: Input format
            tier: Requested tier
            completed: Previous output state (None slots still pending)
            progress_key: Persist progress after every chunk under this key;
                also used to restore state when ``completed`` is not given
            cancel: Abort signal
            chunk_size: Initial chunk size (defaults to settings)

        Returns:
            BatchResult with status and per-line output state
        """
        if cancel is None:
            cancel = asyncio.Event()
        self._active_batches.add(cancel)
        try:
            return await self._run_batch(
                lines, context, line_format, tier, completed, progress_key, cancel, chunk_size
            )
        finally:
            self._active_batches.discard(cancel)

    async def _run_batch(
        self,
        lines: Sequence[str],
        context: TranslationContext,
        line_format: SubtitleFormat,
        tier: ModelTier,
        completed: Optional[Sequence[Optional[str]]],
        progress_key: Optional[BatchProgressKey],
        cancel: asyncio.Event,
        chunk_size: Optional[int],
    ) -> BatchResult:
        if completed is None and progress_key is not None:
            record = self.progress.load(progress_key, len(lines))
            if record is not None:
                logger.info(
                    f"[Orchestrator] Restored progress for {progress_key.file_name}: "
                    f"{record.completed_count}/{len(lines)} lines"
                )
                completed = record.lines

        plan = self.deduplicator.plan(lines, line_format, completed)
        state = plan.lines
        size = chunk_size or self.settings.batch_chunk_size
        chunks_completed = 0

        def aborted() -> bool:
            return cancel.is_set()

        def result(
            status: BatchStatus,
            error: Optional[BaseException] = None,
            error_kind: Optional[ErrorKind] = None,
        ) -> BatchResult:
            return BatchResult(
                status=status,
                lines=list(state),
                total_lines=len(lines),
                processed_lines=sum(1 for line in state if line is not None),
                chunk_size=size,
                chunks_completed=chunks_completed,
                error=error,
                error_kind=error_kind,
            )

        if plan.is_complete:
            return result(BatchStatus.COMPLETED)

        pending = plan.pending
        logger.info(
            f"[Orchestrator] Batch started: {len(pending)}/{len(lines)} lines pending, chunk_size={size}"
        )

        position = 0
        while position < len(pending):
            if aborted():
                logger.info("[Orchestrator] Batch aborted")
                return result(BatchStatus.CANCELLED)

            indices = pending[position:position + size]
            chunk_lines = [lines[i] for i in indices]

            attempts = 0
            while True:
                if aborted():
                    logger.info("[Orchestrator] Batch aborted")
                    return result(BatchStatus.CANCELLED)
                attempts += 1
                try:
                    translated = await self.translate_batch_chunk(
                        chunk_lines, context, line_format, tier, should_abort=aborted
                    )
                    break
                except OperationAborted:
                    logger.info("[Orchestrator] Batch aborted")
                    return result(BatchStatus.CANCELLED)
                except Exception as e:
                    kind = classify(e)
                    if kind is ErrorKind.RATE_LIMITED and attempts < self.settings.batch_max_chunk_attempts:
                        size = max(
                            self.settings.batch_min_chunk_size,
                            size - self.settings.batch_chunk_shrink_step,
                        )
                        logger.warning(
                            f"[Orchestrator] Quota exceeded on chunk {chunks_completed + 1}, "
                            f"cooling down and reducing chunk size to {size}"
                        )
                        if not await self._pause(self.settings.rate_limit_wait, cancel):
                            return result(BatchStatus.CANCELLED)
                        continue

                    logger.error(
                        f"[Orchestrator] Chunk {chunks_completed + 1} failed ({kind.value}): {e}. "
                        f"Progress saved."
                    )
                    return result(BatchStatus.FAILED, error=e, error_kind=kind)

            for relative, index in enumerate(indices):
                line = translated[relative] if relative < len(translated) else ""
                state[index] = line or self.output_processor.clean(lines[index])
            if progress_key is not None:
                self.progress.save(progress_key, state)

            position += len(indices)
            chunks_completed += 1

            if position < len(pending):
                if not await self._pause(self.settings.batch_inter_chunk_delay, cancel):
                    logger.info("[Orchestrator] Batch aborted")
                    return result(BatchStatus.CANCELLED)

        logger.info(f"[Orchestrator] Batch completed: {chunks_completed} chunks")
        return result(BatchStatus.COMPLETED)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_system_health(self) -> bool:
        """Ping the fast model and record the outcome in the metrics."""
        start = self._monotonic()
        try:
            await self.gateway.ping(self._config_for(self.settings.fast_model))
        except Exception as e:
            logger.warning(f"[Orchestrator] Health check failed: {e}")
            self.metrics.update(
                status=ServiceStatus.DOWN,
                last_error=str(e),
                last_check_timestamp=self._clock(),
            )
            return False

        latency_ms = round((self._monotonic() - start) * 1000)
        if latency_ms > self.settings.degraded_latency_ms:
            status = ServiceStatus.DEGRADED
        else:
            status = ServiceStatus.HEALTHY
        self.metrics.update(
            last_latency_ms=latency_ms,
            last_check_timestamp=self._clock(),
            status=status,
            last_error=None,
        )
        return True

    async def check_model_connection(self, model: str) -> ConnectionCheck:
        """Probe a specific model without touching the metrics."""
        start = self._monotonic()
        try:
            await self.gateway.ping(self._config_for(model))
        except Exception as e:
            return ConnectionCheck(ok=False, message=str(e))
        return ConnectionCheck(ok=True, latency_ms=round((self._monotonic() - start) * 1000))
