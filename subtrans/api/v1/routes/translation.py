"""Translation API routes."""

import json
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from subtrans.api.dependencies import Orchestrator
from subtrans.core.resilience import (
    CircuitOpenError,
    ErrorKind,
    QuotaExhaustedError,
    classify,
)
from subtrans.core.storage import BatchProgressKey
from subtrans.core.translation import (
    BatchStatus,
    ModelTier,
    SubtitleFormat,
    TranslationContext,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class TranslateRequest(BaseModel):
    """Single-shot or streaming translation request."""
    text: str
    context: TranslationContext = Field(default_factory=TranslationContext)
    tier: ModelTier = ModelTier.AUTO


class TranslateResponse(BaseModel):
    """Single-shot translation response."""
    translation: str


class BatchTranslateRequest(BaseModel):
    """Whole-file translation request."""
    lines: List[str]
    context: TranslationContext = Field(default_factory=TranslationContext)
    format: Optional[SubtitleFormat] = Field(
        default=None, description="Derived from file_name when omitted"
    )
    tier: ModelTier = ModelTier.AUTO
    completed: Optional[List[Optional[str]]] = Field(
        default=None, description="Previous output state to resume from"
    )
    file_name: Optional[str] = Field(default=None, description="Enables progress persistence")
    file_size: Optional[int] = None
    chunk_size: Optional[int] = Field(default=None, ge=1)


class BatchTranslateResponse(BaseModel):
    """Whole-file translation response."""
    status: BatchStatus
    lines: List[Optional[str]]
    total_lines: int
    processed_lines: int
    chunk_size: int
    chunks_completed: int
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


def raise_http_error(error: Exception) -> NoReturn:
    """Map an orchestrator error to an HTTPException."""
    if isinstance(error, QuotaExhaustedError):
        raise HTTPException(status_code=429, detail=str(error)) from error
    if isinstance(error, CircuitOpenError):
        raise HTTPException(status_code=503, detail=str(error)) from error
    kind = classify(error)
    if kind is ErrorKind.RATE_LIMITED:
        raise HTTPException(status_code=429, detail=str(error)) from error
    raise HTTPException(status_code=502, detail=f"Translation failed: {error}") from error


@router.post("/translate")
async def translate(
    request: TranslateRequest,
    orchestrator: Orchestrator,
) -> TranslateResponse:
    """Translate one line or block."""
    try:
        translation = await orchestrator.translate(request.text, request.context, request.tier)
    except Exception as e:
        raise_http_error(e)
    return TranslateResponse(translation=translation)


@router.post("/translate/stream")
async def translate_stream(
    request: TranslateRequest,
    orchestrator: Orchestrator,
):
    """Stream a translation as Server-Sent Events.

    Starting a new stream supersedes any stream still running; the
    superseded one ends with a ``superseded`` event instead of ``done``.
    """
    session = orchestrator.translate_stream(request.text, request.context, request.tier)

    async def event_generator():
        """Generate SSE events from the translation stream."""
        try:
            async for chunk in session:
                yield f"data: {json.dumps({'chunk': chunk})}\n\n"
            if session.is_stale:
                yield f"data: {json.dumps({'superseded': True})}\n\n"
            else:
                yield f"data: {json.dumps({'done': True})}\n\n"
        except Exception as e:
            error_event = {"error": str(e), "kind": classify(e).value}
            yield f"data: {json.dumps(error_event)}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )


@router.post("/translate/batch")
async def translate_batch(
    request: BatchTranslateRequest,
    orchestrator: Orchestrator,
) -> BatchTranslateResponse:
    """Translate a whole subtitle file.

    Failures after the first chunk are reported in the body with the
    partial state, which can be sent back as ``completed`` to resume.
    """
    progress_key = None
    line_format = request.format
    if request.file_name is not None:
        progress_key = BatchProgressKey(
            file_name=request.file_name,
            file_size=request.file_size or 0,
        )
        if line_format is None:
            line_format = SubtitleFormat.from_filename(request.file_name)

    result = await orchestrator.translate_batch(
        request.lines,
        request.context,
        line_format=line_format or SubtitleFormat.PLAIN,
        tier=request.tier,
        completed=request.completed,
        progress_key=progress_key,
        chunk_size=request.chunk_size,
    )

    return BatchTranslateResponse(
        status=result.status,
        lines=result.lines,
        total_lines=result.total_lines,
        processed_lines=result.processed_lines,
        chunk_size=result.chunk_size,
        chunks_completed=result.chunks_completed,
        error=result.error_message,
        error_kind=result.error_kind,
    )


@router.post("/translate/batch/stop")
async def stop_batches(orchestrator: Orchestrator):
    """Stop every running batch before its next upstream call.

    Stopped batches respond with ``cancelled`` status and their partial state.
    """
    return {"stopped": orchestrator.stop_batches()}


@router.delete("/translate/batch/progress")
async def clear_batch_progress(
    orchestrator: Orchestrator,
    file_name: str,
    file_size: int = 0,
):
    """Forget saved progress for a file."""
    orchestrator.clear_batch_progress(
        BatchProgressKey(file_name=file_name, file_size=file_size)
    )
    return {"message": f"Progress cleared for {file_name}"}
