"""Health, budget and preference API routes."""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from subtrans.api.dependencies import Orchestrator
from subtrans.core.resilience import MetricsSnapshot, ReservoirState
from subtrans.core.translation import ConnectionCheck

router = APIRouter()


class HealthCheckResponse(BaseModel):
    """Health probe result with the metrics it produced."""
    ok: bool
    metrics: MetricsSnapshot


class ModelCheckRequest(BaseModel):
    model: str


class PreferenceValue(BaseModel):
    name: str
    enabled: bool


class PreferenceUpdate(BaseModel):
    enabled: bool


@router.get("/health/metrics")
async def get_metrics(orchestrator: Orchestrator) -> MetricsSnapshot:
    return orchestrator.get_metrics()


@router.get("/health/reservoir")
async def get_reservoir(orchestrator: Orchestrator) -> ReservoirState:
    return orchestrator.get_reservoir()


@router.post("/health/reset")
async def reset_health(orchestrator: Orchestrator) -> MetricsSnapshot:
    """Zero the request metrics. The token budget is kept."""
    return orchestrator.reset_system_health()


@router.post("/health/check")
async def check_health(orchestrator: Orchestrator) -> HealthCheckResponse:
    """Ping the fast model and update the service status."""
    ok = await orchestrator.check_system_health()
    return HealthCheckResponse(ok=ok, metrics=orchestrator.get_metrics())


@router.post("/health/models/check")
async def check_model(
    request: ModelCheckRequest,
    orchestrator: Orchestrator,
) -> ConnectionCheck:
    """Probe one model id without touching the metrics."""
    return await orchestrator.check_model_connection(request.model)


@router.get("/preferences/{name}")
async def get_preference(
    name: str,
    orchestrator: Orchestrator,
    default: Optional[bool] = False,
) -> PreferenceValue:
    return PreferenceValue(name=name, enabled=orchestrator.preferences.get_flag(name, bool(default)))


@router.put("/preferences/{name}")
async def set_preference(
    name: str,
    update: PreferenceUpdate,
    orchestrator: Orchestrator,
) -> PreferenceValue:
    orchestrator.preferences.set_flag(name, update.enabled)
    return PreferenceValue(name=name, enabled=update.enabled)
