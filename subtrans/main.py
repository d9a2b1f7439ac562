"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from subtrans.config import settings
from subtrans.api.dependencies import get_orchestrator
from subtrans.api.v1.routes import health, translation

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: load the reservoir so the daily refill happens before traffic
    orchestrator = get_orchestrator()
    reservoir = orchestrator.get_reservoir()
    logger.info(
        f"Token reservoir: {reservoir.remaining}/{reservoir.capacity} tokens remaining"
    )
    yield


app = FastAPI(
    title=settings.app_name,
    description="Subtitle translation with hosted LLMs",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(translation.router, prefix="/api/v1", tags=["translation"])
app.include_router(health.router, prefix="/api/v1", tags=["health"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Subtitle Translator API", "version": "0.1.0"}
