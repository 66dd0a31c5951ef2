"""FastAPI application entry point and configuration."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from srs_backend.api.deps import get_predictor
from srs_backend.api.prediction_router import router as prediction_router
from srs_backend.api.review_router import router as review_router
from srs_backend.config import DATA_DIR, settings
from srs_backend.database import async_session, engine
from srs_backend.models import Base
from srs_backend.srs.retraining import retrain_periodically


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize database, predictor and background retraining; clean up on shutdown."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    predictor = get_predictor()

    retrain_task = None
    if settings.retrain_enabled:
        retrain_task = asyncio.create_task(retrain_periodically(async_session, predictor))
    yield
    if retrain_task is not None:
        retrain_task.cancel()
        with suppress(asyncio.CancelledError):
            await retrain_task
    await engine.dispose()


app = FastAPI(
    title="Flashcard SRS",
    description="Spaced repetition scheduling for flashcards",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(review_router)
app.include_router(prediction_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Check database connectivity and return status."""
    async with async_session() as session:
        await session.execute(text("SELECT 1"))
    return {"status": "ok"}
