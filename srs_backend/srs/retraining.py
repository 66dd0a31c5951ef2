"""Periodic background retraining of the review predictor.

Started from the app lifespan as an asyncio task and cancelled on shutdown.
Each run checks the training stats first and skips with a warning when there
is not enough data; a failed run is retried after a shorter backoff.
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from srs_backend.config import settings
from srs_backend.srs.predictor import ReviewPredictor
from srs_backend.srs.training import retrain_model, training_stats

logger = logging.getLogger(__name__)


async def run_scheduled_retrain(
    session_factory: async_sessionmaker[AsyncSession],
    predictor: ReviewPredictor,
    now: datetime | None = None,
) -> int | None:
    """Retrain once if enough data is available.

    Returns:
        The number of examples used, or None if the run was skipped.
    """
    async with session_factory() as db:
        stats = await training_stats(db, predictor, now)
        if not stats.is_ready:
            logger.warning(
                "Skipping scheduled retrain: %d examples, need %d",
                stats.total_examples,
                stats.required_examples,
            )
            return None
        used = await retrain_model(db, predictor, now)
    logger.info("Scheduled retrain finished on %d examples", used)
    return used


async def retrain_periodically(
    session_factory: async_sessionmaker[AsyncSession],
    predictor: ReviewPredictor,
    interval_seconds: float = settings.retrain_interval_hours * 3600,
    initial_delay_seconds: float = settings.retrain_initial_delay_seconds,
    error_backoff_seconds: float = settings.retrain_error_backoff_seconds,
) -> None:
    """Run ``run_scheduled_retrain`` forever until the task is cancelled."""
    logger.info("Background retraining every %.1f hours", interval_seconds / 3600)
    await asyncio.sleep(initial_delay_seconds)
    while True:
        try:
            await run_scheduled_retrain(session_factory, predictor)
            delay = interval_seconds
        except Exception:
            logger.exception("Scheduled retrain failed, retrying in %.0f seconds", error_backoff_seconds)
            delay = error_backoff_seconds
        await asyncio.sleep(delay)
