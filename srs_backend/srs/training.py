"""Training data collection and retraining for the review predictor.

Examples come from progress rows with at least one successful repetition
reviewed within the training window. The label is the interval SM-2 assigned,
in hours.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from srs_backend.config import settings, utcnow
from srs_backend.models.progress import ProgressRecord
from srs_backend.srs.predictor import (
    DEFAULT_RETENTION_RATE,
    ReviewFeatures,
    ReviewPredictor,
    TrainingExample,
)
from srs_backend.srs.sm2 import ProgressState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserHistory:
    """A user's recall record across all cards."""

    total_reviews: int = 0
    correct_reviews: int = 0

    @property
    def retention_rate(self) -> float:
        """Percentage of reviews graded 3 or better."""
        if self.total_reviews == 0:
            return DEFAULT_RETENTION_RATE
        return 100.0 * self.correct_reviews / self.total_reviews


@dataclass
class TrainingStats:
    total_examples: int
    required_examples: int
    is_ready: bool
    model_trained: bool


async def load_user_history(db: AsyncSession, user_ids: Iterable[int]) -> dict[int, UserHistory]:
    """Sum each user's review counters over their progress rows."""
    ids = list(set(user_ids))
    if not ids:
        return {}
    stmt = (
        select(
            ProgressRecord.user_id,
            func.coalesce(func.sum(ProgressRecord.total_reviews), 0),
            func.coalesce(func.sum(ProgressRecord.correct_reviews), 0),
        )
        .where(ProgressRecord.user_id.in_(ids))
        .group_by(ProgressRecord.user_id)
    )
    history = {user_id: UserHistory() for user_id in ids}
    for user_id, total, correct in (await db.execute(stmt)).all():
        history[user_id] = UserHistory(total_reviews=int(total), correct_reviews=int(correct))
    return history


def _training_filter(now: datetime, window_days: int):
    cutoff = now - timedelta(days=window_days)
    return and_(ProgressRecord.repetitions > 0, ProgressRecord.last_reviewed_at >= cutoff)


async def collect_training_examples(
    db: AsyncSession,
    now: datetime | None = None,
    window_days: int = settings.training_window_days,
) -> list[TrainingExample]:
    """Build labeled examples from recent progress rows."""
    now = now or utcnow()
    stmt = select(ProgressRecord).where(_training_filter(now, window_days))
    records = list((await db.execute(stmt)).scalars().all())
    history = await load_user_history(db, (record.user_id for record in records))

    examples = []
    for record in records:
        state = ProgressState.from_record(record)
        features = ReviewFeatures.from_state(state, now, history[record.user_id].retention_rate)
        examples.append(TrainingExample(features=features, optimal_review_hours=state.interval * 24.0))
    logger.debug("Collected %d training examples (window %d days)", len(examples), window_days)
    return examples


async def retrain_model(
    db: AsyncSession,
    predictor: ReviewPredictor,
    now: datetime | None = None,
) -> int:
    """Retrain the predictor from current progress data.

    Raises:
        InsufficientTrainingDataError: fewer examples than the predictor's
            minimum; no training happens.
    """
    examples = await collect_training_examples(db, now)
    # Fitting is CPU-bound; keep it off the event loop
    return await asyncio.to_thread(predictor.train, examples)


async def training_stats(
    db: AsyncSession,
    predictor: ReviewPredictor,
    now: datetime | None = None,
) -> TrainingStats:
    now = now or utcnow()
    stmt = select(func.count(ProgressRecord.id)).where(
        _training_filter(now, settings.training_window_days)
    )
    total = (await db.execute(stmt)).scalar() or 0
    return TrainingStats(
        total_examples=total,
        required_examples=predictor.min_examples,
        is_ready=total >= predictor.min_examples,
        model_trained=predictor.is_trained,
    )
