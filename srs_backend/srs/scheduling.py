"""Next-review recommendations for read-path APIs.

Two schedulers share one interface:

- ``DeterministicScheduler`` reports the date SM-2 already stored.
- ``PredictiveScheduler`` asks the trained model and falls back to the
  deterministic answer whenever the model is missing, underconfident, or
  fails on the input.

``select_scheduler`` is the single place that picks between them. Every
prediction says which one produced it through ``is_model_derived``.

This module only reads progress rows. It never adds, flushes or commits.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from srs_backend.config import settings, utcnow
from srs_backend.errors import ModelUnavailableError, NotFoundError
from srs_backend.models.progress import ProgressRecord
from srs_backend.srs.predictor import ReviewFeatures, ReviewPredictor
from srs_backend.srs.sm2 import ProgressState
from srs_backend.srs.training import UserHistory, load_user_history

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.3
EXPERIENCED_CONFIDENCE = 0.85
NOVICE_CONFIDENCE = 0.5
EXPERIENCED_REVIEW_COUNT = 10  # reviews needed before the model is trusted more
MIN_PREDICTED_HOURS = 1
MAX_PREDICTED_HOURS = 8760  # one year


def classify_priority(optimal_review_hours: float) -> str:
    """urgent within the hour, high within the day, otherwise normal."""
    if optimal_review_hours <= 1:
        return "urgent"
    if optimal_review_hours <= 24:
        return "high"
    return "normal"


@dataclass
class ReviewPrediction:
    """When to show a card next, and where that answer came from."""

    card_id: int
    optimal_review_hours: int
    recommended_review_date: datetime
    confidence: float
    reason: str
    is_model_derived: bool

    @property
    def priority(self) -> str:
        return classify_priority(self.optimal_review_hours)


@dataclass(frozen=True)
class PredictionContext:
    """Read-only inputs a scheduler needs for one card."""

    card_id: int
    state: ProgressState
    history: UserHistory


class Scheduler(ABC):
    """Produces a next-review recommendation for a card."""

    @abstractmethod
    def predict(self, context: PredictionContext, now: datetime) -> ReviewPrediction: ...


class DeterministicScheduler(Scheduler):
    """Reports the SM-2 schedule as stored in the progress record."""

    reason = "Standard SM-2 schedule"

    def predict(self, context: PredictionContext, now: datetime) -> ReviewPrediction:
        due = context.state.next_review_date or now
        seconds = max(0.0, (due - now).total_seconds())
        return ReviewPrediction(
            card_id=context.card_id,
            optimal_review_hours=math.ceil(seconds / 3600),
            recommended_review_date=due,
            confidence=FALLBACK_CONFIDENCE,
            reason=self.reason,
            is_model_derived=False,
        )


class PredictiveScheduler(Scheduler):
    """Model-backed scheduler with the deterministic one as its fallback."""

    def __init__(
        self,
        predictor: ReviewPredictor,
        fallback: DeterministicScheduler | None = None,
        min_confidence: float = settings.prediction_min_confidence,
    ) -> None:
        self.predictor = predictor
        self.fallback = fallback or DeterministicScheduler()
        self.min_confidence = min_confidence

    def predict(self, context: PredictionContext, now: datetime) -> ReviewPrediction:
        try:
            return self._predict_with_model(context, now)
        except ModelUnavailableError as exc:
            logger.warning("Card %d: using SM-2 schedule (%s)", context.card_id, exc)
            return self.fallback.predict(context, now)

    def _predict_with_model(self, context: PredictionContext, now: datetime) -> ReviewPrediction:
        if not self.predictor.is_trained:
            raise ModelUnavailableError("model not trained")

        confidence = (
            EXPERIENCED_CONFIDENCE
            if context.history.total_reviews > EXPERIENCED_REVIEW_COUNT
            else NOVICE_CONFIDENCE
        )
        if confidence < self.min_confidence:
            raise ModelUnavailableError(
                f"confidence {confidence:.2f} below threshold {self.min_confidence:.2f}"
            )

        features = ReviewFeatures.from_state(context.state, now, context.history.retention_rate)
        raw_hours = self.predictor.predict_hours(features)
        hours = max(MIN_PREDICTED_HOURS, min(MAX_PREDICTED_HOURS, int(raw_hours)))

        logger.debug(
            "Card %d: model predicts %d hours (confidence %.2f)", context.card_id, hours, confidence
        )
        return ReviewPrediction(
            card_id=context.card_id,
            optimal_review_hours=hours,
            recommended_review_date=now + timedelta(hours=hours),
            confidence=confidence,
            reason=explain(features),
            is_model_derived=True,
        )


def explain(features: ReviewFeatures) -> str:
    if features.is_mastered:
        return "Card mastered, occasional reviews to keep it fresh"
    if features.repetitions < 3:
        return "Early stage of learning, frequent reviews"
    if features.user_retention_rate > 80:
        return "Strong recall history, interval extended"
    return "Interval tuned to your review history"


def select_scheduler(predictor: ReviewPredictor | None) -> Scheduler:
    """Use the model when one is trained, SM-2 otherwise."""
    if predictor is not None and predictor.is_trained:
        return PredictiveScheduler(predictor)
    return DeterministicScheduler()


@dataclass
class ModelStatus:
    is_model_trained: bool
    status: str
    message: str


class PredictionService:
    """Read-path queries: next review for a card and the user's study plan."""

    def __init__(self, predictor: ReviewPredictor | None = None) -> None:
        self.predictor = predictor

    @property
    def scheduler(self) -> Scheduler:
        return select_scheduler(self.predictor)

    def model_status(self) -> ModelStatus:
        if self.predictor is not None and self.predictor.is_trained:
            return ModelStatus(True, "active", "Model is trained and serving predictions")
        return ModelStatus(False, "fallback_to_sm2", "Model is not trained; using the SM-2 schedule")

    async def predict_next_review(
        self,
        db: AsyncSession,
        user_id: int,
        card_id: int,
        now: datetime | None = None,
    ) -> ReviewPrediction:
        """Recommend when the user should next see a card.

        Raises:
            NotFoundError: the user has never graded this card.
        """
        now = now or utcnow()
        stmt = select(ProgressRecord).where(
            ProgressRecord.user_id == user_id, ProgressRecord.flashcard_id == card_id
        )
        record = (await db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise NotFoundError(f"No progress for flashcard {card_id}")

        history = await load_user_history(db, [user_id])
        context = PredictionContext(card_id, ProgressState.from_record(record), history[user_id])
        return self.scheduler.predict(context, now)

    async def study_plan(
        self,
        db: AsyncSession,
        user_id: int,
        now: datetime | None = None,
        horizon_hours: int = settings.study_plan_horizon_hours,
        limit: int = settings.study_plan_max_cards,
    ) -> list[ReviewPrediction]:
        """Cards due within the horizon, soonest first.

        Args:
            db: Database session.
            user_id: The user to plan for.
            now: Current time (defaults to utcnow).
            horizon_hours: How far ahead to look for due cards.
            limit: Maximum number of cards in the plan.

        Returns:
            Predictions sorted by ascending ``optimal_review_hours``.
        """
        now = now or utcnow()
        horizon = now + timedelta(hours=horizon_hours)
        stmt = (
            select(ProgressRecord)
            .where(
                ProgressRecord.user_id == user_id,
                or_(
                    ProgressRecord.next_review_date.is_(None),
                    ProgressRecord.next_review_date <= horizon,
                ),
            )
            .order_by(ProgressRecord.next_review_date.asc().nulls_first(), ProgressRecord.id.asc())
            .limit(limit)
        )
        records = list((await db.execute(stmt)).scalars().all())
        if not records:
            return []

        history = (await load_user_history(db, [user_id]))[user_id]
        scheduler = self.scheduler
        plan = [
            scheduler.predict(
                PredictionContext(record.flashcard_id, ProgressState.from_record(record), history), now
            )
            for record in records
        ]
        plan.sort(key=lambda p: (p.optimal_review_hours, p.recommended_review_date))

        logger.info(
            "Study plan for user %d: %d cards (%s)",
            user_id,
            len(plan),
            "model" if isinstance(scheduler, PredictiveScheduler) else "SM-2",
        )
        return plan
