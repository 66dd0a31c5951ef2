"""SM-2 (SuperMemo 2) spaced repetition algorithm.

Key concepts:
- Quality (q): 0-5 rating given after seeing the answer. q >= 3 is a successful recall.
- Ease factor (EF): multiplier for interval growth; higher means easier. Never below 1.3.
- Interval (I): days until the next review. 1 after the first success, 6 after the
  second, then I * EF.
- Repetitions (n): consecutive successful reviews since the last lapse.

Everything here is pure: the clock is passed in, nothing touches the database.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from srs_backend.config import settings, utcnow


@dataclass(frozen=True)
class ProgressState:
    """The SM-2 scheduling state of one card for one user."""

    ease_factor: float
    interval: int  # days
    repetitions: int
    next_review_date: datetime | None = None
    last_reviewed_at: datetime | None = None
    first_reviewed_at: datetime | None = None
    total_reviews: int = 0
    correct_reviews: int = 0
    is_mastered: bool = False

    @classmethod
    def from_record(cls, record) -> "ProgressState":
        """Snapshot a ``ProgressRecord`` row into an immutable state."""
        return cls(
            ease_factor=record.ease_factor,
            interval=record.interval,
            repetitions=record.repetitions,
            next_review_date=record.next_review_date,
            last_reviewed_at=record.last_reviewed_at,
            first_reviewed_at=record.first_reviewed_at,
            total_reviews=record.total_reviews,
            correct_reviews=record.correct_reviews,
            is_mastered=record.is_mastered,
        )

    def apply_to(self, record) -> None:
        """Copy this state onto a ``ProgressRecord`` row."""
        record.ease_factor = self.ease_factor
        record.interval = self.interval
        record.repetitions = self.repetitions
        record.next_review_date = self.next_review_date
        record.last_reviewed_at = self.last_reviewed_at
        record.first_reviewed_at = self.first_reviewed_at
        record.total_reviews = self.total_reviews
        record.correct_reviews = self.correct_reviews
        record.is_mastered = self.is_mastered


@dataclass
class ReviewResult:
    """The result of applying a graded review to a card."""

    new_state: ProgressState
    interval_days: int
    is_success: bool


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SM2:
    """SM-2 scheduler with configurable constants."""

    def __init__(
        self,
        initial_ease: float = settings.initial_ease_factor,
        min_ease: float = settings.min_ease_factor,
        max_ease: float = settings.max_ease_factor,
        passing_quality: int = settings.passing_quality,
        first_interval: int = settings.first_interval_days,
        second_interval: int = settings.second_interval_days,
    ) -> None:
        self.initial_ease = initial_ease
        self.min_ease = min_ease
        self.max_ease = max_ease
        self.passing_quality = passing_quality
        self.first_interval = first_interval
        self.second_interval = second_interval

    def initial_state(self) -> ProgressState:
        """Return the state of a card that has never been graded."""
        return ProgressState(ease_factor=self.initial_ease, interval=0, repetitions=0)

    def review(
        self,
        state: ProgressState,
        quality: int,
        review_time: datetime | None = None,
    ) -> ReviewResult:
        """Apply a quality rating to a card state.

        The caller is responsible for rejecting qualities outside 0-5.
        ``is_mastered`` is carried over unchanged; the mastery classifier
        re-derives it from the returned state.

        Args:
            state: Current card state.
            quality: Review quality (0=blackout .. 5=perfect).
            review_time: When the review happened (defaults to now).

        Returns:
            ReviewResult with the new card state.
        """
        review_time = review_time or utcnow()
        success = quality >= self.passing_quality

        if success:
            repetitions = state.repetitions + 1
            if repetitions == 1:
                interval = self.first_interval
            elif repetitions == 2:
                interval = self.second_interval
            else:
                # Grow from the previous interval by the ease held before this review
                interval = _round_half_up(state.interval * state.ease_factor)
        else:
            repetitions = 0
            interval = self.first_interval

        new_state = replace(
            state,
            ease_factor=self.update_ease(state.ease_factor, quality),
            interval=interval,
            repetitions=repetitions,
            next_review_date=review_time + timedelta(days=interval),
            last_reviewed_at=review_time,
            first_reviewed_at=state.first_reviewed_at or review_time,
            total_reviews=state.total_reviews + 1,
            correct_reviews=state.correct_reviews + (1 if success else 0),
        )
        return ReviewResult(new_state=new_state, interval_days=interval, is_success=success)

    def update_ease(self, ease_factor: float, quality: int) -> float:
        """EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), clamped to [1.3, 5.0]."""
        miss = 5 - quality
        new_ease = ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
        return min(self.max_ease, max(self.min_ease, new_ease))

    @staticmethod
    def is_due(next_review_date: datetime | None, now: datetime | None = None) -> bool:
        """A card is due when it was never scheduled or its date has passed."""
        if next_review_date is None:
            return True
        return next_review_date <= (now or utcnow())
