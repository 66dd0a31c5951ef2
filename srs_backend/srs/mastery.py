"""Mastery classification and incremental set-completion bookkeeping.

A set's ``cards_studied_count`` is kept equal to the number of its cards the
user currently has mastered by applying each card's mastery transition as a
+1/-1 delta. The write path never rescans the set.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime

from srs_backend.config import settings
from srs_backend.srs.sm2 import ProgressState

logger = logging.getLogger(__name__)


class MasteryClassifier:
    """Decides whether a card counts as durably learned."""

    def __init__(
        self,
        min_repetitions: int = settings.mastery_min_repetitions,
        min_ease: float = settings.mastery_min_ease_factor,
    ) -> None:
        self.min_repetitions = min_repetitions
        self.min_ease = min_ease

    def is_mastered(self, state: ProgressState) -> bool:
        return state.repetitions >= self.min_repetitions and state.ease_factor >= self.min_ease

    def classify(self, state: ProgressState) -> ProgressState:
        """Return ``state`` with ``is_mastered`` re-derived."""
        return replace(state, is_mastered=self.is_mastered(state))


@dataclass(frozen=True)
class MasteryTransition:
    """How one grading changed a card's mastery and review status."""

    was_mastered: bool
    is_mastered: bool
    was_reviewed: bool = True

    @property
    def became_mastered(self) -> bool:
        return not self.was_mastered and self.is_mastered

    @property
    def lost_mastery(self) -> bool:
        return self.was_mastered and not self.is_mastered

    @property
    def became_reviewed(self) -> bool:
        """True on the first-ever grading of the card."""
        return not self.was_reviewed


@dataclass(frozen=True)
class SetCompletion:
    """Completion counters of one user's progress through one set."""

    total_cards_count: int
    cards_studied_count: int = 0
    is_completed: bool = False
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record) -> "SetCompletion":
        return cls(
            total_cards_count=record.total_cards_count,
            cards_studied_count=record.cards_studied_count,
            is_completed=record.is_completed,
            completed_at=record.completed_at,
        )

    @classmethod
    def seeded(cls, total_cards_count: int, first_card_mastered: bool) -> "SetCompletion":
        """Initial counters for a set first touched by grading one card."""
        return cls(total_cards_count=total_cards_count, cards_studied_count=1 if first_card_mastered else 0)

    def apply_to(self, record) -> None:
        record.total_cards_count = self.total_cards_count
        record.cards_studied_count = self.cards_studied_count
        record.is_completed = self.is_completed
        record.completed_at = self.completed_at


def apply_transition(completion: SetCompletion, transition: MasteryTransition, now: datetime) -> SetCompletion:
    """Apply one card's mastery change to its set's counters.

    Args:
        completion: Current counters for the (user, set).
        transition: The card's mastery before and after the grading.
        now: Timestamp recorded if the set becomes completed.

    Returns:
        The updated counters. Repeated reviews that do not change the
        card's mastery leave the count untouched.
    """
    count = completion.cards_studied_count
    if transition.became_mastered:
        count += 1
    elif transition.lost_mastery:
        count = max(0, count - 1)
    return check_completion(replace(completion, cards_studied_count=count), now)


def check_completion(completion: SetCompletion, now: datetime) -> SetCompletion:
    """Latch ``is_completed`` once every card in the set is mastered.

    The latch only moves from False to True; losing mastery later never
    clears it.
    """
    if completion.is_completed or completion.total_cards_count <= 0:
        return completion
    if completion.cards_studied_count < completion.total_cards_count:
        return completion
    return replace(completion, is_completed=True, completed_at=now)


def resync_total(completion: SetCompletion, total_cards_count: int, now: datetime) -> SetCompletion:
    """Refresh the card-count snapshot when a set is opened."""
    studied = min(completion.cards_studied_count, total_cards_count)
    if studied != completion.cards_studied_count:
        logger.info(
            "Set shrank to %d cards, clamping studied count from %d",
            total_cards_count,
            completion.cards_studied_count,
        )
    return check_completion(
        replace(completion, total_cards_count=total_cards_count, cards_studied_count=studied),
        now,
    )
