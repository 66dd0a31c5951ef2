"""Review orchestrator.

The only writer of progress and set-access records. Each grading loads the
current state, runs SM-2 and the mastery classifier in memory, applies the
mastery delta to the set's counters, and commits everything in one
transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from srs_backend.config import settings, utcnow
from srs_backend.errors import (
    CardAccessError,
    ConcurrencyConflictError,
    InvalidQualityError,
    StorageError,
)
from srs_backend.models.progress import ProgressRecord
from srs_backend.models.review_log import ReviewLog
from srs_backend.models.set_access import SetAccessRecord
from srs_backend.models.user import User
from srs_backend.srs.card_store import CardStore
from srs_backend.srs.mastery import (
    MasteryClassifier,
    MasteryTransition,
    SetCompletion,
    apply_transition,
    check_completion,
    resync_total,
)
from srs_backend.srs.queue import CompletionStatus
from srs_backend.srs.sm2 import SM2, ProgressState

logger = logging.getLogger(__name__)

MIN_QUALITY = 0
MAX_QUALITY = 5


@dataclass
class GradeOutcome:
    """What the learner sees after grading a card."""

    card_id: int
    next_review_date: datetime
    interval_days: int
    message: str
    quality: int
    ease_factor: float
    repetitions: int
    is_mastered: bool
    set_completed: bool


def validate_quality(quality: object) -> int:
    """Reject anything that is not an integer rating from 0 to 5."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(f"Quality must be an integer between 0 and 5, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidQualityError(f"Quality must be between 0 and 5, got {quality}")
    return quality


def grade_message(quality: int, interval_days: int, passing_quality: int = settings.passing_quality) -> str:
    if quality >= passing_quality:
        return f"Great! Next review in {interval_days} day(s)."
    return "Try again!"


class ReviewService:
    """Applies graded reviews and set openings for a user."""

    def __init__(
        self,
        sm2: SM2 | None = None,
        classifier: MasteryClassifier | None = None,
        max_attempts: int = settings.review_max_attempts,
    ) -> None:
        self.sm2 = sm2 or SM2()
        self.classifier = classifier or MasteryClassifier()
        self.max_attempts = max_attempts

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.05, max=0.5),
            retry=retry_if_exception_type((ConcurrencyConflictError, StorageError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def submit_grade(
        self,
        db: AsyncSession,
        user_id: int,
        card_id: int,
        quality: int,
        now: datetime | None = None,
    ) -> GradeOutcome:
        """Grade a card for a user and persist the new schedule.

        Args:
            db: Database session.
            user_id: The user grading the card.
            card_id: The flashcard being graded.
            quality: Recall quality, 0-5.
            now: Review time (defaults to utcnow).

        Returns:
            The card's new schedule and a feedback message.

        Raises:
            InvalidQualityError: quality is not an integer in 0-5.
            CardAccessError: the card does not exist or is not visible.
            ConcurrencyConflictError: concurrent writers kept winning.
            StorageError: the database kept failing.
        """
        quality = validate_quality(quality)
        now = now or utcnow()
        async for attempt in self._retrying():
            with attempt:
                return await self._grade_once(db, user_id, card_id, quality, now)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _grade_once(
        self,
        db: AsyncSession,
        user_id: int,
        card_id: int,
        quality: int,
        now: datetime,
    ) -> GradeOutcome:
        try:
            card = await CardStore(db).accessible_card(user_id, card_id)
            if card is None:
                raise CardAccessError(f"Flashcard {card_id} not found or access denied")

            # Load-or-create both records before any computation
            progress = await self._load_progress(db, user_id, card.card_id)
            if progress is None:
                initial = self.sm2.initial_state()
                progress = ProgressRecord(user_id=user_id, flashcard_id=card.card_id)
                initial.apply_to(progress)
                db.add(progress)
                logger.debug("Creating progress for user %d, card %d", user_id, card.card_id)

            access = await self._load_access(db, user_id, card.set_id)
            total_cards = None
            if access is None:
                total_cards = await CardStore(db).card_count(card.set_id)

            # Pure part: no I/O until commit
            before = ProgressState.from_record(progress)
            result = self.sm2.review(before, quality, review_time=now)
            after = self.classifier.classify(result.new_state)
            transition = MasteryTransition(
                was_mastered=before.is_mastered,
                is_mastered=after.is_mastered,
                was_reviewed=before.last_reviewed_at is not None,
            )
            after.apply_to(progress)

            if access is None:
                completion = check_completion(SetCompletion.seeded(total_cards, after.is_mastered), now)
                access = SetAccessRecord(
                    user_id=user_id,
                    set_id=card.set_id,
                    first_accessed_at=now,
                    last_accessed_at=now,
                    access_count=1,
                )
                completion.apply_to(access)
                db.add(access)
                was_completed = False
                logger.info("Created set access for user %d, set %d on review", user_id, card.set_id)
            else:
                was_completed = access.is_completed
                completion = apply_transition(SetCompletion.from_record(access), transition, now)
                completion.apply_to(access)
                access.access_count += 1
                access.last_accessed_at = now

            db.add(
                ReviewLog(
                    user_id=user_id,
                    flashcard_id=card.card_id,
                    quality=quality,
                    ease_before=before.ease_factor,
                    ease_after=after.ease_factor,
                    interval_before=before.interval,
                    interval_after=after.interval,
                    repetitions_after=after.repetitions,
                    reviewed_at=now,
                )
            )
            if transition.became_reviewed:
                await db.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(total_cards_studied=User.total_cards_studied + 1)
                )
            await db.commit()
        except (StaleDataError, IntegrityError) as exc:
            await db.rollback()
            logger.warning("Write conflict grading card %d for user %d", card_id, user_id)
            raise ConcurrencyConflictError(f"Concurrent update of card {card_id}") from exc
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Storage failure grading card %d for user %d: %s", card_id, user_id, exc)
            raise StorageError("Could not save the review") from exc

        if completion.is_completed and not was_completed:
            logger.info(
                "Set completed: user %d, set %d, mastered %d/%d",
                user_id,
                card.set_id,
                completion.cards_studied_count,
                completion.total_cards_count,
            )
        logger.debug(
            "User %d graded card %d q=%d: interval %d -> %d, ease %.2f -> %.2f",
            user_id,
            card.card_id,
            quality,
            before.interval,
            after.interval,
            before.ease_factor,
            after.ease_factor,
        )

        return GradeOutcome(
            card_id=card.card_id,
            next_review_date=after.next_review_date,
            interval_days=result.interval_days,
            message=grade_message(quality, result.interval_days, self.sm2.passing_quality),
            quality=quality,
            ease_factor=after.ease_factor,
            repetitions=after.repetitions,
            is_mastered=after.is_mastered,
            set_completed=completion.is_completed,
        )

    async def open_set(
        self,
        db: AsyncSession,
        user_id: int,
        set_id: int,
        now: datetime | None = None,
    ) -> CompletionStatus:
        """Record that a user opened a set and refresh its card count."""
        now = now or utcnow()
        async for attempt in self._retrying():
            with attempt:
                return await self._open_once(db, user_id, set_id, now)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _open_once(
        self,
        db: AsyncSession,
        user_id: int,
        set_id: int,
        now: datetime,
    ) -> CompletionStatus:
        store = CardStore(db)
        try:
            if not await store.set_is_accessible(user_id, set_id):
                raise CardAccessError(f"Flashcard set {set_id} not found or access denied")

            total_cards = await store.card_count(set_id)
            access = await self._load_access(db, user_id, set_id)
            if access is None:
                access = SetAccessRecord(
                    user_id=user_id,
                    set_id=set_id,
                    first_accessed_at=now,
                    last_accessed_at=now,
                    access_count=1,
                )
                SetCompletion(total_cards_count=total_cards).apply_to(access)
                db.add(access)
            else:
                resync_total(SetCompletion.from_record(access), total_cards, now).apply_to(access)
                access.access_count += 1
                access.last_accessed_at = now
            await db.commit()
        except (StaleDataError, IntegrityError) as exc:
            await db.rollback()
            logger.warning("Write conflict opening set %d for user %d", set_id, user_id)
            raise ConcurrencyConflictError(f"Concurrent update of set {set_id}") from exc
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Storage failure opening set %d for user %d: %s", set_id, user_id, exc)
            raise StorageError("Could not record set access") from exc

        logger.info("User %d opened set %d (%d cards, visit %d)", user_id, set_id, total_cards, access.access_count)
        return CompletionStatus.from_record(access)

    @staticmethod
    async def _load_progress(db: AsyncSession, user_id: int, card_id: int) -> ProgressRecord | None:
        stmt = (
            select(ProgressRecord)
            .where(ProgressRecord.user_id == user_id, ProgressRecord.flashcard_id == card_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    @staticmethod
    async def _load_access(db: AsyncSession, user_id: int, set_id: int) -> SetAccessRecord | None:
        stmt = (
            select(SetAccessRecord)
            .where(SetAccessRecord.user_id == user_id, SetAccessRecord.set_id == set_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await db.execute(stmt)).scalar_one_or_none()
