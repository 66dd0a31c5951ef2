"""Read-side views of a user's progress through a set.

Due detection is pull-based: a card is due when its ``next_review_date`` is
absent or not after the query time. Nothing here writes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from srs_backend.config import utcnow
from srs_backend.errors import CardAccessError
from srs_backend.models.flashcard import Flashcard
from srs_backend.models.progress import ProgressRecord
from srs_backend.models.set_access import SetAccessRecord
from srs_backend.srs.card_store import CardStore
from srs_backend.srs.sm2 import SM2

logger = logging.getLogger(__name__)


@dataclass
class DueCard:
    card_id: int
    next_review_date: datetime | None
    last_reviewed_at: datetime | None
    is_due: bool


@dataclass
class CompletionStatus:
    """A user's completion counters for one set."""

    set_id: int
    cards_studied_count: int
    total_cards_count: int
    is_completed: bool
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: SetAccessRecord) -> "CompletionStatus":
        return cls(
            set_id=record.set_id,
            cards_studied_count=record.cards_studied_count,
            total_cards_count=record.total_cards_count,
            is_completed=record.is_completed,
            completed_at=record.completed_at,
        )


async def list_due_cards(
    db: AsyncSession,
    user_id: int,
    set_id: int,
    now: datetime | None = None,
    only_due: bool = False,
) -> list[DueCard]:
    """List every card of a set with its due status for a user.

    Cards the user has never graded have no progress row and are always due.

    Args:
        db: Database session.
        user_id: The user asking.
        set_id: The set to inspect.
        now: Current time (defaults to utcnow).
        only_due: Drop cards that are not yet due.

    Returns:
        One DueCard per card in the set, in the set's order.
    """
    if not await CardStore(db).set_is_accessible(user_id, set_id):
        raise CardAccessError(f"Flashcard set {set_id} not found or access denied")

    now = now or utcnow()
    stmt = (
        select(Flashcard.id, ProgressRecord.next_review_date, ProgressRecord.last_reviewed_at)
        .outerjoin(
            ProgressRecord,
            and_(ProgressRecord.flashcard_id == Flashcard.id, ProgressRecord.user_id == user_id),
        )
        .where(Flashcard.set_id == set_id)
        .order_by(Flashcard.order_index.asc(), Flashcard.id.asc())
    )
    rows = (await db.execute(stmt)).all()

    cards = [
        DueCard(
            card_id=row.id,
            next_review_date=row.next_review_date,
            last_reviewed_at=row.last_reviewed_at,
            is_due=SM2.is_due(row.next_review_date, now),
        )
        for row in rows
    ]
    if only_due:
        cards = [card for card in cards if card.is_due]

    logger.debug(
        "Set %d for user %d: %d/%d cards due",
        set_id,
        user_id,
        sum(1 for card in cards if card.is_due),
        len(rows),
    )
    return cards


async def get_completion_status(db: AsyncSession, user_id: int, set_id: int) -> CompletionStatus:
    """Return the user's stored completion counters for a set.

    A set the user never opened or reviewed reports zero progress against
    the set's current card count.
    """
    store = CardStore(db)
    if not await store.set_is_accessible(user_id, set_id):
        raise CardAccessError(f"Flashcard set {set_id} not found or access denied")

    stmt = select(SetAccessRecord).where(
        SetAccessRecord.user_id == user_id, SetAccessRecord.set_id == set_id
    )
    access = (await db.execute(stmt)).scalar_one_or_none()
    if access is None:
        return CompletionStatus(
            set_id=set_id,
            cards_studied_count=0,
            total_cards_count=await store.card_count(set_id),
            is_completed=False,
        )
    return CompletionStatus.from_record(access)
