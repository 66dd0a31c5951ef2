"""Read-only view of the card catalog used by the scheduler.

The catalog itself (sets, cards, ownership) is managed elsewhere; the
scheduler only asks existence, membership and visibility questions.
"""

from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from srs_backend.models.flashcard import CardSet, Flashcard


@dataclass(frozen=True)
class CardRef:
    """A flashcard and the set it belongs to."""

    card_id: int
    set_id: int


class CardStore:
    """Queries against the ``flashcards`` and ``flashcard_sets`` tables."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def card_exists(self, card_id: int) -> bool:
        stmt = select(func.count(Flashcard.id)).where(Flashcard.id == card_id)
        return ((await self.db.execute(stmt)).scalar() or 0) > 0

    async def set_membership(self, card_id: int) -> int | None:
        """Return the id of the set containing ``card_id``, or None if there is no such card."""
        stmt = select(Flashcard.set_id).where(Flashcard.id == card_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def card_count(self, set_id: int) -> int:
        stmt = select(func.count(Flashcard.id)).where(Flashcard.set_id == set_id)
        return (await self.db.execute(stmt)).scalar() or 0

    async def card_ids(self, set_id: int) -> list[int]:
        stmt = (
            select(Flashcard.id)
            .where(Flashcard.set_id == set_id)
            .order_by(Flashcard.order_index.asc(), Flashcard.id.asc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def is_accessible(self, user_id: int, card_id: int) -> bool:
        """A card is visible to its set's owner, or to everyone if the set is public."""
        return await self.accessible_card(user_id, card_id) is not None

    async def accessible_card(self, user_id: int, card_id: int) -> CardRef | None:
        """Return the card's reference if ``user_id`` may see it."""
        stmt = (
            select(Flashcard.id, Flashcard.set_id)
            .join(CardSet, CardSet.id == Flashcard.set_id)
            .where(
                Flashcard.id == card_id,
                or_(CardSet.owner_id == user_id, CardSet.is_public.is_(True)),
            )
        )
        row = (await self.db.execute(stmt)).first()
        return CardRef(card_id=row.id, set_id=row.set_id) if row else None

    async def set_is_accessible(self, user_id: int, set_id: int) -> bool:
        stmt = select(func.count(CardSet.id)).where(
            CardSet.id == set_id,
            or_(CardSet.owner_id == user_id, CardSet.is_public.is_(True)),
        )
        return ((await self.db.execute(stmt)).scalar() or 0) > 0
