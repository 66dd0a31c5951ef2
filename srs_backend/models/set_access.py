"""Per-user access and completion record for a flashcard set."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from srs_backend.config import utcnow
from srs_backend.models.base import Base, TimestampMixin


class SetAccessRecord(Base, TimestampMixin):
    """Tracks how far a user is through a set.

    ``cards_studied_count`` is the number of cards in the set the user
    currently has mastered. It is maintained incrementally from mastery
    transitions and never recomputed by scanning the set.
    """

    __tablename__ = "user_flashcard_set_access"
    __table_args__ = (UniqueConstraint("user_id", "set_id", name="uq_set_access_user_set"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    set_id: Mapped[int] = mapped_column(ForeignKey("flashcard_sets.id"), nullable=False)
    first_accessed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    last_accessed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_cards_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cards_studied_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    user: Mapped["User"] = relationship(back_populates="set_accesses")  # type: ignore[name-defined] # noqa: F821
