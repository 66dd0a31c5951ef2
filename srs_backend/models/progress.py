"""Per-user SM-2 scheduling state for a flashcard."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from srs_backend.models.base import Base, TimestampMixin


class ProgressRecord(Base, TimestampMixin):
    """One row per (user, flashcard), created on the first grading."""

    __tablename__ = "user_flashcard_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "flashcard_id", name="uq_progress_user_card"),
        Index("ix_progress_user_next_review", "user_id", "next_review_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    flashcard_id: Mapped[int] = mapped_column(ForeignKey("flashcards.id"), nullable=False)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # days
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    first_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # quality >= 3
    is_mastered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    user: Mapped["User"] = relationship(back_populates="progress")  # type: ignore[name-defined] # noqa: F821
    flashcard: Mapped["Flashcard"] = relationship(back_populates="progress")  # type: ignore[name-defined] # noqa: F821
