"""Card catalog: flashcard sets and the cards they contain."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from srs_backend.models.base import Base, TimestampMixin


class CardSet(Base, TimestampMixin):
    __tablename__ = "flashcard_sets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    owner: Mapped["User"] = relationship(back_populates="card_sets")  # type: ignore[name-defined] # noqa: F821
    flashcards: Mapped[list["Flashcard"]] = relationship(
        back_populates="card_set", cascade="all, delete-orphan"
    )


class Flashcard(Base, TimestampMixin):
    __tablename__ = "flashcards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    set_id: Mapped[int] = mapped_column(ForeignKey("flashcard_sets.id"), nullable=False, index=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    card_set: Mapped["CardSet"] = relationship(back_populates="flashcards")
    progress: Mapped[list["ProgressRecord"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="flashcard", cascade="all, delete-orphan"
    )
