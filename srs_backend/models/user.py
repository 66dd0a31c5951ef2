from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from srs_backend.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    # Distinct cards this user has ever graded
    total_cards_studied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    card_sets: Mapped[list["CardSet"]] = relationship(back_populates="owner")  # type: ignore[name-defined] # noqa: F821
    progress: Mapped[list["ProgressRecord"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="user", cascade="all, delete-orphan"
    )
    set_accesses: Mapped[list["SetAccessRecord"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="user", cascade="all, delete-orphan"
    )
