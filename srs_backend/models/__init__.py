"""SQLAlchemy ORM models for the flashcard SRS database."""

from srs_backend.models.base import Base
from srs_backend.models.flashcard import CardSet, Flashcard
from srs_backend.models.progress import ProgressRecord
from srs_backend.models.review_log import ReviewLog
from srs_backend.models.set_access import SetAccessRecord
from srs_backend.models.user import User

__all__ = ["Base", "CardSet", "Flashcard", "ProgressRecord", "ReviewLog", "SetAccessRecord", "User"]
