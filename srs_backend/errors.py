"""Exceptions raised by the review scheduler."""


class SRSError(Exception):
    """Base exception for the review scheduler."""


class InvalidQualityError(SRSError):
    """The quality rating is not an integer between 0 and 5."""


class CardAccessError(SRSError):
    """The card or set does not exist or is not visible to the user."""


class NotFoundError(SRSError):
    """No progress exists for the requested (user, card) pair."""


class ModelUnavailableError(SRSError):
    """The predictive model cannot give a confident answer.

    Recovered internally by falling back to the SM-2 schedule.
    """


class InsufficientTrainingDataError(SRSError):
    """Too few labeled examples to (re)train the predictive model."""

    def __init__(self, available: int, required: int) -> None:
        super().__init__(
            f"Not enough data to train the model: {available} examples, at least {required} required"
        )
        self.available = available
        self.required = required


class ConcurrencyConflictError(SRSError):
    """Another writer changed the same progress or set record first."""


class StorageError(SRSError):
    """The database failed while persisting a review."""
