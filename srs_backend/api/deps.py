"""Shared FastAPI dependencies."""

from fastapi import Header

from srs_backend.srs.predictor import ReviewPredictor

# Lazy singleton so importing the app never touches the model file.
_predictor: ReviewPredictor | None = None


def get_current_user_id(user_id: int = Header(..., alias="X-User-Id")) -> int:
    """Identify the caller. Authentication happens upstream and forwards the user id."""
    return user_id


def get_predictor() -> ReviewPredictor:
    """Return the shared ReviewPredictor, loading any saved model on first call."""
    global _predictor
    if _predictor is None:
        _predictor = ReviewPredictor()
        _predictor.load()
    return _predictor
