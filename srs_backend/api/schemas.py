"""Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, StrictInt

# --- Reviews ---


class GradeRequest(BaseModel):
    """Request to grade a flashcard after seeing its answer."""

    card_id: int
    quality: StrictInt  # 0=blackout .. 5=perfect, never coerced


class GradeResponse(BaseModel):
    """The card's new schedule after grading."""

    card_id: int
    next_review_date: datetime
    interval_days: int
    message: str
    ease_factor: float
    repetitions: int
    is_mastered: bool
    set_completed: bool


class DueCardResponse(BaseModel):
    card_id: int
    next_review_date: datetime | None
    last_reviewed_at: datetime | None
    is_due: bool


class SetCompletionResponse(BaseModel):
    """A user's progress through one set."""

    set_id: int
    cards_studied_count: int
    total_cards_count: int
    is_completed: bool
    completed_at: datetime | None = None


# --- Predictions ---


class PredictionResponse(BaseModel):
    """Recommended next review for a card; ``is_model_derived`` is False for the SM-2 fallback."""

    card_id: int
    optimal_review_hours: int
    recommended_review_date: datetime
    confidence: float
    reason: str
    is_model_derived: bool
    priority: str  # urgent, high, normal


class StudyPlanResponse(BaseModel):
    total_cards: int
    is_model_active: bool
    recommendations: list[PredictionResponse]


class ModelStatusResponse(BaseModel):
    is_model_trained: bool
    status: str  # active, fallback_to_sm2
    message: str


class RetrainResponse(BaseModel):
    message: str
    model_trained: bool
    examples_used: int


class TrainingStatsResponse(BaseModel):
    total_examples: int
    required_examples: int
    is_ready: bool
    model_trained: bool
