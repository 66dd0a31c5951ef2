from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Flashcard SRS"
    database_url: str = f"sqlite+aiosqlite:///{DATA_DIR / 'flashcard_srs.db'}"

    # SM-2
    initial_ease_factor: float = 2.5
    min_ease_factor: float = 1.3
    max_ease_factor: float = 5.0
    passing_quality: int = 3
    first_interval_days: int = 1
    second_interval_days: int = 6

    # Mastery
    mastery_min_repetitions: int = 3
    mastery_min_ease_factor: float = 2.0

    # Review writes
    review_max_attempts: int = 3

    # Predictive scheduling
    model_path: str = str(DATA_DIR / "review_model.joblib")
    min_training_examples: int = 100
    training_window_days: int = 90
    prediction_min_confidence: float = 0.6
    study_plan_horizon_hours: int = 24
    study_plan_max_cards: int = 50

    # Background retraining
    retrain_enabled: bool = True
    retrain_interval_hours: float = 168.0  # weekly
    retrain_initial_delay_seconds: float = 60.0
    retrain_error_backoff_seconds: float = 3600.0

    debug: bool = False

    model_config = {"env_prefix": "FLASHCARD_SRS_", "env_file": ".env"}


settings = Settings()
