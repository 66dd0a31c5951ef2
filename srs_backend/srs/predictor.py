"""Statistical model predicting how many hours to wait before the next review.

A gradient-boosted regressor over a card's SM-2 state and the user's recall
history, trained on the intervals SM-2 has already assigned. The model is
persisted with joblib and swapped atomically when retrained.
"""

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import joblib
import numpy as np
from sklearn.ensemble import GradientBoostingRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import MinMaxScaler

from srs_backend.config import settings
from srs_backend.errors import InsufficientTrainingDataError, ModelUnavailableError
from srs_backend.srs.sm2 import ProgressState

logger = logging.getLogger(__name__)

FEATURE_NAMES = [
    "ease_factor",
    "interval",
    "repetitions",
    "days_since_last_review",
    "user_retention_rate",
    "correct_reviews",
]

# Assumed retention (percent) for users with no graded reviews yet
DEFAULT_RETENTION_RATE = 70.0


@dataclass(frozen=True)
class ReviewFeatures:
    """Model inputs for one (user, card) pair."""

    ease_factor: float
    interval: int
    repetitions: int
    days_since_last_review: float
    user_retention_rate: float  # 0-100
    correct_reviews: int
    is_mastered: bool = False

    @classmethod
    def from_state(
        cls,
        state: ProgressState,
        now: datetime,
        user_retention_rate: float = DEFAULT_RETENTION_RATE,
    ) -> "ReviewFeatures":
        days = 0.0
        if state.last_reviewed_at is not None:
            days = max(0.0, (now - state.last_reviewed_at).total_seconds() / 86400)
        return cls(
            ease_factor=state.ease_factor,
            interval=state.interval,
            repetitions=state.repetitions,
            days_since_last_review=days,
            user_retention_rate=user_retention_rate,
            correct_reviews=state.correct_reviews,
            is_mastered=state.is_mastered,
        )

    def as_row(self) -> list[float]:
        return [float(getattr(self, name)) for name in FEATURE_NAMES]


@dataclass(frozen=True)
class TrainingExample:
    features: ReviewFeatures
    optimal_review_hours: float  # label


def build_pipeline() -> Pipeline:
    """Min-max scaled features into a boosted tree ensemble."""
    return Pipeline(
        [
            ("scale", MinMaxScaler()),
            (
                "regressor",
                GradientBoostingRegressor(
                    n_estimators=100,
                    max_leaf_nodes=20,
                    min_samples_leaf=10,
                    random_state=42,
                ),
            ),
        ]
    )


class ReviewPredictor:
    """Holds the trained model, if any, and serves predictions from it."""

    def __init__(
        self,
        model_path: str | Path | None = settings.model_path,
        min_examples: int = settings.min_training_examples,
    ) -> None:
        self.model_path = Path(model_path) if model_path else None
        self.min_examples = min_examples
        self._model: Pipeline | None = None
        self._lock = threading.Lock()

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    def load(self) -> bool:
        """Load a previously saved model. Returns True if one was loaded."""
        if self.model_path is None or not self.model_path.is_file():
            logger.warning("No review model at %s; predictions fall back to SM-2", self.model_path)
            return False
        try:
            model = joblib.load(self.model_path)
        except Exception:
            # Corrupt files and models pickled by another scikit-learn version
            logger.exception("Failed to load review model from %s", self.model_path)
            return False
        with self._lock:
            self._model = model
        logger.info("Loaded review model from %s", self.model_path)
        return True

    def train(self, examples: Sequence[TrainingExample]) -> int:
        """Fit a new model and replace the current one.

        Args:
            examples: Labeled examples; at least ``min_examples`` are required.

        Returns:
            The number of examples the model was fitted on.

        Raises:
            InsufficientTrainingDataError: Too few examples. The current
                model, if any, is kept.
        """
        if len(examples) < self.min_examples:
            logger.warning(
                "Not enough data to train (%d examples, need %d)", len(examples), self.min_examples
            )
            raise InsufficientTrainingDataError(len(examples), self.min_examples)

        features = np.array([example.features.as_row() for example in examples], dtype=float)
        labels = np.array([example.optimal_review_hours for example in examples], dtype=float)

        logger.info("Training review model on %d examples", len(examples))
        pipeline = build_pipeline()
        pipeline.fit(features, labels)

        with self._lock:
            if self.model_path is not None:
                self.model_path.parent.mkdir(parents=True, exist_ok=True)
                joblib.dump(pipeline, self.model_path)
            self._model = pipeline
        logger.info("Review model trained and saved to %s", self.model_path)
        return len(examples)

    def predict_hours(self, features: ReviewFeatures) -> float:
        """Predict the optimal wait before the next review, in hours."""
        with self._lock:
            model = self._model
        if model is None:
            raise ModelUnavailableError("Review model has not been trained")
        try:
            score = model.predict(np.array([features.as_row()], dtype=float))[0]
        except Exception as exc:
            logger.exception("Review model failed to predict")
            raise ModelUnavailableError(f"Model failed on input: {exc}") from exc
        if not np.isfinite(score):
            raise ModelUnavailableError("Model produced a non-finite prediction")
        return float(score)
