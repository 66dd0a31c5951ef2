"""API routes for model-backed review recommendations."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from srs_backend.api.deps import get_current_user_id, get_predictor
from srs_backend.api.schemas import (
    ModelStatusResponse,
    PredictionResponse,
    RetrainResponse,
    StudyPlanResponse,
    TrainingStatsResponse,
)
from srs_backend.database import get_session
from srs_backend.errors import InsufficientTrainingDataError, NotFoundError
from srs_backend.srs.predictor import ReviewPredictor
from srs_backend.srs.scheduling import PredictionService, ReviewPrediction
from srs_backend.srs.training import retrain_model, training_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


def _prediction_response(prediction: ReviewPrediction) -> PredictionResponse:
    return PredictionResponse(
        card_id=prediction.card_id,
        optimal_review_hours=prediction.optimal_review_hours,
        recommended_review_date=prediction.recommended_review_date,
        confidence=prediction.confidence,
        reason=prediction.reason,
        is_model_derived=prediction.is_model_derived,
        priority=prediction.priority,
    )


@router.get("/next-review/{card_id}", response_model=PredictionResponse)
async def next_review(
    card_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    predictor: ReviewPredictor = Depends(get_predictor),
) -> PredictionResponse:
    """Recommend when to review a card next."""
    try:
        prediction = await PredictionService(predictor).predict_next_review(db, user_id, card_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _prediction_response(prediction)


@router.get("/study-plan", response_model=StudyPlanResponse)
async def study_plan(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    predictor: ReviewPredictor = Depends(get_predictor),
) -> StudyPlanResponse:
    """Cards to review in the next day, most urgent first."""
    plan = await PredictionService(predictor).study_plan(db, user_id)
    return StudyPlanResponse(
        total_cards=len(plan),
        is_model_active=predictor.is_trained,
        recommendations=[_prediction_response(p) for p in plan],
    )


@router.post("/retrain", response_model=RetrainResponse)
async def retrain(
    db: AsyncSession = Depends(get_session),
    predictor: ReviewPredictor = Depends(get_predictor),
) -> RetrainResponse:
    """Retrain the model from current progress data."""
    try:
        used = await retrain_model(db, predictor)
    except InsufficientTrainingDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return RetrainResponse(message="Model retrained", model_trained=True, examples_used=used)


@router.get("/model-status", response_model=ModelStatusResponse)
async def model_status(predictor: ReviewPredictor = Depends(get_predictor)) -> ModelStatusResponse:
    status = PredictionService(predictor).model_status()
    return ModelStatusResponse(
        is_model_trained=status.is_model_trained,
        status=status.status,
        message=status.message,
    )


@router.get("/training-stats", response_model=TrainingStatsResponse)
async def get_training_stats(
    db: AsyncSession = Depends(get_session),
    predictor: ReviewPredictor = Depends(get_predictor),
) -> TrainingStatsResponse:
    stats = await training_stats(db, predictor)
    return TrainingStatsResponse(
        total_examples=stats.total_examples,
        required_examples=stats.required_examples,
        is_ready=stats.is_ready,
        model_trained=stats.model_trained,
    )
