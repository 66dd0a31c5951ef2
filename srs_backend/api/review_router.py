"""API routes for grading cards and tracking set progress."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from srs_backend.api.deps import get_current_user_id
from srs_backend.api.schemas import (
    DueCardResponse,
    GradeRequest,
    GradeResponse,
    SetCompletionResponse,
)
from srs_backend.database import get_session
from srs_backend.errors import (
    CardAccessError,
    ConcurrencyConflictError,
    InvalidQualityError,
    StorageError,
)
from srs_backend.srs.queue import CompletionStatus, get_completion_status, list_due_cards
from srs_backend.srs.review import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reviews"])

review_service = ReviewService()


def _completion_response(status: CompletionStatus) -> SetCompletionResponse:
    return SetCompletionResponse(
        set_id=status.set_id,
        cards_studied_count=status.cards_studied_count,
        total_cards_count=status.total_cards_count,
        is_completed=status.is_completed,
        completed_at=status.completed_at,
    )


@router.post("/reviews", response_model=GradeResponse)
async def submit_review(
    request: GradeRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> GradeResponse:
    """Grade a flashcard (quality 0-5) and reschedule it."""
    try:
        outcome = await review_service.submit_grade(db, user_id, request.card_id, request.quality)
    except InvalidQualityError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except CardAccessError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (ConcurrencyConflictError, StorageError) as exc:
        logger.error("Review of card %d by user %d failed: %s", request.card_id, user_id, exc)
        raise HTTPException(status_code=503, detail="Review could not be saved, please retry") from exc

    return GradeResponse(
        card_id=outcome.card_id,
        next_review_date=outcome.next_review_date,
        interval_days=outcome.interval_days,
        message=outcome.message,
        ease_factor=outcome.ease_factor,
        repetitions=outcome.repetitions,
        is_mastered=outcome.is_mastered,
        set_completed=outcome.set_completed,
    )


@router.get("/sets/{set_id}/due", response_model=list[DueCardResponse])
async def due_cards(
    set_id: int,
    only_due: bool = False,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> list[DueCardResponse]:
    """List the set's cards with their due status."""
    try:
        cards = await list_due_cards(db, user_id, set_id, only_due=only_due)
    except CardAccessError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return [
        DueCardResponse(
            card_id=card.card_id,
            next_review_date=card.next_review_date,
            last_reviewed_at=card.last_reviewed_at,
            is_due=card.is_due,
        )
        for card in cards
    ]


@router.post("/sets/{set_id}/open", response_model=SetCompletionResponse)
async def open_set(
    set_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> SetCompletionResponse:
    """Record that the user opened a set."""
    try:
        status = await review_service.open_set(db, user_id, set_id)
    except CardAccessError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (ConcurrencyConflictError, StorageError) as exc:
        raise HTTPException(status_code=503, detail="Set access could not be saved, please retry") from exc
    return _completion_response(status)


@router.get("/sets/{set_id}/completion", response_model=SetCompletionResponse)
async def set_completion(
    set_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> SetCompletionResponse:
    """How many of the set's cards the user has mastered."""
    try:
        status = await get_completion_status(db, user_id, set_id)
    except CardAccessError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _completion_response(status)
