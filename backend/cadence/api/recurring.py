"""API endpoints for recurring pattern detection."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from cadence.dependencies import get_db
from cadence.schemas.recurring import RecurringPatternResponse, DetectionSummary
from cadence.services import recurring_service, subscription_service
from cadence.services.recurring_service import TransactionHistoryError

router = APIRouter(prefix="/users/{user_id}/recurring", tags=["recurring"])


@router.get("", response_model=List[RecurringPatternResponse])
def get_recurring_patterns(
    user_id: str,
    db: Session = Depends(get_db)
):
    """Get all detected recurring patterns for a user."""
    return recurring_service.get_patterns(db, user_id)


@router.get("/{pattern_id}", response_model=RecurringPatternResponse)
def get_recurring_pattern(
    user_id: str,
    pattern_id: str,
    db: Session = Depends(get_db)
):
    """Get a single recurring pattern."""
    pattern = recurring_service.get_pattern(db, user_id, pattern_id)
    if not pattern:
        raise HTTPException(status_code=404, detail="Recurring pattern not found")
    return pattern


@router.post("/detect", response_model=DetectionSummary)
def detect_recurring(
    user_id: str,
    promote: bool = Query(False, description="Also track detected patterns as subscriptions"),
    db: Session = Depends(get_db)
):
    """
    Scan the user's transaction history and upsert recurring patterns.
    Returns a summary of what was saved and which merchants failed.
    """
    try:
        summary = recurring_service.run_detection(db, user_id)
    except TransactionHistoryError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if promote:
        promoted = subscription_service.promote_detected_patterns(
            db, user_id, [p.merchant for p in summary.patterns]
        )
        summary.subscriptions_promoted = len(promoted)

    return summary
