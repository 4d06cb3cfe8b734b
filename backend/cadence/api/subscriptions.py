"""API endpoints for card subscription lifecycle management."""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from cadence.dependencies import get_db
from cadence.models.subscription import SubscriptionStatus
from cadence.schemas.subscription import (
    CardSubscriptionResponse,
    StatusUpdate,
    ReminderUpdate,
    UsageUpdate,
    PromotionResponse,
    ReminderRunResponse,
    MonthlyCostSummary,
)
from cadence.services import ai_service, cost_service, recurring_service, subscription_service
from cadence.services.subscription_service import InvalidStatusTransition, SubscriptionNotFound

router = APIRouter(prefix="/users/{user_id}/subscriptions", tags=["subscriptions"])


@router.get("", response_model=List[CardSubscriptionResponse])
def get_subscriptions(
    user_id: str,
    status: Optional[SubscriptionStatus] = Query(None),
    db: Session = Depends(get_db)
):
    """Get a user's tracked subscriptions."""
    return subscription_service.get_subscriptions(db, user_id, status)


@router.get("/monthly-total", response_model=MonthlyCostSummary)
def get_monthly_total(
    user_id: str,
    db: Session = Depends(get_db)
):
    """Monthly-equivalent cost of all active subscriptions."""
    subscriptions = subscription_service.get_subscriptions(db, user_id)
    return MonthlyCostSummary(**cost_service.summarize_monthly_costs(subscriptions))


@router.post("/promote/{pattern_id}", response_model=PromotionResponse)
def promote_pattern(
    user_id: str,
    pattern_id: str,
    db: Session = Depends(get_db)
):
    """Start tracking a detected recurring pattern as a subscription."""
    pattern = recurring_service.get_pattern(db, user_id, pattern_id)
    if not pattern:
        raise HTTPException(status_code=404, detail="Recurring pattern not found")

    try:
        subscription, created = subscription_service.promote_pattern(db, pattern)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return PromotionResponse(
        subscription=CardSubscriptionResponse.model_validate(subscription),
        created=created
    )


@router.post("/zombie-scores/refresh", response_model=List[CardSubscriptionResponse])
def refresh_zombie_scores(
    user_id: str,
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db)
):
    """Recompute zombie scores for active subscriptions."""
    return subscription_service.refresh_zombie_scores(db, user_id, today=as_of)


@router.post("/reminders/run", response_model=ReminderRunResponse)
def run_reminders(
    user_id: str,
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db)
):
    """Fire any cancel reminders that are due. Safe to call repeatedly."""
    fired = subscription_service.evaluate_reminders(db, user_id, today=as_of)
    return ReminderRunResponse(fired=fired, total=len(fired))


@router.post("/annotate")
async def annotate_merchant_names(
    user_id: str,
    db: Session = Depends(get_db)
):
    """Use AI to add display names to subscriptions that lack one."""
    count = await ai_service.annotate_merchant_names(db, user_id)
    return {"annotated": count}


@router.get("/{subscription_id}", response_model=CardSubscriptionResponse)
def get_subscription(
    user_id: str,
    subscription_id: str,
    db: Session = Depends(get_db)
):
    """Get a single subscription."""
    try:
        return subscription_service.get_subscription(db, user_id, subscription_id)
    except SubscriptionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{subscription_id}/confirm", response_model=CardSubscriptionResponse)
def confirm_subscription(
    user_id: str,
    subscription_id: str,
    db: Session = Depends(get_db)
):
    """Mark a detected subscription as acknowledged by the user."""
    try:
        return subscription_service.confirm_subscription(db, user_id, subscription_id)
    except SubscriptionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/{subscription_id}/status", response_model=CardSubscriptionResponse)
def update_status(
    user_id: str,
    subscription_id: str,
    update: StatusUpdate,
    db: Session = Depends(get_db)
):
    """Pause, resume or cancel a subscription."""
    try:
        return subscription_service.set_status(
            db, user_id, subscription_id, update.status, reason=update.reason
        )
    except SubscriptionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.patch("/{subscription_id}/reminder", response_model=CardSubscriptionResponse)
def update_reminder(
    user_id: str,
    subscription_id: str,
    update: ReminderUpdate,
    db: Session = Depends(get_db)
):
    """Turn the cancel reminder on or off."""
    try:
        return subscription_service.update_reminder(
            db, user_id, subscription_id, update.enabled, update.days_before
        )
    except SubscriptionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{subscription_id}/usage", response_model=CardSubscriptionResponse)
def update_usage(
    user_id: str,
    subscription_id: str,
    update: UsageUpdate,
    db: Session = Depends(get_db)
):
    """Record the latest usage signal for a subscription."""
    try:
        return subscription_service.record_usage(
            db,
            user_id,
            subscription_id,
            last_usage_date=update.last_usage_date,
            usage_count_last_30_days=update.usage_count_last_30_days,
        )
    except SubscriptionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
