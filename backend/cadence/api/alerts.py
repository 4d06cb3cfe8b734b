"""API endpoints for alerts management."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional

from cadence.dependencies import get_db
from cadence.models.alert import Alert
from cadence.schemas.alert import AlertResponse, AlertsListResponse, AlertUpdate
from cadence.services import alerts_service

router = APIRouter(prefix="/users/{user_id}/alerts", tags=["alerts"])


def _to_response(alert: Alert) -> AlertResponse:
    return AlertResponse(
        id=str(alert.id),
        user_id=alert.user_id,
        type=alert.type,
        severity=alert.severity,
        title=alert.title,
        description=alert.description,
        subscription_id=str(alert.subscription_id) if alert.subscription_id else None,
        metadata=alert.alert_metadata,
        is_read=alert.is_read,
        is_dismissed=alert.is_dismissed,
        created_at=alert.created_at,
    )


@router.get("", response_model=AlertsListResponse)
def get_alerts(
    user_id: str,
    is_read: Optional[bool] = Query(None),
    is_dismissed: Optional[bool] = Query(None),
    type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Get alerts with optional filters."""
    alerts = alerts_service.get_alerts(
        db,
        user_id,
        is_read=is_read,
        is_dismissed=is_dismissed,
        alert_type=type,
        limit=limit
    )

    return AlertsListResponse(
        items=[_to_response(a) for a in alerts],
        unread_count=alerts_service.get_unread_count(db, user_id),
        total=len(alerts)
    )


@router.patch("/{alert_id}", response_model=AlertResponse)
def update_alert(
    user_id: str,
    alert_id: str,
    update: AlertUpdate,
    db: Session = Depends(get_db)
):
    """Update an alert (mark read, dismiss)."""
    alert = db.query(Alert).filter(Alert.id == alert_id, Alert.user_id == user_id).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")

    update_data = update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(alert, field, value)

    db.commit()
    db.refresh(alert)

    return _to_response(alert)


@router.post("/mark-all-read")
def mark_all_read(user_id: str, db: Session = Depends(get_db)):
    """Mark all alerts as read."""
    count = alerts_service.mark_all_read(db, user_id)
    return {"marked_read": count}
