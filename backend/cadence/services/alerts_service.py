"""Service for alert creation and the reminder notification outbox."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional
import uuid

from sqlalchemy.orm import Session

from cadence.models.alert import Alert, AlertType, Severity
from cadence.models.subscription import CardSubscription
from cadence.schemas.subscription import ReminderEvent

logger = logging.getLogger(__name__)


class ReminderNotifier(ABC):
    """Delivery side for cancel reminders."""

    @abstractmethod
    def notify(self, event: ReminderEvent) -> None:
        """Deliver one reminder. Raising means it was not delivered."""
        pass


class AlertNotifier(ReminderNotifier):
    """Records reminders as alerts for the notification service to pick up."""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, event: ReminderEvent) -> None:
        if event.days_until_due == 0:
            when = "today"
        elif event.days_until_due == 1:
            when = "tomorrow"
        else:
            when = f"in {event.days_until_due} days"

        alert = Alert(
            id=str(uuid.uuid4()),
            user_id=event.user_id,
            type=AlertType.cancel_reminder,
            severity=Severity.warning,
            title=f"Cancel reminder: {event.merchant_name}",
            description=f"${event.amount_cents / 100:.2f} renews {when} ({event.next_expected_date.isoformat()})",
            subscription_id=event.subscription_id,
            alert_metadata={
                "merchant_name": event.merchant_name,
                "days_until_due": event.days_until_due,
                "next_expected_date": event.next_expected_date.isoformat(),
                "amount_cents": event.amount_cents,
                "cycle": event.cycle,
            }
        )
        self.db.add(alert)
        self.db.flush()


def create_zombie_alert(db: Session, subscription: CardSubscription) -> Alert:
    """Create an alert for a subscription that looks forgotten."""
    alert = Alert(
        id=str(uuid.uuid4()),
        user_id=subscription.user_id,
        type=AlertType.zombie_subscription,
        severity=Severity.attention,
        title=f"Possibly unused: {subscription.display_name}",
        description=(
            f"No recent activity for {subscription.display_name} "
            f"(${subscription.amount_cents / 100:.2f}/{subscription.frequency}). Still using it?"
        ),
        subscription_id=subscription.id,
        alert_metadata={
            "zombie_score": subscription.zombie_score,
            "last_charge_date": subscription.last_charge_date.isoformat() if subscription.last_charge_date else None,
        }
    )
    db.add(alert)
    db.flush()
    return alert


def get_alerts(
    db: Session,
    user_id: str,
    is_read: Optional[bool] = None,
    is_dismissed: Optional[bool] = None,
    alert_type: Optional[str] = None,
    limit: int = 50
) -> List[Alert]:
    """Get alerts with optional filters."""
    query = db.query(Alert).filter(Alert.user_id == user_id)

    if is_read is not None:
        query = query.filter(Alert.is_read == is_read)

    if is_dismissed is not None:
        query = query.filter(Alert.is_dismissed == is_dismissed)
    else:
        # Default: hide dismissed
        query = query.filter(Alert.is_dismissed == False)

    if alert_type:
        query = query.filter(Alert.type == alert_type)

    return query.order_by(Alert.created_at.desc()).limit(limit).all()


def get_unread_count(db: Session, user_id: str) -> int:
    """Get count of unread, non-dismissed alerts."""
    return db.query(Alert).filter(
        Alert.user_id == user_id,
        Alert.is_read == False,
        Alert.is_dismissed == False
    ).count()


def mark_all_read(db: Session, user_id: str) -> int:
    """Mark all alerts as read. Returns count updated."""
    result = db.query(Alert).filter(
        Alert.user_id == user_id,
        Alert.is_read == False
    ).update({Alert.is_read: True})
    db.commit()
    return result
