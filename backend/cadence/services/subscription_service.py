"""Service for the card subscription lifecycle: promotion, status, zombies and reminders."""

import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cadence.config import settings
from cadence.models.recurring import RecurringPattern, Frequency
from cadence.models.subscription import CardSubscription, SubscriptionStatus
from cadence.schemas.subscription import ReminderEvent
from cadence.services.alerts_service import AlertNotifier, ReminderNotifier, create_zombie_alert
from cadence.services.recurring_service import calculate_next_expected

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    SubscriptionStatus.active: {SubscriptionStatus.paused, SubscriptionStatus.cancelled},
    SubscriptionStatus.paused: {SubscriptionStatus.active, SubscriptionStatus.cancelled},
    SubscriptionStatus.cancelled: set(),
}

# Nominal days between charges, used to measure how overdue a charge is.
CADENCE_DAYS = {
    Frequency.weekly.value: 7,
    Frequency.monthly.value: 30,
    Frequency.quarterly.value: 91,
    Frequency.yearly.value: 365,
}

# Missed cycles (beyond the first) after which staleness saturates.
STALE_CYCLES = 3


class SubscriptionNotFound(ValueError):
    pass


class InvalidStatusTransition(ValueError):
    pass


def _frequency_value(frequency) -> str:
    if isinstance(frequency, Frequency):
        return frequency.value
    return str(frequency or "").strip().lower()


def _to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def get_subscriptions(
    db: Session,
    user_id: str,
    status: Optional[SubscriptionStatus] = None
) -> List[CardSubscription]:
    """Get a user's subscriptions, optionally filtered by status."""
    query = db.query(CardSubscription).filter(CardSubscription.user_id == user_id)

    if status is not None:
        query = query.filter(CardSubscription.status == status)

    return query.order_by(CardSubscription.merchant_name, CardSubscription.created_at).all()


def get_subscription(db: Session, user_id: str, subscription_id: str) -> CardSubscription:
    subscription = db.query(CardSubscription).filter(
        CardSubscription.id == subscription_id,
        CardSubscription.user_id == user_id
    ).first()
    if not subscription:
        raise SubscriptionNotFound(f"Subscription {subscription_id} not found")
    return subscription


def _sync_from_pattern(subscription: CardSubscription, pattern: RecurringPattern) -> None:
    subscription.pattern_id = pattern.id
    subscription.category = pattern.category or subscription.category
    subscription.amount_cents = _to_cents(pattern.avg_amount)
    subscription.frequency = _frequency_value(pattern.frequency)
    subscription.confidence = pattern.confidence
    subscription.last_charge_date = pattern.last_occurrence
    subscription.next_expected_date = calculate_next_expected(pattern.last_occurrence, pattern.frequency)
    subscription.updated_at = datetime.utcnow()


def promote_pattern(db: Session, pattern: RecurringPattern) -> Tuple[CardSubscription, bool]:
    """
    Track a detected pattern as a subscription.

    Returns (subscription, created). A live subscription for the merchant is
    refreshed in place, keeping its status, confirmation and reminder setup.
    Cancelled subscriptions are never revived: a new record is created only
    once the merchant has billed again after the cancellation.
    """
    existing = db.query(CardSubscription).filter(
        CardSubscription.user_id == pattern.user_id,
        CardSubscription.merchant_name == pattern.merchant
    ).order_by(CardSubscription.created_at.desc()).all()

    live = next((s for s in existing if s.status != SubscriptionStatus.cancelled), None)
    if live:
        _sync_from_pattern(live, pattern)
        db.commit()
        db.refresh(live)
        return live, False

    for cancelled in existing:
        if cancelled.cancelled_at is not None:
            cutoff = cancelled.cancelled_at.date()
        else:
            cutoff = cancelled.last_charge_date
        if cutoff is not None and pattern.last_occurrence <= cutoff:
            raise ValueError(
                f"{pattern.merchant} was cancelled and has not billed since {cutoff.isoformat()}"
            )

    subscription = CardSubscription(
        user_id=pattern.user_id,
        merchant_name=pattern.merchant,
        status=SubscriptionStatus.active,
        is_confirmed=False,
        cancel_reminder_enabled=False,
        cancel_reminder_days_before=settings.default_reminder_days_before,
        zombie_score=0.0,
    )
    _sync_from_pattern(subscription, pattern)
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    logger.info("Tracking new subscription %s for user %s", pattern.merchant, pattern.user_id)
    return subscription, True


def promote_detected_patterns(
    db: Session,
    user_id: str,
    merchants: Optional[Sequence[str]] = None
) -> List[CardSubscription]:
    """Promote a user's patterns (optionally only the given merchants). One failure never stops the rest."""
    query = db.query(RecurringPattern).filter(RecurringPattern.user_id == user_id)
    if merchants is not None:
        if not merchants:
            return []
        query = query.filter(RecurringPattern.merchant.in_(list(merchants)))

    promoted = []
    for pattern in query.order_by(RecurringPattern.merchant).all():
        try:
            subscription, _ = promote_pattern(db, pattern)
        except ValueError as e:
            logger.info("Not promoting %s: %s", pattern.merchant, e)
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to promote %s for user %s: %s", pattern.merchant, user_id, e)
            continue
        promoted.append(subscription)

    return promoted


def confirm_subscription(db: Session, user_id: str, subscription_id: str) -> CardSubscription:
    """Record that the user acknowledged this subscription. There is no un-confirm."""
    subscription = get_subscription(db, user_id, subscription_id)
    if not subscription.is_confirmed:
        subscription.is_confirmed = True
        subscription.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(subscription)
    return subscription


def set_status(
    db: Session,
    user_id: str,
    subscription_id: str,
    new_status: SubscriptionStatus,
    reason: Optional[str] = None,
    now: Optional[datetime] = None
) -> CardSubscription:
    """
    Move a subscription through active <-> paused -> cancelled.

    Setting the current status again is a no-op. Cancelled is terminal.
    """
    subscription = get_subscription(db, user_id, subscription_id)
    current = SubscriptionStatus(subscription.status)
    new_status = SubscriptionStatus(new_status)

    if new_status == current:
        return subscription

    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(
            f"Cannot move subscription from {current.value} to {new_status.value}"
        )

    now = now or datetime.utcnow()
    if new_status == SubscriptionStatus.paused:
        subscription.paused_at = now
        subscription.paused_reason = reason
    elif new_status == SubscriptionStatus.active:
        subscription.paused_at = None
        subscription.paused_reason = None
    elif new_status == SubscriptionStatus.cancelled:
        subscription.cancelled_at = now

    subscription.status = new_status
    subscription.updated_at = now
    db.commit()
    db.refresh(subscription)
    logger.info("Subscription %s: %s -> %s", subscription.id, current.value, new_status.value)
    return subscription


def update_reminder(
    db: Session,
    user_id: str,
    subscription_id: str,
    enabled: bool,
    days_before: Optional[int] = None
) -> CardSubscription:
    """Toggle the cancel reminder and optionally change how many days ahead it fires."""
    if days_before is not None and days_before < 0:
        raise ValueError("days_before must be zero or positive")

    subscription = get_subscription(db, user_id, subscription_id)
    subscription.cancel_reminder_enabled = enabled
    if days_before is not None:
        subscription.cancel_reminder_days_before = days_before
    subscription.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(subscription)
    return subscription


def record_usage(
    db: Session,
    user_id: str,
    subscription_id: str,
    last_usage_date: Optional[date] = None,
    usage_count_last_30_days: Optional[int] = None
) -> CardSubscription:
    """Store the latest usage signal for zombie scoring."""
    subscription = get_subscription(db, user_id, subscription_id)
    if last_usage_date is not None:
        subscription.last_usage_date = last_usage_date
    if usage_count_last_30_days is not None:
        subscription.usage_count_last_30_days = usage_count_last_30_days
    subscription.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(subscription)
    return subscription


def _idleness(
    today: date,
    cadence_days: int,
    last_usage_date: Optional[date],
    usage_count_last_30_days: Optional[int]
) -> float:
    """0 for heavy recent use, 1 for none. 0.5 when nothing is known."""
    if usage_count_last_30_days is not None:
        return 1.0 / (1 + max(usage_count_last_30_days, 0))
    if last_usage_date is not None:
        idle_days = max((today - last_usage_date).days, 0)
        return min(idle_days / (2 * cadence_days), 1.0)
    return 0.5


def compute_zombie_score(
    frequency,
    last_charge_date: Optional[date],
    today: date,
    last_usage_date: Optional[date] = None,
    usage_count_last_30_days: Optional[int] = None
) -> float:
    """
    Likelihood in [0, 1] that a subscription is forgotten.

    Staleness is 0 while the last charge is within one billing cycle and
    grows to 1 after STALE_CYCLES further missed cycles. Usage only scales
    staleness (idle subscriptions score higher), so a recently billed
    subscription always scores 0.
    """
    if last_charge_date is None:
        return 0.0

    cadence = CADENCE_DAYS.get(_frequency_value(frequency), 30)
    elapsed = max((today - last_charge_date).days, 0)
    missed_cycles = max(elapsed / cadence - 1, 0.0)
    staleness = min(missed_cycles / STALE_CYCLES, 1.0)

    idleness = _idleness(today, cadence, last_usage_date, usage_count_last_30_days)
    score = staleness * (0.6 + 0.4 * idleness)
    return round(min(max(score, 0.0), 1.0), 4)


def refresh_zombie_scores(
    db: Session,
    user_id: str,
    today: Optional[date] = None
) -> List[CardSubscription]:
    """Recompute zombie scores for active subscriptions and flag new zombies."""
    today = today or date.today()
    threshold = settings.zombie_flag_threshold

    subscriptions = get_subscriptions(db, user_id, SubscriptionStatus.active)
    for subscription in subscriptions:
        subscription.zombie_score = compute_zombie_score(
            subscription.frequency,
            subscription.last_charge_date,
            today,
            last_usage_date=subscription.last_usage_date,
            usage_count_last_30_days=subscription.usage_count_last_30_days,
        )

        if subscription.zombie_score > threshold:
            if subscription.zombie_flagged_at is None:
                subscription.zombie_flagged_at = datetime.utcnow()
                create_zombie_alert(db, subscription)
                logger.info("Flagged %s as a possible zombie subscription", subscription.merchant_name)
        else:
            subscription.zombie_flagged_at = None

    db.commit()
    return subscriptions


def billing_cycle_index(due_date: date) -> int:
    """
    Number identifying the billing cycle that ends on due_date.

    The due date moves forward on every new charge, so each cycle gets its
    own id even when an early charge puts two due dates in one calendar month.
    """
    return due_date.toordinal()


def evaluate_reminders(
    db: Session,
    user_id: str,
    notifier: Optional[ReminderNotifier] = None,
    today: Optional[date] = None
) -> List[ReminderEvent]:
    """
    Fire cancel reminders that are due, at most once per billing cycle.

    A reminder is due when the next charge is between today and
    cancel_reminder_days_before days away. The fired cycle is stored on the
    subscription only after the notifier accepted the event.
    """
    today = today or date.today()
    notifier = notifier or AlertNotifier(db)

    subscriptions = db.query(CardSubscription).filter(
        CardSubscription.user_id == user_id,
        CardSubscription.status == SubscriptionStatus.active,
        CardSubscription.cancel_reminder_enabled == True,
        CardSubscription.next_expected_date != None
    ).all()

    fired = []
    for subscription in subscriptions:
        days_until = (subscription.next_expected_date - today).days
        if days_until < 0 or days_until > subscription.cancel_reminder_days_before:
            continue

        cycle = billing_cycle_index(subscription.next_expected_date)
        if subscription.last_reminder_cycle == cycle:
            continue

        event = ReminderEvent(
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            merchant_name=subscription.display_name,
            days_until_due=days_until,
            next_expected_date=subscription.next_expected_date,
            amount_cents=subscription.amount_cents,
            cycle=cycle,
        )

        try:
            notifier.notify(event)
        except Exception:
            db.rollback()
            logger.exception("Reminder for subscription %s was not delivered", subscription.id)
            continue

        subscription.last_reminder_cycle = cycle
        db.commit()
        fired.append(event)

    return fired
