"""
Database models package.
"""

from cadence.models.transaction import Transaction
from cadence.models.recurring import RecurringPattern, Frequency
from cadence.models.subscription import CardSubscription, SubscriptionStatus
from cadence.models.alert import Alert, AlertType, Severity

__all__ = [
    "Transaction",
    "RecurringPattern",
    "Frequency",
    "CardSubscription",
    "SubscriptionStatus",
    "Alert",
    "AlertType",
    "Severity",
]
