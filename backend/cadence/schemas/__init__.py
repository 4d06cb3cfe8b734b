"""
Pydantic schemas package.
"""

from cadence.schemas.transaction import TransactionRecord
from cadence.schemas.recurring import (
    RecurringPatternResponse,
    DetectedPatternSummary,
    DetectionError,
    DetectionSummary,
)
from cadence.schemas.subscription import (
    CardSubscriptionResponse,
    StatusUpdate,
    ReminderUpdate,
    UsageUpdate,
    PromotionResponse,
    ReminderEvent,
    ReminderRunResponse,
    MonthlyCostSummary,
)
from cadence.schemas.alert import (
    AlertUpdate,
    AlertResponse,
    AlertsListResponse,
)

__all__ = [
    "TransactionRecord",
    "RecurringPatternResponse",
    "DetectedPatternSummary",
    "DetectionError",
    "DetectionSummary",
    "CardSubscriptionResponse",
    "StatusUpdate",
    "ReminderUpdate",
    "UsageUpdate",
    "PromotionResponse",
    "ReminderEvent",
    "ReminderRunResponse",
    "MonthlyCostSummary",
    "AlertUpdate",
    "AlertResponse",
    "AlertsListResponse",
]
