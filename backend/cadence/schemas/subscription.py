"""Pydantic schemas for card subscriptions."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime

from cadence.models.subscription import SubscriptionStatus


class CardSubscriptionResponse(BaseModel):
    id: str
    user_id: str
    pattern_id: Optional[str] = None
    merchant_name: str
    ai_merchant_name: Optional[str] = None
    category: Optional[str] = None
    amount_cents: int
    frequency: str
    next_expected_date: Optional[date] = None
    confidence: Optional[float] = None
    status: SubscriptionStatus
    is_confirmed: bool
    cancel_reminder_enabled: bool
    cancel_reminder_days_before: int
    zombie_score: float
    zombie_flagged_at: Optional[datetime] = None
    last_charge_date: Optional[date] = None
    last_usage_date: Optional[date] = None
    usage_count_last_30_days: Optional[int] = None
    paused_at: Optional[datetime] = None
    paused_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StatusUpdate(BaseModel):
    status: SubscriptionStatus
    reason: Optional[str] = None


class ReminderUpdate(BaseModel):
    enabled: bool
    days_before: Optional[int] = Field(None, ge=0, le=90)


class UsageUpdate(BaseModel):
    last_usage_date: Optional[date] = None
    usage_count_last_30_days: Optional[int] = Field(None, ge=0)


class PromotionResponse(BaseModel):
    subscription: CardSubscriptionResponse
    created: bool


class ReminderEvent(BaseModel):
    """Payload handed to the notification side for a due cancel reminder."""
    subscription_id: str
    user_id: str
    merchant_name: str
    days_until_due: int
    next_expected_date: date
    amount_cents: int
    cycle: int


class ReminderRunResponse(BaseModel):
    fired: List[ReminderEvent]
    total: int


class MonthlyCostSummary(BaseModel):
    total_monthly_cost: float
    total_yearly_cost: float
    subscription_count: int
    by_frequency: Dict[str, float]
