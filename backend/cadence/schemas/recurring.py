"""Pydantic schemas for recurring patterns."""

from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from cadence.models.recurring import Frequency


class RecurringPatternResponse(BaseModel):
    id: str
    user_id: str
    merchant: str
    category: Optional[str] = None
    avg_amount: Decimal
    frequency: Frequency
    expected_date: int
    confidence: float
    last_occurrence: date
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DetectedPatternSummary(BaseModel):
    """One persisted pattern, as reported back to the caller."""
    merchant: str
    frequency: Frequency
    confidence: float
    transaction_count: int


class DetectionError(BaseModel):
    """A merchant whose pattern could not be persisted."""
    merchant: str
    error: str


class DetectionSummary(BaseModel):
    """Response from a detection run."""
    user_id: str
    patterns_detected: int
    patterns: List[DetectedPatternSummary]
    errors: List[DetectionError] = []
    subscriptions_promoted: Optional[int] = None
