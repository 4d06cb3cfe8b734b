"""
Card subscription database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Float, Integer, Enum, ForeignKey
from sqlalchemy.orm import relationship
import enum
from cadence.database import Base


class SubscriptionStatus(str, enum.Enum):
    """Subscription lifecycle status."""
    active = "active"
    paused = "paused"
    cancelled = "cancelled"


class CardSubscription(Base):
    """Tracked subscription promoted from a detected recurring pattern."""

    __tablename__ = "card_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    pattern_id = Column(String(36), ForeignKey("recurring_patterns.id"), nullable=True)
    merchant_name = Column(String(255), nullable=False)
    ai_merchant_name = Column(String(255), nullable=True)
    category = Column(String(100), nullable=True)
    amount_cents = Column(Integer, nullable=False)
    frequency = Column(String(20), nullable=False)  # Free text so legacy values stay readable
    next_expected_date = Column(Date, nullable=True)
    confidence = Column(Float, nullable=True)
    status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.active, nullable=False, index=True)
    is_confirmed = Column(Boolean, default=False, nullable=False)

    # Cancel reminders
    cancel_reminder_enabled = Column(Boolean, default=False, nullable=False)
    cancel_reminder_days_before = Column(Integer, default=3, nullable=False)
    last_reminder_cycle = Column(Integer, nullable=True)

    # Zombie detection
    zombie_score = Column(Float, default=0.0, nullable=False)
    zombie_flagged_at = Column(DateTime, nullable=True)
    last_charge_date = Column(Date, nullable=True)
    last_usage_date = Column(Date, nullable=True)
    usage_count_last_30_days = Column(Integer, nullable=True)

    paused_at = Column(DateTime, nullable=True)
    paused_reason = Column(String(255), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    pattern = relationship("RecurringPattern", back_populates="subscriptions")
    alerts = relationship("Alert", back_populates="subscription")

    @property
    def display_name(self) -> str:
        return self.ai_merchant_name or self.merchant_name
