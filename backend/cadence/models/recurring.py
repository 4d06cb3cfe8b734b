"""
Recurring pattern database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Date, Float, Integer, Numeric, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum
from cadence.database import Base


class Frequency(str, enum.Enum):
    """Recurring frequency enumeration."""
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class RecurringPattern(Base):
    """
    Latest detection statistics for one merchant of one user.

    Rows are overwritten on every detection run, never appended.
    """

    __tablename__ = "recurring_patterns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    merchant = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    avg_amount = Column(Numeric(12, 2), nullable=False)
    frequency = Column(Enum(Frequency), nullable=False)
    expected_date = Column(Integer, nullable=False)  # Day of month of the latest charge
    confidence = Column(Float, nullable=False)
    last_occurrence = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    subscriptions = relationship("CardSubscription", back_populates="pattern")

    __table_args__ = (
        UniqueConstraint("user_id", "merchant", name="uq_recurring_pattern_user_merchant"),
    )
