"""
Alert database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Enum, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
import enum
from cadence.database import Base


class AlertType(str, enum.Enum):
    """Alert type enumeration."""
    cancel_reminder = "cancel_reminder"
    zombie_subscription = "zombie_subscription"


class Severity(str, enum.Enum):
    """Alert severity enumeration."""
    info = "info"
    warning = "warning"
    attention = "attention"


class Alert(Base):
    """Alert model, the outbox read by the notification delivery side."""

    __tablename__ = "alerts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    type = Column(Enum(AlertType), nullable=False, index=True)
    severity = Column(Enum(Severity), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    subscription_id = Column(String(36), ForeignKey("card_subscriptions.id"), nullable=True)
    alert_metadata = Column(JSON, nullable=True)  # Flexible data
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    is_dismissed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    subscription = relationship("CardSubscription", back_populates="alerts")
