"""
Transaction database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Numeric, Index
from cadence.database import Base


class Transaction(Base):
    """Transaction model. Written by the storage layer, read by the detector."""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    merchant = Column(String(255), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Negative = expense, positive = income
    category = Column(String(100), nullable=True)
    transaction_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Indexes for common queries
    __table_args__ = (
        Index("idx_transaction_user_date", "user_id", "transaction_date"),
    )
