"""
Transaction schemas.
"""

from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import date, datetime, timezone
from decimal import Decimal


class TransactionRecord(BaseModel):
    """
    Validated transaction as seen by the detector.

    Source rows are loosely typed; everything past this boundary can rely on
    a string-or-None merchant and a naive UTC datetime.
    """
    id: str
    merchant: Optional[str] = None
    amount: Decimal
    category: Optional[str] = None
    transaction_date: datetime

    model_config = {"from_attributes": True}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)

    @field_validator("merchant", "category", mode="before")
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("transaction_date", mode="before")
    @classmethod
    def promote_date(cls, v):
        if isinstance(v, str) and len(v.strip()) == 10:
            v = date.fromisoformat(v.strip())
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime(v.year, v.month, v.day)
        return v

    @field_validator("transaction_date")
    @classmethod
    def drop_timezone(cls, v: datetime) -> datetime:
        # Offset-aware and naive values must stay comparable within a group
        if v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v
