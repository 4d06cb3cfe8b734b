"""Pydantic schemas for alerts."""

from pydantic import BaseModel, field_validator
from typing import Optional, Dict, Any, List
from datetime import datetime
from cadence.models.alert import AlertType, Severity


class AlertUpdate(BaseModel):
    is_read: Optional[bool] = None
    is_dismissed: Optional[bool] = None


class AlertResponse(BaseModel):
    id: str
    user_id: str
    type: AlertType
    severity: Severity
    title: str
    description: str
    subscription_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    is_read: bool
    is_dismissed: bool
    created_at: datetime

    @field_validator('metadata', mode='before')
    @classmethod
    def extract_alert_metadata(cls, v):
        if v is None:
            return None
        if isinstance(v, dict):
            return v
        return None

    model_config = {"from_attributes": True}


class AlertsListResponse(BaseModel):
    items: List[AlertResponse]
    unread_count: int
    total: int
