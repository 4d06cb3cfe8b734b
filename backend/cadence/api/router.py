"""
Main API router.
"""

from fastapi import APIRouter
from cadence.api import alerts, recurring, subscriptions

api_router = APIRouter()

api_router.include_router(recurring.router)
api_router.include_router(subscriptions.router)
api_router.include_router(alerts.router)
