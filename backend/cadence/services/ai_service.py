import logging
from typing import Optional

from sqlalchemy.orm import Session

from cadence.ai.client import get_ai_client
from cadence.ai.prompts import MERCHANT_CLEANING_SYSTEM, MERCHANT_CLEANING_USER
from cadence.config import settings
from cadence.models.subscription import CardSubscription, SubscriptionStatus

logger = logging.getLogger(__name__)


async def clean_merchant_name(merchant_name: str) -> Optional[str]:
    if not settings.ai_clean_merchants:
        return None

    client = get_ai_client()

    user_prompt = MERCHANT_CLEANING_USER.format(
        merchant_name=merchant_name
    )

    try:
        result = await client.complete(
            system_prompt=MERCHANT_CLEANING_SYSTEM,
            user_prompt=user_prompt,
            temperature=0.1,
            max_tokens=100
        )
    except Exception as e:
        logger.warning(f"Merchant cleaning failed for {merchant_name!r}: {e}")
        return None

    cleaned = (result or "").strip().strip('"')
    return cleaned or None


async def annotate_merchant_names(db: Session, user_id: str) -> int:
    """
    Fill ai_merchant_name for a user's live subscriptions that lack one.

    The raw merchant_name stays the grouping key; the annotation is display
    only. Returns how many subscriptions were annotated.
    """
    subscriptions = db.query(CardSubscription).filter(
        CardSubscription.user_id == user_id,
        CardSubscription.status != SubscriptionStatus.cancelled,
        CardSubscription.ai_merchant_name == None
    ).all()

    annotated = 0
    for subscription in subscriptions:
        cleaned = await clean_merchant_name(subscription.merchant_name)
        if cleaned:
            subscription.ai_merchant_name = cleaned
            annotated += 1

    if annotated:
        db.commit()

    return annotated
