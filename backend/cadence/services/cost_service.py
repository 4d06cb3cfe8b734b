"""Monthly-equivalent cost normalization for subscription totals."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Union

from cadence.models.recurring import Frequency
from cadence.models.subscription import CardSubscription, SubscriptionStatus

CENTS = Decimal("0.01")

# Per-charge amount -> monthly amount. 4.33 is the average weeks per month.
MONTHLY_FACTORS = {
    Frequency.weekly.value: Decimal("4.33"),
    Frequency.monthly.value: Decimal("1"),
    Frequency.quarterly.value: Decimal("1") / Decimal("3"),
    Frequency.yearly.value: Decimal("1") / Decimal("12"),
}


def _frequency_key(frequency: Union[Frequency, str, None]) -> str:
    if isinstance(frequency, Frequency):
        return frequency.value
    return str(frequency or "").strip().lower()


def monthly_equivalent(amount: Decimal, frequency: Union[Frequency, str, None]) -> Decimal:
    """Convert a per-charge amount to its monthly cost. Unknown frequencies cost 0."""
    factor = MONTHLY_FACTORS.get(_frequency_key(frequency))
    if factor is None:
        return Decimal("0")
    return Decimal(amount) * factor


def subscription_amount(subscription: CardSubscription) -> Decimal:
    return Decimal(subscription.amount_cents) / 100


def total_monthly_cost(subscriptions: Iterable[CardSubscription]) -> Decimal:
    """Sum the monthly-equivalent cost of the active subscriptions only."""
    total = sum(
        (
            monthly_equivalent(subscription_amount(s), s.frequency)
            for s in subscriptions
            if s.status == SubscriptionStatus.active
        ),
        Decimal("0"),
    )
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def summarize_monthly_costs(subscriptions: Iterable[CardSubscription]) -> Dict[str, Any]:
    """Monthly and yearly totals plus a per-frequency breakdown of active subscriptions."""
    active = [s for s in subscriptions if s.status == SubscriptionStatus.active]

    by_frequency: Dict[str, Decimal] = {}
    for s in active:
        key = _frequency_key(s.frequency)
        by_frequency[key] = by_frequency.get(key, Decimal("0")) + monthly_equivalent(
            subscription_amount(s), s.frequency
        )

    total_monthly = total_monthly_cost(active)

    return {
        "total_monthly_cost": float(total_monthly),
        "total_yearly_cost": float(total_monthly * 12),
        "subscription_count": len(active),
        "by_frequency": {
            key: float(value.quantize(CENTS, rounding=ROUND_HALF_UP))
            for key, value in sorted(by_frequency.items())
        },
    }
