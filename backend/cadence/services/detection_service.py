"""
Interval statistics, frequency classification and confidence scoring.

Everything here is pure: a list of transactions in, a list of detected
patterns out. Persistence lives in recurring_service.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from statistics import fmean, pstdev
from typing import Iterable, List, Optional

from cadence.models.recurring import Frequency
from cadence.schemas.transaction import TransactionRecord
from cadence.services.grouping_service import MerchantGroup, group_transactions

logger = logging.getLogger(__name__)

# Upper bounds (inclusive) of the mean interval, in days, for each bucket.
WEEKLY_MAX_DAYS = 10
MONTHLY_MAX_DAYS = 35
QUARTERLY_MAX_DAYS = 100

MIN_INTERVALS = 2

CENTS = Decimal("0.01")


@dataclass
class IntervalStatistics:
    """Day gaps between consecutive charges and their dispersion."""
    intervals: List[int]
    mean_interval: float
    std_dev_interval: float


@dataclass
class DetectedPattern:
    """A merchant group that passed every recurrence gate."""
    merchant: str
    category: Optional[str]
    avg_amount: Decimal
    frequency: Frequency
    expected_date: int
    confidence: float
    last_occurrence: date
    transaction_count: int
    mean_interval_days: float
    std_dev_interval_days: float


def compute_interval_statistics(group: MerchantGroup) -> Optional[IntervalStatistics]:
    """
    Compute gaps in whole calendar days between consecutive transactions.

    Returns None when there are fewer than two intervals to compare.
    """
    dates = [t.transaction_date.date() for t in group.transactions]
    intervals = [(later - earlier).days for earlier, later in zip(dates, dates[1:])]

    if len(intervals) < MIN_INTERVALS:
        return None

    return IntervalStatistics(
        intervals=intervals,
        mean_interval=fmean(intervals),
        std_dev_interval=pstdev(intervals),
    )


def classify_frequency(mean_interval: float) -> Frequency:
    """Bucket a mean interval. Boundary values fall into the shorter cadence."""
    if mean_interval <= WEEKLY_MAX_DAYS:
        return Frequency.weekly
    elif mean_interval <= MONTHLY_MAX_DAYS:
        return Frequency.monthly
    elif mean_interval <= QUARTERLY_MAX_DAYS:
        return Frequency.quarterly
    else:
        return Frequency.yearly


def is_recurring(stats: IntervalStatistics, max_stddev_days: float = 5.0) -> bool:
    return stats.std_dev_interval < max_stddev_days


def score_confidence(stats: IntervalStatistics, floor: float = 0.7) -> float:
    """
    Confidence is 1 - stddev/mean, never reported below the floor.

    A group whose score sits on the floor is suppressed by the caller's
    strict > check, which is how tight but very short cadences drop out.
    """
    if stats.mean_interval <= 0:
        # Same-day charges have no cadence to speak of
        return floor
    return max(floor, 1 - stats.std_dev_interval / stats.mean_interval)


def average_amount(group: MerchantGroup) -> Decimal:
    total = sum((abs(t.amount) for t in group.transactions), Decimal("0"))
    return (total / len(group.transactions)).quantize(CENTS, rounding=ROUND_HALF_UP)


def evaluate_group(
    group: MerchantGroup,
    max_stddev_days: float = 5.0,
    min_confidence: float = 0.7
) -> Optional[DetectedPattern]:
    """Run one merchant group through every gate. None means not recurring."""
    stats = compute_interval_statistics(group)
    if stats is None:
        logger.debug("Skipping %s: only %d transactions", group.key, len(group))
        return None

    if not is_recurring(stats, max_stddev_days):
        logger.debug(
            "Skipping %s: interval stddev %.2f days", group.key, stats.std_dev_interval
        )
        return None

    confidence = score_confidence(stats, floor=min_confidence)
    if not confidence > min_confidence:
        logger.debug("Skipping %s: confidence %.3f", group.key, confidence)
        return None

    latest = group.transactions[-1]
    last_occurrence = latest.transaction_date.date()

    return DetectedPattern(
        merchant=group.key,
        category=latest.category,
        avg_amount=average_amount(group),
        frequency=classify_frequency(stats.mean_interval),
        expected_date=last_occurrence.day,
        confidence=confidence,
        last_occurrence=last_occurrence,
        transaction_count=len(group),
        mean_interval_days=stats.mean_interval,
        std_dev_interval_days=stats.std_dev_interval,
    )


def detect_patterns(
    transactions: Iterable[TransactionRecord],
    min_transactions: int = 3,
    max_stddev_days: float = 5.0,
    min_confidence: float = 0.7
) -> List[DetectedPattern]:
    """Detect recurring merchants in one user's transaction history."""
    groups = group_transactions(transactions, min_transactions=min_transactions)

    patterns = []
    for key in sorted(groups):
        pattern = evaluate_group(groups[key], max_stddev_days, min_confidence)
        if pattern is not None:
            patterns.append(pattern)

    return patterns
