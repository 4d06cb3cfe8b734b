"""Service for recurring pattern detection runs and pattern persistence."""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cadence.config import settings
from cadence.models.recurring import RecurringPattern, Frequency
from cadence.models.transaction import Transaction
from cadence.schemas.recurring import DetectedPatternSummary, DetectionError, DetectionSummary
from cadence.schemas.transaction import TransactionRecord
from cadence.services.detection_service import DetectedPattern, detect_patterns

logger = logging.getLogger(__name__)


class TransactionHistoryError(RuntimeError):
    """The transaction history for a user could not be read."""


def load_transactions(
    db: Session,
    user_id: str,
    limit: Optional[int] = None
) -> List[TransactionRecord]:
    """
    Load the most recent transactions for a user as validated records.

    Rows that fail validation are skipped; an unreadable source raises
    TransactionHistoryError.
    """
    if limit is None:
        limit = settings.transaction_history_limit

    try:
        rows = db.query(Transaction).filter(
            Transaction.user_id == user_id
        ).order_by(Transaction.transaction_date.desc()).limit(limit).all()
    except SQLAlchemyError as e:
        db.rollback()
        raise TransactionHistoryError(
            f"Could not load transactions for user {user_id}: {e}"
        ) from e

    records = []
    for row in rows:
        try:
            records.append(TransactionRecord.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping malformed transaction %s: %s", row.id, e)

    return records


def _add_months(last_date: date, months: int) -> date:
    month_index = last_date.month - 1 + months
    year = last_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(last_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_next_expected(last_date: date, frequency: Frequency) -> date:
    """Calculate the next expected date based on frequency."""
    if frequency == Frequency.weekly:
        return last_date + timedelta(days=7)
    elif frequency == Frequency.monthly:
        return _add_months(last_date, 1)
    elif frequency == Frequency.quarterly:
        return _add_months(last_date, 3)
    elif frequency == Frequency.yearly:
        return _add_months(last_date, 12)
    else:
        return last_date + timedelta(days=30)


def _apply_detection(record: RecurringPattern, detection: DetectedPattern) -> None:
    record.category = detection.category
    record.avg_amount = detection.avg_amount
    record.frequency = detection.frequency
    record.expected_date = detection.expected_date
    record.confidence = detection.confidence
    record.last_occurrence = detection.last_occurrence
    record.updated_at = datetime.utcnow()


def upsert_pattern(
    db: Session,
    user_id: str,
    detection: DetectedPattern
) -> RecurringPattern:
    """
    Insert or overwrite the pattern row for (user_id, merchant) and commit.

    A concurrent run inserting the same key first surfaces as an
    IntegrityError; that is retried once as an update of the winner's row.
    """
    for attempt in range(2):
        record = db.query(RecurringPattern).filter(
            RecurringPattern.user_id == user_id,
            RecurringPattern.merchant == detection.merchant
        ).first()

        if record is None:
            record = RecurringPattern(user_id=user_id, merchant=detection.merchant)
            db.add(record)

        _apply_detection(record, detection)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if attempt:
                raise
            logger.info("Pattern for %s inserted concurrently, retrying as update", detection.merchant)
            continue

        db.refresh(record)
        return record


def run_detection(db: Session, user_id: str) -> DetectionSummary:
    """
    Detect recurring merchants for one user and persist every pattern found.

    Each merchant commits on its own; a failed write is recorded in the
    summary and the run moves on to the next merchant.
    """
    transactions = load_transactions(db, user_id)
    logger.info("Analyzing %d transactions for user %s", len(transactions), user_id)

    detections = detect_patterns(
        transactions,
        min_transactions=settings.recurring_min_transactions,
        max_stddev_days=settings.recurring_max_stddev_days,
        min_confidence=settings.recurring_min_confidence,
    )

    persisted = []
    errors = []
    for detection in detections:
        try:
            upsert_pattern(db, user_id, detection)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to save pattern for %s (user %s): %s", detection.merchant, user_id, e)
            errors.append(DetectionError(merchant=detection.merchant, error=str(e)))
            continue
        except Exception as e:
            db.rollback()
            logger.exception("Unexpected error saving pattern for %s (user %s)", detection.merchant, user_id)
            errors.append(DetectionError(merchant=detection.merchant, error=str(e)))
            continue

        persisted.append(DetectedPatternSummary(
            merchant=detection.merchant,
            frequency=detection.frequency,
            confidence=detection.confidence,
            transaction_count=detection.transaction_count,
        ))

    summary = DetectionSummary(
        user_id=user_id,
        patterns_detected=len(persisted),
        patterns=persisted,
        errors=errors,
    )

    logger.info(
        "Detection for user %s: %d patterns saved, %d failed",
        user_id, len(persisted), len(errors)
    )
    return summary


def get_patterns(db: Session, user_id: str) -> List[RecurringPattern]:
    """Get all recurring patterns for a user."""
    return db.query(RecurringPattern).filter(
        RecurringPattern.user_id == user_id
    ).order_by(RecurringPattern.merchant).all()


def get_pattern(db: Session, user_id: str, pattern_id: str) -> Optional[RecurringPattern]:
    return db.query(RecurringPattern).filter(
        RecurringPattern.id == pattern_id,
        RecurringPattern.user_id == user_id
    ).first()
