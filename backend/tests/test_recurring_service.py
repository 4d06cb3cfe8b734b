"""Tests for detection runs, pattern upserts and next-date calculations."""

import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cadence.models.recurring import RecurringPattern, Frequency
from cadence.services import recurring_service
from cadence.services.detection_service import DetectedPattern
from cadence.services.recurring_service import (
    TransactionHistoryError,
    calculate_next_expected,
    get_patterns,
    load_transactions,
    run_detection,
    upsert_pattern,
)

from tests.conftest import USER_ID

NETFLIX_DAYS = [0, 30, 61, 92]


def pattern_fields(db_session, user_id=USER_ID):
    return [
        (p.merchant, p.category, p.avg_amount, p.frequency, p.expected_date, p.confidence, p.last_occurrence)
        for p in get_patterns(db_session, user_id)
    ]


class TestCalculateNextExpected:
    """Test next expected date calculations."""

    def test_weekly(self):
        """Weekly should add 7 days."""
        result = calculate_next_expected(date(2024, 1, 15), Frequency.weekly)
        assert result == date(2024, 1, 22)

    def test_monthly_normal(self):
        """Monthly should add one month."""
        result = calculate_next_expected(date(2024, 1, 15), Frequency.monthly)
        assert result == date(2024, 2, 15)

    def test_monthly_year_rollover(self):
        """Monthly in December should roll to January."""
        result = calculate_next_expected(date(2024, 12, 15), Frequency.monthly)
        assert result == date(2025, 1, 15)

    def test_monthly_end_of_month(self):
        """Monthly on 31st should land on the last day of a shorter month."""
        assert calculate_next_expected(date(2024, 1, 31), Frequency.monthly) == date(2024, 2, 29)
        assert calculate_next_expected(date(2023, 1, 31), Frequency.monthly) == date(2023, 2, 28)

    def test_quarterly(self):
        """Quarterly should add 3 months."""
        result = calculate_next_expected(date(2024, 1, 15), Frequency.quarterly)
        assert result == date(2024, 4, 15)

    def test_quarterly_year_rollover(self):
        """Quarterly in November should roll to next year."""
        result = calculate_next_expected(date(2024, 11, 30), Frequency.quarterly)
        assert result == date(2025, 2, 28)

    def test_yearly_leap_day(self):
        """Yearly on Feb 29 should handle non-leap years."""
        result = calculate_next_expected(date(2024, 2, 29), Frequency.yearly)
        assert result == date(2025, 2, 28)


class TestLoadTransactions:
    """Test reading the transaction source."""

    def test_only_this_user(self, db_session, add_charges):
        add_charges("Netflix", NETFLIX_DAYS)
        add_charges("Netflix", NETFLIX_DAYS, user_id="someone-else")
        records = load_transactions(db_session, USER_ID)
        assert len(records) == 4

    def test_most_recent_first_with_limit(self, db_session, add_charges):
        add_charges("Netflix", NETFLIX_DAYS)
        records = load_transactions(db_session, USER_ID, limit=2)
        assert [r.transaction_date.date() for r in records] == [date(2024, 4, 2), date(2024, 3, 2)]

    def test_zero_limit_is_respected(self, db_session, add_charges):
        add_charges("Netflix", NETFLIX_DAYS)
        assert load_transactions(db_session, USER_ID, limit=0) == []

    def test_default_limit_from_settings(self, db_session, add_charges, monkeypatch):
        add_charges("Netflix", NETFLIX_DAYS)
        monkeypatch.setattr(recurring_service.settings, "transaction_history_limit", 3)
        assert len(load_transactions(db_session, USER_ID)) == 3

    def test_unreadable_source(self, db_session, monkeypatch):
        def broken_query(*args, **kwargs):
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr(db_session, "query", broken_query)
        with pytest.raises(TransactionHistoryError):
            load_transactions(db_session, USER_ID)


class TestRunDetection:
    """Test full detection runs against the database."""

    def test_netflix_detected_and_saved(self, db_session, add_charges):
        add_charges("Netflix", NETFLIX_DAYS)
        add_charges("Random Shop", [0, 3, 49], amount="-42.00")

        summary = run_detection(db_session, USER_ID)

        assert summary.patterns_detected == 1
        assert summary.errors == []
        reported = summary.patterns[0]
        assert reported.merchant == "Netflix"
        assert reported.frequency == Frequency.monthly
        assert reported.transaction_count == 4
        assert reported.confidence == pytest.approx(0.985, abs=0.001)

        saved = get_patterns(db_session, USER_ID)
        assert len(saved) == 1
        assert saved[0].avg_amount == Decimal("15.49")
        assert saved[0].last_occurrence == date(2024, 4, 2)
        assert saved[0].expected_date == 2

    def test_no_history_is_not_an_error(self, db_session):
        summary = run_detection(db_session, USER_ID)
        assert summary.patterns_detected == 0
        assert summary.patterns == []
        assert summary.errors == []

    def test_rerun_is_idempotent(self, db_session, add_charges):
        add_charges("Netflix", NETFLIX_DAYS)
        add_charges("Gym", [3, 33, 63, 93], amount="-40.00", category="Health")

        run_detection(db_session, USER_ID)
        first = pattern_fields(db_session)
        run_detection(db_session, USER_ID)
        second = pattern_fields(db_session)

        assert first == second
        assert db_session.query(RecurringPattern).count() == 2

    def test_rerun_overwrites_with_latest_statistics(self, db_session, add_charges):
        add_charges("Netflix", NETFLIX_DAYS)
        run_detection(db_session, USER_ID)

        add_charges("Netflix", [122], amount="-17.99")
        run_detection(db_session, USER_ID)

        rows = db_session.query(RecurringPattern).all()
        assert len(rows) == 1
        assert rows[0].last_occurrence == date(2024, 5, 2)
        assert rows[0].avg_amount == Decimal("15.99")

    def test_users_are_isolated(self, db_session, add_charges):
        add_charges("Netflix", NETFLIX_DAYS)
        add_charges("Netflix", NETFLIX_DAYS, user_id="user-2")

        run_detection(db_session, USER_ID)

        assert len(get_patterns(db_session, USER_ID)) == 1
        assert get_patterns(db_session, "user-2") == []

    def test_failed_merchant_does_not_abort_run(self, db_session, add_charges, monkeypatch):
        add_charges("Gym", [3, 33, 63, 93], amount="-40.00")
        add_charges("Netflix", NETFLIX_DAYS)
        add_charges("Spotify", [5, 35, 65, 95], amount="-10.99")

        original = recurring_service.upsert_pattern

        def flaky_upsert(db, user_id, detection):
            if detection.merchant == "Netflix":
                raise SQLAlchemyError("deadlock detected")
            return original(db, user_id, detection)

        monkeypatch.setattr(recurring_service, "upsert_pattern", flaky_upsert)
        summary = run_detection(db_session, USER_ID)

        assert summary.patterns_detected == 2
        assert [p.merchant for p in summary.patterns] == ["Gym", "Spotify"]
        assert len(summary.errors) == 1
        assert summary.errors[0].merchant == "Netflix"
        assert "deadlock" in summary.errors[0].error
        assert [p.merchant for p in get_patterns(db_session, USER_ID)] == ["Gym", "Spotify"]

    def test_unexpected_upsert_error_is_isolated(self, db_session, add_charges, monkeypatch):
        add_charges("Gym", [3, 33, 63, 93], amount="-40.00")
        add_charges("Netflix", NETFLIX_DAYS)

        original = recurring_service.upsert_pattern

        def bad_conversion(db, user_id, detection):
            if detection.merchant == "Gym":
                raise ValueError("amount out of range")
            return original(db, user_id, detection)

        monkeypatch.setattr(recurring_service, "upsert_pattern", bad_conversion)
        summary = run_detection(db_session, USER_ID)

        assert [p.merchant for p in summary.patterns] == ["Netflix"]
        assert summary.errors[0].merchant == "Gym"
        assert "out of range" in summary.errors[0].error
        assert [p.merchant for p in get_patterns(db_session, USER_ID)] == ["Netflix"]

    def test_unreadable_history_is_fatal_for_the_user(self, db_session, monkeypatch):
        def broken_load(db, user_id, limit=None):
            raise TransactionHistoryError("source offline")

        monkeypatch.setattr(recurring_service, "load_transactions", broken_load)
        with pytest.raises(TransactionHistoryError):
            run_detection(db_session, USER_ID)


class TestUpsertPattern:
    """Test the (user, merchant) keyed upsert."""

    def detection(self, **overrides):
        fields = dict(
            merchant="Netflix",
            category="Entertainment",
            avg_amount=Decimal("15.49"),
            frequency=Frequency.monthly,
            expected_date=2,
            confidence=0.98,
            last_occurrence=date(2024, 4, 2),
            transaction_count=4,
            mean_interval_days=30.7,
            std_dev_interval_days=0.47,
        )
        fields.update(overrides)
        return DetectedPattern(**fields)

    def test_insert_then_replace(self, db_session):
        first = upsert_pattern(db_session, USER_ID, self.detection())
        second = upsert_pattern(
            db_session, USER_ID,
            self.detection(avg_amount=Decimal("17.99"), frequency=Frequency.quarterly, confidence=0.9)
        )

        assert first.id == second.id
        assert db_session.query(RecurringPattern).count() == 1
        assert second.avg_amount == Decimal("17.99")
        assert second.frequency == Frequency.quarterly
        assert second.confidence == 0.9

    def test_same_merchant_other_user_is_separate(self, db_session):
        upsert_pattern(db_session, USER_ID, self.detection())
        upsert_pattern(db_session, "user-2", self.detection())
        assert db_session.query(RecurringPattern).count() == 2

    def test_key_is_unique(self, db_session):
        upsert_pattern(db_session, USER_ID, self.detection())
        db_session.add(RecurringPattern(
            user_id=USER_ID,
            merchant="Netflix",
            avg_amount=Decimal("1.00"),
            frequency=Frequency.monthly,
            expected_date=1,
            confidence=0.8,
            last_occurrence=date(2024, 1, 1),
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_concurrent_insert_converges(self, db_session, session_factory):
        """A row inserted by an overlapping run between lookup and commit is updated instead."""
        other = session_factory()
        try:
            upsert_pattern(other, USER_ID, self.detection(avg_amount=Decimal("9.99")))
        finally:
            other.close()

        original_query = db_session.query
        calls = {"n": 0}

        class EmptyFirstLookup:
            def __init__(self, query):
                self.query = query

            def filter(self, *args):
                return EmptyFirstLookup(self.query.filter(*args))

            def first(self):
                return None

        def racing_query(*args, **kwargs):
            calls["n"] += 1
            query = original_query(*args, **kwargs)
            if calls["n"] == 1:
                return EmptyFirstLookup(query)
            return query

        db_session.query = racing_query
        try:
            record = upsert_pattern(db_session, USER_ID, self.detection())
        finally:
            db_session.query = original_query

        assert record.avg_amount == Decimal("15.49")
        assert db_session.query(RecurringPattern).count() == 1
