"""Shared test fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date, datetime, timedelta
from decimal import Decimal
import uuid

from cadence.database import Base
from cadence.dependencies import get_db
from cadence.main import app
from cadence.models.transaction import Transaction
from cadence.models.recurring import RecurringPattern, Frequency
from cadence.models.subscription import CardSubscription, SubscriptionStatus

USER_ID = "user-1"


@pytest.fixture(scope="function")
def engine():
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a fresh database for each test using in-memory SQLite."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session, monkeypatch):
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Tables live in the in-memory engine; skip creating the on-disk database
    monkeypatch.setattr("cadence.main.init_db", lambda: None)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def add_charges(db_session):
    """Insert charges for one merchant, one per given day offset from start."""
    def _add(merchant, day_offsets, amount="-15.49", user_id=USER_ID,
             start=datetime(2024, 1, 1, 9, 30), category="Entertainment"):
        rows = []
        for offset in day_offsets:
            txn = Transaction(
                id=str(uuid.uuid4()),
                user_id=user_id,
                merchant=merchant,
                amount=Decimal(amount),
                category=category,
                transaction_date=start + timedelta(days=offset),
            )
            db_session.add(txn)
            rows.append(txn)
        db_session.commit()
        return rows
    return _add


@pytest.fixture
def sample_pattern(db_session):
    """Create a sample monthly pattern."""
    pattern = RecurringPattern(
        id=str(uuid.uuid4()),
        user_id=USER_ID,
        merchant="Netflix",
        category="Entertainment",
        avg_amount=Decimal("15.49"),
        frequency=Frequency.monthly,
        expected_date=3,
        confidence=0.985,
        last_occurrence=date(2024, 4, 3),
    )
    db_session.add(pattern)
    db_session.commit()
    db_session.refresh(pattern)
    return pattern


@pytest.fixture
def sample_subscription(db_session):
    """Create an active monthly subscription."""
    subscription = CardSubscription(
        id=str(uuid.uuid4()),
        user_id=USER_ID,
        merchant_name="Spotify",
        category="Entertainment",
        amount_cents=1099,
        frequency="monthly",
        next_expected_date=date(2024, 5, 10),
        confidence=0.95,
        status=SubscriptionStatus.active,
        is_confirmed=False,
        cancel_reminder_enabled=False,
        cancel_reminder_days_before=3,
        zombie_score=0.0,
        last_charge_date=date(2024, 4, 10),
    )
    db_session.add(subscription)
    db_session.commit()
    db_session.refresh(subscription)
    return subscription
