"""Tests for recurring pattern API endpoints."""

from sqlalchemy.exc import SQLAlchemyError

from cadence.services import recurring_service
from cadence.services.recurring_service import TransactionHistoryError

from tests.conftest import USER_ID

BASE = f"/api/v1/users/{USER_ID}/recurring"


class TestRecurringAPI:
    """Test recurring endpoints."""

    def test_list_empty(self, client):
        response = client.get(BASE)
        assert response.status_code == 200
        assert response.json() == []

    def test_detect(self, client, add_charges):
        add_charges("Netflix", [0, 30, 61, 92])
        add_charges("Random Shop", [0, 3, 49], amount="-42.00")

        response = client.post(f"{BASE}/detect")
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == USER_ID
        assert data["patterns_detected"] == 1
        assert data["patterns"][0]["merchant"] == "Netflix"
        assert data["patterns"][0]["frequency"] == "monthly"
        assert data["errors"] == []
        assert data["subscriptions_promoted"] is None

        patterns = client.get(BASE).json()
        assert len(patterns) == 1
        assert patterns[0]["expected_date"] == 2
        assert patterns[0]["last_occurrence"] == "2024-04-02"

    def test_detect_twice_keeps_one_row(self, client, add_charges):
        add_charges("Netflix", [0, 30, 61, 92])
        client.post(f"{BASE}/detect")
        client.post(f"{BASE}/detect")
        assert len(client.get(BASE).json()) == 1

    def test_detect_and_promote(self, client, add_charges):
        add_charges("Netflix", [0, 30, 61, 92])
        add_charges("Gym", [3, 33, 63, 93], amount="-40.00", category="Health")

        response = client.post(f"{BASE}/detect", params={"promote": True})
        assert response.status_code == 200
        assert response.json()["subscriptions_promoted"] == 2

        subscriptions = client.get(f"/api/v1/users/{USER_ID}/subscriptions").json()
        assert [s["merchant_name"] for s in subscriptions] == ["Gym", "Netflix"]
        assert subscriptions[0]["amount_cents"] == 4000

    def test_detect_reports_failed_merchants(self, client, add_charges, monkeypatch):
        add_charges("Netflix", [0, 30, 61, 92])
        add_charges("Gym", [3, 33, 63, 93], amount="-40.00")

        original = recurring_service.upsert_pattern

        def flaky_upsert(db, user_id, detection):
            if detection.merchant == "Gym":
                raise SQLAlchemyError("database is locked")
            return original(db, user_id, detection)

        monkeypatch.setattr(recurring_service, "upsert_pattern", flaky_upsert)
        data = client.post(f"{BASE}/detect").json()

        assert data["patterns_detected"] == 1
        assert data["errors"][0]["merchant"] == "Gym"

    def test_detect_unreadable_history(self, client, monkeypatch):
        def broken_load(db, user_id, limit=None):
            raise TransactionHistoryError("source offline")

        monkeypatch.setattr(recurring_service, "load_transactions", broken_load)
        response = client.post(f"{BASE}/detect")
        assert response.status_code == 503

    def test_get_pattern(self, client, sample_pattern):
        response = client.get(f"{BASE}/{sample_pattern.id}")
        assert response.status_code == 200
        assert response.json()["merchant"] == "Netflix"

    def test_get_pattern_other_user(self, client, sample_pattern):
        response = client.get(f"/api/v1/users/user-2/recurring/{sample_pattern.id}")
        assert response.status_code == 404
