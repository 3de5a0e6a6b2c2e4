from datetime import datetime, timedelta

import pytest

import smartcoffee.api.brew as brew_api
from smartcoffee.models import User


@pytest.fixture()
def user_id(client):
    response = client.post("/users", json={
        "name": "Ana",
        "email": "ana@example.com",
        "timezone": "UTC",
        "wake_time": "07:00"
    })
    assert response.status_code == 200
    return response.json()["id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


class TestUsers:
    def test_create_and_get(self, client, user_id):
        response = client.get(f"/users/{user_id}")
        assert response.status_code == 200
        assert response.json()["email"] == "ana@example.com"

    def test_duplicate_email(self, client, user_id):
        response = client.post("/users", json={"name": "Ana", "email": "ana@example.com"})
        assert response.status_code == 400

    def test_invalid_wake_time(self, client):
        response = client.post("/users", json={"name": "Bo", "email": "bo@example.com", "wake_time": "7am"})
        assert response.status_code == 422

    def test_unknown_user(self, client):
        assert client.get("/users/missing").status_code == 404
        assert client.get("/brew/missing/recommendation").status_code == 404

    def test_default_preferences(self, client, user_id):
        prefs = client.get(f"/users/{user_id}/preferences").json()
        assert prefs["preferred_type"] is None
        assert prefs["preferred_strength"] == 0.6
        assert prefs["max_caffeine_per_day_mg"] == 400.0
        assert prefs["require_confirmation"] is True

    def test_new_user_gets_configured_caffeine_limit(self, client, monkeypatch):
        import smartcoffee.api.users as users_api
        from smartcoffee.config import Settings

        monkeypatch.setattr(users_api, "get_settings", lambda: Settings(default_max_caffeine_mg=300))

        created = client.post("/users", json={"name": "Cy", "email": "cy@example.com"}).json()
        prefs = client.get(f"/users/{created['id']}/preferences").json()
        assert prefs["max_caffeine_per_day_mg"] == 300.0

    def test_update_preferences(self, client, user_id):
        response = client.put(f"/users/{user_id}/preferences", json={
            "preferred_type": "latte",
            "max_caffeine_per_day_mg": 200
        })
        assert response.status_code == 200
        assert response.json()["preferred_type"] == "latte"
        assert response.json()["max_caffeine_per_day_mg"] == 200
        assert response.json()["preferred_strength"] == 0.6

        response = client.put(f"/users/{user_id}/preferences", json={"clear_preferred_type": True})
        assert response.json()["preferred_type"] is None

    def test_preferences_are_validated(self, client, user_id):
        response = client.put(f"/users/{user_id}/preferences", json={"preferred_strength": 1.5})
        assert response.status_code == 422


class TestSleep:
    def test_no_sleep_yet(self, client, user_id):
        assert client.get(f"/sleep/{user_id}/latest").status_code == 404

    def test_quality_computed_when_missing(self, client, user_id):
        response = client.post(f"/sleep/{user_id}", json={
            "duration_seconds": 8 * 3600,
            "average_heart_rate": 55,
            "deep_sleep_percent": 18,
            "rem_sleep_percent": 22
        })
        assert response.status_code == 200
        body = response.json()
        assert body["quality_score"] == 100.0
        assert body["fatigue_level"] == "low"
        assert body["light_sleep_percent"] == 60.0

        latest = client.get(f"/sleep/{user_id}/latest").json()
        assert latest["id"] == body["id"]

    def test_mock_scenario(self, client, user_id):
        response = client.post(f"/sleep/{user_id}/mock", params={"scenario": "sleepless"})
        assert response.status_code == 200
        assert response.json()["fatigue_level"] == "severe"
        assert response.json()["source"] == "mock"


class TestRecommendation:
    def test_without_sleep_data(self, client, user_id):
        body = client.get(f"/brew/{user_id}/recommendation", params={"hour_override": 10}).json()

        assert body["using_default_sleep"] is True
        assert body["hour_of_day"] == 10
        assert 0.1 <= body["strength"] <= 1.0
        assert body["summary"] == " • ".join(body["reasoning"])

    def test_sleepless_morning(self, client, user_id):
        client.post(f"/sleep/{user_id}/mock", params={"scenario": "sleepless"})

        body = client.get(f"/brew/{user_id}/recommendation", params={"hour_override": 7}).json()
        assert body["coffee_type"] == "scurt"
        assert body["fatigue_level"] == "severe"
        # Weekend mornings soften urgency by 30%
        assert body["urgency"] >= 0.7

    def test_evening(self, client, user_id):
        client.post(f"/sleep/{user_id}/mock", params={"scenario": "sleepless"})

        body = client.get(f"/brew/{user_id}/recommendation", params={"hour_override": 19}).json()
        assert body["coffee_type"] == "latte"
        assert body["strength"] <= 0.4

    def test_hour_override_out_of_range(self, client, user_id):
        response = client.get(f"/brew/{user_id}/recommendation", params={"hour_override": 30})
        assert response.status_code == 422


class TestBrew:
    def test_brew_and_history(self, client, user_id, machine):
        client.post(f"/sleep/{user_id}/mock", params={"scenario": "sleepless"})

        response = client.post(f"/brew/{user_id}", json={"hour_override": 7})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["coffee_type"] == "scurt"
        assert body["trigger"] == "manual"
        assert body["caffeine_mg"] == pytest.approx(round(63 * body["strength"], 1), abs=0.1)
        assert len(machine.requests) == 1

        history = client.get(f"/brew/{user_id}/history").json()
        assert [brew["id"] for brew in history["brews"]] == [body["brew_id"]]

        stats = client.get(f"/brew/{user_id}/stats").json()
        assert stats["total_cups"] == 1
        assert stats["cups_by_type"] == {"scurt": 1}

    def test_requested_type(self, client, user_id):
        response = client.post(f"/brew/{user_id}", json={"coffee_type": "latte", "hour_override": 9})
        assert response.json()["coffee_type"] == "latte"

    def test_machine_unavailable(self, client, user_id, machine):
        machine.down = True

        response = client.post(f"/brew/{user_id}", json={})
        assert response.status_code == 502

        history = client.get(f"/brew/{user_id}/history").json()
        assert history["brews"][0]["status"] == "error"

    def test_unexpected_machine_payload_is_logged(self, client, user_id, machine):
        machine.brew_response = ["ok"]

        response = client.post(f"/brew/{user_id}", json={})
        assert response.status_code == 502

        history = client.get(f"/brew/{user_id}/history").json()
        assert len(history["brews"]) == 1
        assert history["brews"][0]["status"] == "error"

    def test_invalid_hour(self, client, user_id):
        response = client.post(f"/brew/{user_id}", json={"hour_override": 25})
        assert response.status_code == 400


class TestConfirmation:
    @pytest.fixture()
    def start_countdown(self, session_factory, user_id):
        def start(now=None):
            db = session_factory()
            try:
                user = db.query(User).filter(User.id == user_id).one()
                return brew_api.recommender.start_pending_brew(user, db, now=now).id
            finally:
                db.close()
        return start

    def test_confirm_brews_pending_coffee(self, client, user_id, machine, start_countdown):
        pending_id = start_countdown()

        pending = client.get(f"/brew/{user_id}/pending").json()
        assert pending["id"] == pending_id
        assert 0 < pending["seconds_remaining"] <= 30

        response = client.post(f"/brew/{user_id}/confirm")
        assert response.status_code == 200
        assert response.json()["trigger"] == "auto"
        assert len(machine.requests) == 1

        assert client.get(f"/brew/{user_id}/pending").status_code == 404
        assert client.post(f"/brew/{user_id}/confirm").status_code == 404

    def test_cancel_stops_the_brew(self, client, user_id, machine, start_countdown):
        start_countdown()

        response = client.post(f"/brew/{user_id}/cancel")
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        assert client.post(f"/brew/{user_id}/confirm").status_code == 404
        assert machine.requests == []

    def test_expired_countdown_cannot_be_confirmed(self, client, user_id, machine, start_countdown):
        start_countdown(now=datetime.utcnow() - timedelta(seconds=60))

        assert client.post(f"/brew/{user_id}/confirm").status_code == 404
        assert machine.requests == []

    def test_confirm_keeps_countdown_when_machine_is_down(self, client, user_id, machine, start_countdown):
        start_countdown()
        machine.down = True

        assert client.post(f"/brew/{user_id}/confirm").status_code == 502
        assert client.get(f"/brew/{user_id}/pending").status_code == 200

    def test_nothing_to_cancel(self, client, user_id):
        assert client.post(f"/brew/{user_id}/cancel").status_code == 404


class TestDevice:
    def test_status(self, client):
        response = client.get("/device/status")
        assert response.status_code == 200
        assert response.json()["uptime"] == "1h 2m"
        assert response.json()["signal_quality"] == "good"

    def test_status_when_offline(self, client, machine):
        machine.down = True
        assert client.get("/device/status").status_code == 502
        assert client.get("/device/health").status_code == 502

    def test_connection(self, client):
        body = client.get("/device/connection").json()
        assert body["connected"] is True
        assert body["settings_errors"] == []
