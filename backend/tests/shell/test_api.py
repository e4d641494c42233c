"""Integration tests for API endpoints using Starlette TestClient."""

from datetime import date
from unittest.mock import MagicMock

import pytest
from starlette.testclient import TestClient

from nutrilog.config import AppConfig
from nutrilog.core.errors import AuthError
from nutrilog.main import create_app


AUTH = {"Authorization": "Bearer nlg_valid"}


@pytest.fixture
def auth_client():
    """Identity provider that knows exactly one key."""
    mock_auth = MagicMock()
    mock_auth.validate_api_key.side_effect = (
        lambda key: "user-1" if key == "nlg_valid" else None
    )
    return mock_auth


@pytest.fixture
def app(gateway, auth_client):
    return create_app(
        AppConfig(allowed_origins=["https://nutrilog.example"]),
        gateway=gateway,
        auth_client=auth_client,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


def open_add(client):
    response = client.post("/api/session/navigate", json={"action": "open-add"}, headers=AUTH)
    assert response.status_code == 200


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health(self, client):
        """Health endpoint returns JSON with status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "nutrilog"}


class TestAuthEndpoints:
    """Tests for /auth endpoints."""

    def test_register_success(self, client, auth_client):
        """Registration returns the new API key once."""
        auth_client.register_user.return_value = ("nlg_new_key", "user-9")

        response = client.post("/auth/register")

        assert response.status_code == 200
        assert response.json()["api_key"] == "nlg_new_key"

    def test_register_failure(self, client, auth_client):
        """A failed sign-up is reported, not raised."""
        auth_client.register_user.side_effect = AuthError("offline")

        response = client.post("/auth/register")

        assert response.status_code == 500
        assert "error" in response.json()

    def test_validate_missing_key(self, client):
        """Validation without key returns invalid."""
        assert client.post("/auth/validate", json={}).json()["valid"] is False

    def test_validate_known_key(self, client):
        """A known key is valid."""
        assert client.post("/auth/validate", json={"api_key": "nlg_valid"}).json()["valid"] is True


class TestSignedOut:
    """Everything under /api is blocked until a user is signed in."""

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer nlg_unknown"}])
    def test_loading_state(self, client, gateway, headers):
        """Requests without a valid identity get 401 and touch nothing."""
        response = client.get("/api/session", headers=headers)

        assert response.status_code == 401
        assert response.json()["status"] == "loading"
        assert gateway.watches == []


class TestSessionEndpoints:
    """Tests for /api/session endpoints."""

    def test_initial_session(self, client):
        """A new session shows today's overview with default goals."""
        data = client.get("/api/session", headers=AUTH).json()

        assert data["screen"] == "overview"
        assert data["selected_date"] == date.today().isoformat()
        assert data["overview"]["goals"]["calories"] == 2720
        assert data["overview"]["totals"]["calories"] == 0

    def test_select_date(self, client, gateway):
        """Selecting a date moves the live listener."""
        response = client.post("/api/session/date", json={"date": "2024-01-01"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["overview"]["date"] == "2024-01-01"
        assert gateway.active_food_dates() == ["2024-01-01"]

    def test_select_invalid_date(self, client):
        """Malformed dates are rejected."""
        response = client.post("/api/session/date", json={"date": "01/01/2024"}, headers=AUTH)
        assert response.status_code == 400

    def test_navigate_to_add(self, client):
        """The add screen comes with the form defaults."""
        response = client.post("/api/session/navigate", json={"action": "open-add"}, headers=AUTH)

        data = response.json()
        assert data["screen"] == "add-entry"
        assert data["entry_form"]["grams"] == 100

    def test_unknown_action(self, client):
        """Unknown actions are a bad request."""
        response = client.post("/api/session/navigate", json={"action": "jump"}, headers=AUTH)
        assert response.status_code == 400

    def test_invalid_transition(self, client):
        """Going back from the overview is a conflict."""
        response = client.post("/api/session/navigate", json={"action": "back"}, headers=AUTH)
        assert response.status_code == 409

    def test_close_releases_listeners(self, client, gateway):
        """Closing the session releases its listeners."""
        client.get("/api/session", headers=AUTH)

        response = client.post("/api/session/close", headers=AUTH)

        assert response.json() == {"closed": True}
        assert all(watch.released for watch in gateway.watches)


class TestFoodEndpoints:
    """Tests for /api/foods endpoints."""

    def test_preview(self, client):
        """Preview returns scaled macros without storing anything."""
        response = client.post(
            "/api/foods/preview",
            json={"grams": 150, "proteins": 31, "fats": 3.6, "carbs": 0},
            headers=AUTH,
        )

        assert response.json()["calories"] == pytest.approx(234.6)

    def test_add_food(self, client, gateway):
        """Saving the form stores the entry and returns to the overview."""
        client.post("/api/session/date", json={"date": "2024-01-01"}, headers=AUTH)
        open_add(client)

        response = client.post(
            "/api/foods",
            json={"name": "Chicken Breast", "grams": 150, "proteins": 31, "fats": 3.6, "carbs": 0},
            headers=AUTH,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["screen"] == "overview"
        assert data["entry"]["name"] == "chicken breast"
        assert data["entry"]["date"] == "2024-01-01"
        assert data["entry"]["calories"] == pytest.approx(234.6)

        overview = client.get("/api/session", headers=AUTH).json()["overview"]
        assert overview["totals"]["proteins"] == pytest.approx(46.5)

    @pytest.mark.parametrize("body", [
        {"name": "", "grams": 100},
        {"name": "Chicken", "grams": 0},
        {"name": "Chicken", "grams": 100, "proteins": 150},
    ])
    def test_add_food_invalid(self, client, gateway, body):
        """Invalid forms are rejected without a write."""
        open_add(client)

        response = client.post("/api/foods", json=body, headers=AUTH)

        assert response.status_code == 400
        assert gateway.write_calls == []
        assert client.get("/api/session", headers=AUTH).json()["screen"] == "add-entry"

    def test_add_food_gateway_failure(self, client, gateway):
        """A failed write is a 502 and the add screen stays open."""
        open_add(client)
        gateway.fail_writes = True

        response = client.post("/api/foods", json={"name": "Rice", "grams": 100}, headers=AUTH)

        assert response.status_code == 502
        assert client.get("/api/session", headers=AUTH).json()["screen"] == "add-entry"

    def test_add_food_outside_add_screen(self, client):
        """Saving an entry from the overview is a conflict."""
        response = client.post("/api/foods", json={"name": "Rice", "grams": 100}, headers=AUTH)
        assert response.status_code == 409

    def test_malformed_json(self, client):
        """Bodies that are not JSON are a bad request."""
        open_add(client)
        response = client.post(
            "/api/foods",
            content=b"{not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_delete_food(self, client):
        """Deleted entries leave the overview."""
        open_add(client)
        entry = client.post("/api/foods", json={"name": "Rice", "grams": 100}, headers=AUTH).json()["entry"]

        response = client.delete(f"/api/foods/{entry['id']}", headers=AUTH)

        assert response.json() == {"success": True}
        assert client.get("/api/session", headers=AUTH).json()["overview"]["entries"] == []

    def test_delete_failure(self, client, gateway):
        """A failed delete is a 502."""
        gateway.fail_writes = True
        assert client.delete("/api/foods/food-1", headers=AUTH).status_code == 502

    def test_repeat_food(self, client):
        """Repeating an entry of a past day logs it for today."""
        client.post("/api/session/date", json={"date": "2024-01-01"}, headers=AUTH)
        open_add(client)
        entry = client.post("/api/foods", json={"name": "Soup", "grams": 300}, headers=AUTH).json()["entry"]

        response = client.post(f"/api/foods/{entry['id']}/repeat", headers=AUTH)

        assert response.status_code == 201
        copy = response.json()["entry"]
        assert copy["date"] == date.today().isoformat()
        assert copy["id"] != entry["id"]

    def test_repeat_unknown_food(self, client):
        """Unknown entries cannot be repeated."""
        assert client.post("/api/foods/missing/repeat", headers=AUTH).status_code == 404


class TestGoalEndpoints:
    """Tests for /api/goals endpoints."""

    def open_settings(self, client):
        client.post("/api/session/navigate", json={"action": "open-settings"}, headers=AUTH)

    def test_update_recomputes_calories(self, client):
        """Patching targets returns derived calories."""
        self.open_settings(client)

        response = client.patch("/api/goals", json={"proteins": 200, "fats": 80, "carbs": 300}, headers=AUTH)

        assert response.json()["calories"] == 2720

    def test_supplied_calories_ignored(self, client):
        """A calories field in the body has no effect."""
        self.open_settings(client)

        response = client.patch("/api/goals", json={"proteins": 100, "calories": 9999}, headers=AUTH)

        assert response.json()["calories"] == 100 * 4 + 80 * 9 + 300 * 4

    def test_out_of_range_target(self, client):
        """Targets above the limit are rejected."""
        self.open_settings(client)
        assert client.patch("/api/goals", json={"carbs": 601}, headers=AUTH).status_code == 400

    def test_save_goals(self, client, gateway):
        """Saving writes the draft and returns to the overview."""
        self.open_settings(client)
        client.patch("/api/goals", json={"fats": 60}, headers=AUTH)

        response = client.post("/api/goals", headers=AUTH)

        data = response.json()
        assert data["screen"] == "overview"
        assert data["goals"]["calories"] == 200 * 4 + 60 * 9 + 300 * 4
        assert gateway.goals["user-1"].fats == 60

    def test_save_goals_failure(self, client, gateway):
        """A failed write is a 502."""
        self.open_settings(client)
        gateway.fail_writes = True

        assert client.post("/api/goals", headers=AUTH).status_code == 502


class TestCORS:
    """Tests for CORS configuration."""

    def test_preflight_allowed_origin(self, client):
        """Configured origins pass the preflight."""
        response = client.options(
            "/auth/register",
            headers={
                "Origin": "https://nutrilog.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == "https://nutrilog.example"
