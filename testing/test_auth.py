"""
Tests for Supabase JWT validation and role checks.

Usage:
    pytest testing/test_auth.py
"""

import time

import jwt
import pytest
from fastapi import HTTPException

from app.api.middleware.auth import _validate_token, get_current_user
from app.config import get_settings
from app.main import app
from testing.conftest import ADMIN_ID, PLAYER_ID

SECRET = "test-jwt-secret-with-at-least-32-bytes!"


def make_token(secret=SECRET, **claims) -> str:
    payload = {
        "sub": PLAYER_ID,
        "email": "rina@example.com",
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(get_settings(), "supabase_jwt_secret", SECRET)


class TestValidateToken:
    def test_valid_token(self):
        token = make_token()
        user = _validate_token(token)
        assert user.user_id == PLAYER_ID
        assert user.email == "rina@example.com"
        assert user.access_token == token

    @pytest.mark.parametrize(
        "claims, detail",
        [
            ({"exp": int(time.time()) - 60}, "Token has expired"),
            ({"aud": "anon"}, "Invalid token audience"),
            ({"sub": None}, "Invalid token: missing user identifier"),
        ],
    )
    def test_rejected_claims(self, claims, detail):
        with pytest.raises(HTTPException) as exc:
            _validate_token(make_token(**claims))
        assert exc.value.status_code == 401
        assert exc.value.detail == detail

    def test_wrong_secret(self):
        with pytest.raises(HTTPException) as exc:
            _validate_token(make_token(secret="another-secret-that-is-32-bytes-long"))
        assert exc.value.status_code == 401
        assert exc.value.detail.startswith("Invalid token:")

    def test_missing_secret_is_server_error(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "supabase_jwt_secret", "")
        with pytest.raises(HTTPException) as exc:
            _validate_token(make_token())
        assert exc.value.status_code == 500


class TestRoutes:
    @pytest.fixture
    def anonymous(self, client):
        app.dependency_overrides.pop(get_current_user)
        return client

    def test_no_credentials(self, anonymous):
        response = anonymous.get("/api/bookings")
        assert response.status_code == 401
        assert response.json()["error"] == "Silakan login terlebih dahulu."

    def test_bearer_token(self, anonymous, venue_setup):
        response = anonymous.get("/api/bookings", headers={"Authorization": f"Bearer {make_token()}"})
        assert response.status_code == 200

    def test_admin_role_from_profile(self, anonymous, venue_setup):
        token = make_token(sub=ADMIN_ID, email="admin@courtease.id")
        response = anonymous.get("/api/admin/dashboard", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

    def test_player_is_not_admin(self, anonymous, venue_setup):
        response = anonymous.get("/api/admin/dashboard", headers={"Authorization": f"Bearer {make_token()}"})
        assert response.status_code == 403

    def test_player_is_not_venue_partner(self, anonymous, venue_setup):
        response = anonymous.get("/api/dashboard/venue", headers={"Authorization": f"Bearer {make_token()}"})
        assert response.status_code == 403
        assert response.json()["error"] == "Akses ditolak. Hanya venue partner yang diizinkan."
