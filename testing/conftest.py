"""
Shared fixtures: an in-memory Supabase, a Midtrans client on an
httpx.MockTransport, and a TestClient with the dependencies overridden.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db, get_gateway
from app.api.middleware.auth import AuthenticatedUser, get_current_user
from app.main import app
from app.payments.config import MidtransConfig
from app.payments.midtrans import MidtransService
from testing.fakes import FakeSupabase

SERVER_KEY = "SB-Mid-server-test"
PLAYER_ID = "11111111-1111-1111-1111-111111111111"
PARTNER_ID = "22222222-2222-2222-2222-222222222222"
ADMIN_ID = "33333333-3333-3333-3333-333333333333"


class FakeMidtrans:
    """Programmable Midtrans backend served through httpx.MockTransport."""

    def __init__(self):
        self.statuses: dict[str, dict] = {}
        self.snap_response: tuple[int, dict] = (
            201,
            {"token": "snap-token-123", "redirect_url": "https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-token-123"},
        )
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/snap/v1/transactions":
            status_code, body = self.snap_response
            return httpx.Response(status_code, json=body)

        order_id = request.url.path.split("/")[2]
        if order_id in self.statuses:
            return httpx.Response(200, json=self.statuses[order_id])
        return httpx.Response(404, json={"status_code": "404", "status_message": "Transaction doesn't exist."})

    def snap_payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == "/snap/v1/transactions"]


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def midtrans():
    return FakeMidtrans()


@pytest.fixture
def gateway(midtrans):
    config = MidtransConfig(midtrans_server_key=SERVER_KEY)
    return MidtransService(config, transport=httpx.MockTransport(midtrans.handler))


@pytest.fixture
def current_user():
    return AuthenticatedUser(user_id=PLAYER_ID, email="rina@example.com", access_token="test-token")


@pytest.fixture
def client(fake_db, gateway, current_user):
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_current_user] = lambda: current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def venue_setup(fake_db):
    """A partner-owned venue with one futsal court, plus player and admin profiles."""
    fake_db.seed(
        "profiles",
        {"id": PLAYER_ID, "full_name": "Rina Wijaya", "email": "rina@example.com", "role": "player"},
        {"id": PARTNER_ID, "full_name": "Budi Santoso", "email": "budi@example.com", "role": "venue_partner"},
        {"id": ADMIN_ID, "full_name": "Admin", "email": "admin@courtease.id", "role": "admin"},
    )
    venue = fake_db.add(
        "venues",
        {"name": "Arena Senayan", "slug": "arena-senayan", "city": "Jakarta", "owner_profile_id": PARTNER_ID},
    )
    court = fake_db.add(
        "courts",
        {
            "venue_id": venue["id"],
            "slug": "arena-senayan-lapangan-a",
            "name": "Lapangan A",
            "sport": "futsal",
            "price_per_hour": 150000,
            "is_active": True,
        },
    )
    return {"venue": venue, "court": court}


def make_booking(fake_db, court_id, start, hours=1, **overrides):
    row = {
        "court_id": court_id,
        "profile_id": PLAYER_ID,
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=hours)).isoformat(),
        "status": "pending",
        "payment_status": "pending",
        "price_total": 150000 * hours,
        "payment_reference": None,
        **overrides,
    }
    return fake_db.add("bookings", row)
