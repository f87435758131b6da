"""
API tests for venue partners: booking actions, court management, images,
blackouts and reports.

Usage:
    pytest testing/test_venues.py
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.api.middleware.auth import AuthenticatedUser
from app.bookings.rules import WIB
from app.errors import BookingValidationError
from app.services.venues import storage_path_from_url, to_venue_booking_view, validate_blackout_payload
from testing.conftest import PARTNER_ID, PLAYER_ID, make_booking


@pytest.fixture
def current_user():
    return AuthenticatedUser(user_id=PARTNER_ID, email="budi@example.com", access_token="test-token")


@pytest.fixture
def court(venue_setup):
    return venue_setup["court"]


@pytest.fixture
def rival_court(fake_db):
    venue = fake_db.add("venues", {"name": "Rival Arena", "owner_profile_id": "someone-else"})
    return fake_db.add("courts", {"venue_id": venue["id"], "name": "X", "sport": "tennis", "is_active": True})


def soon(hours: float = 24) -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0) + timedelta(hours=hours)


class TestBookingActions:
    def test_check_in_then_complete(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], soon(), status="confirmed", payment_status="paid")
        url = f"/api/venues/bookings/{booking['id']}/status"

        checked = client.patch(url, json={"action": "check_in"})
        assert checked.status_code == 200
        assert checked.json()["data"]["status"] == "confirmed"
        assert checked.json()["data"]["checked_in_at"]

        completed = client.patch(url, json={"action": "complete"})
        assert completed.status_code == 200
        assert completed.json()["data"]["status"] == "completed"

        stored = fake_db.row("bookings", booking["id"])
        assert stored["status"] == "completed"
        assert stored["checked_in_at"] and stored["completed_at"]

    def test_check_in_pending_confirms(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], soon())
        client.patch(f"/api/venues/bookings/{booking['id']}/status", json={"action": "check_in"})
        assert fake_db.row("bookings", booking["id"])["status"] == "confirmed"

    def test_repeated_check_in_keeps_first_stamp(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], soon(), status="confirmed", checked_in_at="2026-01-01T10:00:00+00:00")
        response = client.patch(f"/api/venues/bookings/{booking['id']}/status", json={"action": "check_in"})
        assert response.json()["data"]["checked_in_at"] == "2026-01-01T10:00:00+00:00"

    def test_complete_without_check_in_is_400(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], soon(), status="confirmed")
        response = client.patch(f"/api/venues/bookings/{booking['id']}/status", json={"action": "complete"})
        assert response.status_code == 400

    def test_unknown_action_is_400(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], soon(), status="confirmed")
        response = client.patch(f"/api/venues/bookings/{booking['id']}/status", json={"action": "refund"})
        assert response.status_code == 400

    def test_other_venue_booking_is_403(self, client, fake_db, venue_setup, rival_court):
        booking = make_booking(fake_db, rival_court["id"], soon(), status="confirmed")
        response = client.patch(f"/api/venues/bookings/{booking['id']}/status", json={"action": "check_in"})
        assert response.status_code == 403
        assert response.json()["error"] == "Kamu tidak memiliki akses ke booking ini."

    def test_missing_booking_is_404(self, client, venue_setup):
        response = client.patch("/api/venues/bookings/missing/status", json={"action": "check_in"})
        assert response.status_code == 404

    def test_player_role_is_rejected(self, client, fake_db, venue_setup, current_user):
        current_user.user_id = PLAYER_ID
        response = client.patch("/api/venues/bookings/x/status", json={"action": "check_in"})
        assert response.status_code == 403
        assert response.json()["error"] == "Akses ditolak. Hanya venue partner yang diizinkan."


class TestVenueBookings:
    def test_list_shows_wib_times_and_customer(self, client, fake_db, court, rival_court):
        start = datetime(2026, 5, 2, 12, 0, tzinfo=timezone.utc)
        make_booking(fake_db, court["id"], start, hours=2, status="confirmed")
        make_booking(fake_db, rival_court["id"], start)

        data = client.get("/api/dashboard/venue/bookings").json()["data"]

        assert len(data) == 1
        row = data[0]
        assert row["customerName"] == "Rina Wijaya"
        assert row["courtName"] == "Lapangan A"
        assert row["date"] == "2026-05-02"
        assert (row["startTime"], row["endTime"]) == ("19:00", "21:00")
        assert row["duration"] == 2

    def test_filter_by_foreign_court_is_403(self, client, rival_court, venue_setup):
        response = client.get("/api/dashboard/venue/bookings", params={"court_id": rival_court["id"]})
        assert response.status_code == 403

    def test_metrics(self, client, fake_db, court):
        now = datetime.now(timezone.utc)
        make_booking(fake_db, court["id"], now + timedelta(days=2), status="pending")
        data = client.get("/api/dashboard/venue/bookings/metrics").json()["data"]
        assert data["pendingBookings"] == 1
        assert data["totalHours"] == 16

    def test_dashboard_and_revenue(self, client, fake_db, court):
        now = datetime.now(timezone.utc)
        make_booking(fake_db, court["id"], now - timedelta(days=1), status="completed", payment_status="paid")
        make_booking(fake_db, court["id"], now - timedelta(days=2), status="confirmed", payment_status="paid")

        dashboard = client.get("/api/dashboard/venue").json()["data"]
        assert dashboard["venue"]["name"] == "Arena Senayan"
        assert dashboard["stats"]["totalRevenue"] == 150000
        assert dashboard["topCourts"][0]["courtName"] == "Lapangan A"

        revenue = client.get("/api/dashboard/venue/revenue").json()["data"]
        assert revenue["totalRevenue"] == 150000
        assert len(revenue["monthlyRevenue"]) == 6
        assert len(revenue["bookingTrends"]) == 30

    def test_dashboard_without_venue_is_404(self, client, fake_db, current_user):
        fake_db.seed("profiles", {"id": PARTNER_ID, "role": "venue_partner"})
        assert client.get("/api/dashboard/venue").status_code == 404


class TestCourts:
    def test_create_generates_unique_slug(self, client, fake_db, venue_setup):
        payload = {"name": "Lapangan A", "sport": "Futsal", "pricePerHour": 175000}
        response = client.post("/api/dashboard/venue/courts", json=payload)

        assert response.status_code == 200
        court = response.json()["data"]
        assert court["slug"] == "arena-senayan-lapangan-a-2"
        assert court["sport"] == "futsal"
        assert court["is_active"] is True
        assert court["venue_id"] == venue_setup["venue"]["id"]

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"sport": "futsal", "pricePerHour": 1}, "Nama lapangan"),
            ({"name": "B", "sport": "curling", "pricePerHour": 1}, "olahraga"),
            ({"name": "B", "sport": "futsal", "pricePerHour": 0}, "Harga"),
        ],
    )
    def test_create_validation(self, client, venue_setup, payload, message):
        response = client.post("/api/dashboard/venue/courts", json=payload)
        assert response.status_code == 400
        assert message in response.json()["error"]

    def test_update(self, client, fake_db, court):
        response = client.patch(f"/api/dashboard/venue/courts/{court['id']}", json={"pricePerHour": 200000})
        assert response.status_code == 200
        assert fake_db.row("courts", court["id"])["price_per_hour"] == 200000

    def test_update_foreign_court_is_403(self, client, venue_setup, rival_court):
        response = client.patch(f"/api/dashboard/venue/courts/{rival_court['id']}", json={"name": "Mine"})
        assert response.status_code == 403

    def test_delete_deactivates(self, client, fake_db, court):
        response = client.delete(f"/api/dashboard/venue/courts/{court['id']}")
        assert response.status_code == 200
        assert fake_db.row("courts", court["id"])["is_active"] is False

    def test_delete_with_active_bookings_is_refused(self, client, fake_db, court):
        make_booking(fake_db, court["id"], soon(), status="checked_in")
        response = client.delete(f"/api/dashboard/venue/courts/{court['id']}")
        assert response.status_code == 400
        assert fake_db.row("courts", court["id"])["is_active"] is True

    def test_delete_with_paid_upcoming_booking_is_refused(self, client, fake_db, court):
        make_booking(fake_db, court["id"], soon(48), status="completed", payment_status="paid")
        response = client.delete(f"/api/dashboard/venue/courts/{court['id']}")
        assert response.status_code == 400
        assert fake_db.row("courts", court["id"])["is_active"] is True

    def test_delete_after_played_bookings(self, client, fake_db, court):
        make_booking(fake_db, court["id"], soon(-48), status="completed", payment_status="paid")
        make_booking(fake_db, court["id"], soon(24), status="cancelled", payment_status="expired")
        response = client.delete(f"/api/dashboard/venue/courts/{court['id']}")
        assert response.status_code == 200
        assert fake_db.row("courts", court["id"])["is_active"] is False


class TestImages:
    def upload(self, client, court_id, content=b"\x89PNG fake", content_type="image/png", **form):
        return client.post(
            f"/api/dashboard/venue/courts/{court_id}/images/upload",
            files={"image": ("photo.png", content, content_type)},
            data=form,
        )

    def test_first_upload_becomes_primary(self, client, fake_db, court):
        response = self.upload(client, court["id"])

        assert response.status_code == 200
        image = response.json()["data"]["image"]
        assert image["isPrimary"] is True
        assert fake_db.row("courts", court["id"])["primary_image_url"] == image["imageUrl"]
        assert len(fake_db.storage.objects) == 1

    def test_second_upload_is_not_primary(self, client, fake_db, court):
        self.upload(client, court["id"])
        second = self.upload(client, court["id"]).json()["data"]["image"]
        assert second["isPrimary"] is False
        assert second["displayOrder"] == 1

    def test_rejects_wrong_type(self, client, court):
        response = self.upload(client, court["id"], content=b"GIF89a", content_type="image/gif")
        assert response.status_code == 400

    def test_set_primary_and_delete(self, client, fake_db, court):
        first = self.upload(client, court["id"]).json()["data"]["image"]
        second = self.upload(client, court["id"]).json()["data"]["image"]

        response = client.patch(f"/api/dashboard/venue/courts/{court['id']}/images/{second['id']}")
        assert response.json()["data"]["isPrimary"] is True
        assert fake_db.row("court_images", first["id"])["is_primary"] is False
        assert fake_db.row("courts", court["id"])["primary_image_url"] == second["imageUrl"]

        deleted = client.delete(f"/api/dashboard/venue/courts/{court['id']}/images/{second['id']}")
        assert deleted.status_code == 200
        assert fake_db.row("court_images", second["id"]) is None
        assert fake_db.row("courts", court["id"])["primary_image_url"] is None
        assert len(fake_db.storage.objects) == 1

    def test_storage_path_from_url(self):
        url = "https://x.supabase.co/storage/v1/object/public/court-images/v1/c1/1_ab.png?t=1"
        assert storage_path_from_url(url, "court-images") == "v1/c1/1_ab.png"
        assert storage_path_from_url("https://elsewhere/img.png", "court-images") is None


class TestBlackouts:
    def test_create_list_and_delete(self, client, fake_db, court):
        today = datetime.now(timezone.utc).astimezone(WIB).date()
        response = client.post(
            "/api/dashboard/venue/blackouts",
            json={
                "courtId": court["id"],
                "title": "Perawatan lantai",
                "startDate": today.isoformat(),
                "startTime": "08:00",
                "endTime": "12:00",
            },
        )
        assert response.status_code == 200
        blackout = response.json()["data"]
        assert blackout["end_date"] == today.isoformat()
        assert blackout["created_by"] == PARTNER_ID

        listed = client.get("/api/dashboard/venue/blackouts", params={"active": True}).json()["data"]
        assert [b["court_name"] for b in listed] == ["Lapangan A"]

        metrics = client.get("/api/dashboard/venue/blackouts/metrics").json()["data"]
        assert metrics["activeBlackouts"] == 1
        assert metrics["totalAffectedHours"] == 4

        assert client.delete(f"/api/dashboard/venue/blackouts/{blackout['id']}").status_code == 200
        assert fake_db.tables["court_blackouts"] == []

    def test_foreign_court_is_403(self, client, venue_setup, rival_court):
        response = client.post(
            "/api/dashboard/venue/blackouts",
            json={"courtId": rival_court["id"], "title": "x", "startDate": "2026-05-01", "scope": "full_day"},
        )
        assert response.status_code == 403

    def test_weekly_defaults_repeat_day(self):
        payload = validate_blackout_payload(
            {"title": "Liga", "scope": "full_day", "frequency": "weekly", "start_date": "2026-03-15"}
        )
        assert payload["repeat_day_of_week"] == 0
        assert payload["start_time"] is None

    @pytest.mark.parametrize(
        "data",
        [
            {"title": "", "start_date": "2026-03-15"},
            {"title": "x", "scope": "weird", "start_date": "2026-03-15"},
            {"title": "x", "scope": "full_day", "start_date": "2026-03-15", "end_date": "2026-03-01"},
            {"title": "x", "start_date": "2026-03-15", "start_time": "12:00", "end_time": "09:00"},
        ],
    )
    def test_invalid_payloads(self, data):
        with pytest.raises(BookingValidationError):
            validate_blackout_payload(data)


def test_update_settings(client, fake_db, venue_setup):
    response = client.patch("/api/dashboard/venue/settings", json={"city": "Depok", "contactPhone": "0812"})
    assert response.status_code == 200
    venue = fake_db.row("venues", venue_setup["venue"]["id"])
    assert venue["city"] == "Depok"
    assert venue["contact_phone"] == "0812"


def test_booking_view_without_court_or_profile():
    row = {"id": "b1", "start_time": "2026-05-02T12:00:00Z", "end_time": "2026-05-02T13:30:00Z", "price_total": "90000"}
    view = to_venue_booking_view(row, None, None)
    assert view.customer_name == "Unknown"
    assert view.court_name == "Unknown Court"
    assert view.duration == 2
    assert view.total_price == 90000
