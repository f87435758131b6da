"""
API tests for player bookings.

Usage:
    pytest testing/test_api_bookings.py
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.api.middleware.auth import get_current_user
from app.main import app
from testing.conftest import make_booking


def upcoming(hours: float) -> datetime:
    base = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    return base + timedelta(hours=hours)


@pytest.fixture
def court(venue_setup):
    return venue_setup["court"]


class TestStartBooking:
    def test_creates_pending_booking_with_snap_session(self, client, fake_db, midtrans, court):
        start = upcoming(48)
        response = client.post(
            "/api/bookings/start",
            json={
                "courtId": court["id"],
                "startTime": start.isoformat(),
                "endTime": (start + timedelta(hours=2)).isoformat(),
                "notes": "  Bawa bola sendiri ",
            },
            headers={"origin": "https://courtease.id"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["payment"]["token"] == "snap-token-123"
        assert data["payment"]["expiresAt"]

        booking = fake_db.row("bookings", data["bookingId"])
        assert booking["status"] == "pending"
        assert booking["payment_status"] == "pending"
        assert booking["price_total"] == 300000
        assert booking["notes"] == "Bawa bola sendiri"
        assert booking["payment_token"] == "snap-token-123"
        assert booking["payment_reference"].startswith("BOOK-")

        snap = midtrans.snap_payloads()[0]
        assert snap["transaction_details"]["order_id"] == booking["payment_reference"]
        assert snap["transaction_details"]["gross_amount"] == 300000
        assert snap["customer_details"]["first_name"] == "Rina Wijaya"
        assert snap["callbacks"]["finish"] == f"https://courtease.id/dashboard/user/bookings/{booking['id']}"

    def test_accepts_snake_case_body(self, client, court):
        start = upcoming(30)
        response = client.post(
            "/api/bookings/start",
            json={
                "court_id": court["id"],
                "start_time": start.isoformat(),
                "end_time": (start + timedelta(hours=1)).isoformat(),
            },
        )
        assert response.status_code == 200

    def test_overlap_is_409(self, client, fake_db, midtrans, court):
        start = upcoming(24)
        make_booking(fake_db, court["id"], start, hours=2, status="confirmed", payment_status="paid")

        response = client.post(
            "/api/bookings/start",
            json={
                "courtId": court["id"],
                "startTime": (start + timedelta(hours=1)).isoformat(),
                "endTime": (start + timedelta(hours=3)).isoformat(),
            },
        )

        assert response.status_code == 409
        assert response.json() == {"success": False, "error": "Jadwal sudah dibooking. Pilih waktu lain."}
        assert midtrans.requests == []

    def test_paid_booking_blocks_slot(self, client, fake_db, midtrans, court):
        start = upcoming(48)
        make_booking(fake_db, court["id"], start, status="completed", payment_status="paid")

        response = client.post(
            "/api/bookings/start",
            json={
                "courtId": court["id"],
                "startTime": start.isoformat(),
                "endTime": (start + timedelta(hours=1)).isoformat(),
            },
        )

        assert response.status_code == 409
        assert len(fake_db.tables["bookings"]) == 1
        assert midtrans.requests == []

    def test_inactive_court_is_400(self, client, fake_db, midtrans, court):
        fake_db.row("courts", court["id"])["is_active"] = False
        start = upcoming(24)

        response = client.post(
            "/api/bookings/start",
            json={
                "courtId": court["id"],
                "startTime": start.isoformat(),
                "endTime": (start + timedelta(hours=1)).isoformat(),
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Lapangan sedang tidak tersedia untuk booking."
        assert fake_db.tables["bookings"] == []
        assert midtrans.requests == []

    def test_cancelled_booking_does_not_block(self, client, fake_db, court):
        start = upcoming(24)
        make_booking(fake_db, court["id"], start, status="cancelled", payment_status="expired")
        response = client.post(
            "/api/bookings/start",
            json={
                "courtId": court["id"],
                "startTime": start.isoformat(),
                "endTime": (start + timedelta(hours=1)).isoformat(),
            },
        )
        assert response.status_code == 200

    def test_gateway_failure_cancels_booking(self, client, fake_db, midtrans, court):
        midtrans.snap_response = (500, {"error_messages": ["internal"]})
        start = upcoming(24)

        response = client.post(
            "/api/bookings/start",
            json={
                "courtId": court["id"],
                "startTime": start.isoformat(),
                "endTime": (start + timedelta(hours=1)).isoformat(),
            },
        )

        assert response.status_code == 502
        assert response.json()["success"] is False
        [booking] = fake_db.tables["bookings"]
        assert booking["status"] == "cancelled"
        assert booking["payment_status"] == "cancelled"

    def test_past_start_is_400(self, client, court):
        start = upcoming(-3)
        response = client.post(
            "/api/bookings/start",
            json={
                "courtId": court["id"],
                "startTime": start.isoformat(),
                "endTime": (start + timedelta(hours=1)).isoformat(),
            },
        )
        assert response.status_code == 400
        assert "sudah lewat" in response.json()["error"]

    def test_unknown_court_is_404(self, client, venue_setup):
        start = upcoming(24)
        response = client.post(
            "/api/bookings/start",
            json={"courtId": "missing", "startTime": start.isoformat(), "endTime": (start + timedelta(hours=1)).isoformat()},
        )
        assert response.status_code == 404

    def test_missing_court_id_is_400(self, client):
        response = client.post("/api/bookings/start", json={})
        assert response.status_code == 400

    def test_requires_login(self, client, court):
        app.dependency_overrides.pop(get_current_user)
        response = client.post("/api/bookings/start", json={"courtId": court["id"]})
        assert response.status_code == 401


class TestReadBookings:
    def test_list_is_paginated_and_scoped(self, client, fake_db, court):
        for offset in (24, 48, 72):
            make_booking(fake_db, court["id"], upcoming(offset))
        make_booking(fake_db, court["id"], upcoming(24), profile_id="someone-else")

        response = client.get("/api/bookings", params={"limit": 2})

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["bookings"]) == 2
        assert data["pagination"] == {"limit": 2, "offset": 0, "total": 3, "hasMore": True}
        assert data["bookings"][0]["court"]["venueName"] == "Arena Senayan"
        assert data["bookings"][0]["startTime"] > data["bookings"][1]["startTime"]

    def test_list_filters_by_status(self, client, fake_db, court):
        make_booking(fake_db, court["id"], upcoming(24), status="confirmed")
        make_booking(fake_db, court["id"], upcoming(48))
        data = client.get("/api/bookings", params={"status": "confirmed"}).json()["data"]
        assert [b["status"] for b in data["bookings"]] == ["confirmed"]

    def test_detail_syncs_with_gateway(self, client, fake_db, midtrans, court):
        booking = make_booking(fake_db, court["id"], upcoming(24), payment_reference="BOOK-9-9")
        midtrans.statuses["BOOK-9-9"] = {"transaction_status": "expire"}

        response = client.get(f"/api/bookings/{booking['id']}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "cancelled"
        assert data["paymentStatus"] == "expired"
        assert fake_db.row("bookings", booking["id"])["status"] == "cancelled"

    def test_detail_of_other_user_is_404(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], upcoming(24), profile_id="someone-else")
        assert client.get(f"/api/bookings/{booking['id']}").status_code == 404

    def test_explicit_payment_status_poll(self, client, fake_db, midtrans, court):
        booking = make_booking(fake_db, court["id"], upcoming(24), payment_reference="BOOK-7-7")
        midtrans.statuses["BOOK-7-7"] = {"transaction_status": "capture", "fraud_status": "challenge"}

        result = client.get(f"/api/bookings/{booking['id']}/payment-status").json()

        assert result["status_updated"] is True
        assert result["booking"]["payment_status"] == "waiting_confirmation"


class TestCancel:
    def test_cancel_ahead_of_cutoff(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], upcoming(5), status="confirmed", payment_status="paid")
        response = client.post(f"/api/bookings/{booking['id']}/cancel")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"
        assert fake_db.row("bookings", booking["id"])["payment_status"] == "cancelled"

    def test_cancel_inside_cutoff_is_400(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], upcoming(1))
        response = client.post(f"/api/bookings/{booking['id']}/cancel")

        assert response.status_code == 400
        assert fake_db.row("bookings", booking["id"])["status"] == "pending"

    def test_cancel_checked_in_is_400(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], upcoming(5), status="checked_in")
        assert client.post(f"/api/bookings/{booking['id']}/cancel").status_code == 400


class TestReview:
    def test_review_creates_forum_thread(self, client, fake_db, court):
        category = fake_db.add("forum_categories", {"slug": "reviews", "name": "Review Lapangan"})
        booking = make_booking(fake_db, court["id"], upcoming(-5), status="completed", payment_status="paid")

        response = client.post(
            f"/api/bookings/{booking['id']}/review",
            json={"rating": 4.3, "comment": " Lapangan bersih "},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["rating"] == 4.5
        assert data["comment"] == "Lapangan bersih"

        [thread] = fake_db.tables["forum_threads"]
        assert thread["id"] == data["forum_thread_id"]
        assert thread["category_id"] == category["id"]
        assert thread["slug"].startswith("review-arena-senayan-lapangan-a-")
        assert "Rating: 4.5 ★" in thread["body"]
        assert "futsal" in thread["tags"]

        [review] = fake_db.tables["court_reviews"]
        assert review["forum_thread_id"] == thread["id"]
        assert fake_db.row("bookings", booking["id"])["review_submitted_at"]

    def test_second_review_updates_existing(self, client, fake_db, court):
        fake_db.add("forum_categories", {"slug": "reviews", "name": "Review Lapangan"})
        booking = make_booking(fake_db, court["id"], upcoming(-5), status="completed", payment_status="paid")

        first = client.post(f"/api/bookings/{booking['id']}/review", json={"rating": 3}).json()["data"]
        second = client.post(f"/api/bookings/{booking['id']}/review", json={"rating": 5, "comment": "Ok"}).json()["data"]

        assert second["review_id"] == first["review_id"]
        assert second["forum_thread_id"] == first["forum_thread_id"]
        assert len(fake_db.tables["court_reviews"]) == 1
        assert fake_db.tables["court_reviews"][0]["rating"] == 5.0
        assert len(fake_db.tables["forum_threads"]) == 1

    def test_unfinished_booking_cannot_be_reviewed(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], upcoming(24), status="confirmed")
        response = client.post(f"/api/bookings/{booking['id']}/review", json={"rating": 4})
        assert response.status_code == 400

    def test_invalid_rating(self, client, fake_db, court):
        booking = make_booking(fake_db, court["id"], upcoming(-5), status="completed")
        response = client.post(f"/api/bookings/{booking['id']}/review", json={"rating": 9})
        assert response.status_code == 400


def test_user_dashboard(client, fake_db, court):
    make_booking(fake_db, court["id"], upcoming(24), status="confirmed", payment_status="paid")
    make_booking(fake_db, court["id"], upcoming(-48), status="completed", payment_status="paid")

    data = client.get("/api/dashboard/user").json()["data"]

    assert len(data["bookings"]) == 1
    assert data["stats"]["totalBookings"] == 2
    assert data["stats"]["totalSpent"] == 300000
    assert data["stats"]["activeBookings"] == 1
