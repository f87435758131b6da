"""
Booking orchestration for players: start a booking with a Snap payment,
list and read bookings (synchronised with the gateway), cancel, and the
user dashboard.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

import structlog
from supabase import Client

from app.bookings import rules
from app.bookings.status import BookingStatus, PaymentStatus
from app.config import Settings, get_settings
from app.db.repository import (
    BookingRepository,
    CourtRepository,
    CourtSummaryRepository,
    ProfileRepository,
    ReviewRepository,
    VenueRepository,
)
from app.errors import BookingConflictError, BookingValidationError, CourtEaseError, NotFoundError
from app.models.booking import (
    BookingCourt,
    BookingPage,
    BookingReview,
    BookingStarted,
    BookingView,
    Pagination,
    PaymentSession,
)
from app.models.catalog import CourtSummary
from app.payments.midtrans import MidtransService, MidtransTransactionError
from app.services.analytics import user_stats
from app.services.payments import PaymentSyncService

logger = structlog.get_logger()


class BookingService:
    """Player-facing booking operations."""

    def __init__(
        self,
        client: Client,
        gateway: MidtransService,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.gateway = gateway
        self.bookings = BookingRepository(client)
        self.courts = CourtRepository(client)
        self.summaries = CourtSummaryRepository(client)
        self.venues = VenueRepository(client)
        self.profiles = ProfileRepository(client)
        self.reviews = ReviewRepository(client)
        self.payments = PaymentSyncService(client, gateway)

    def _court_views(self, court_ids: list[str]) -> dict[str, BookingCourt]:
        courts = self.courts.list_by_ids(sorted(set(court_ids)))
        venues = {
            venue["id"]: venue
            for venue in self.venues.list_by_ids(
                sorted({c["venue_id"] for c in courts if c.get("venue_id")})
            )
        }
        views = {}
        for court in courts:
            venue = venues.get(court.get("venue_id"), {})
            views[court["id"]] = BookingCourt(
                id=court["id"],
                slug=court.get("slug"),
                name=court.get("name") or "",
                sport=court.get("sport"),
                price_per_hour=float(court.get("price_per_hour") or 0),
                venue_name=venue.get("name"),
                venue_city=venue.get("city"),
                venue_address=venue.get("address"),
            )
        return views

    async def start_booking(
        self,
        profile_id: str,
        email: str | None,
        court_id: str,
        start_time: Any,
        end_time: Any,
        notes: str | None = None,
        origin: str | None = None,
        now: datetime | None = None,
    ) -> BookingStarted:
        """
        Create a pending booking and open a Snap transaction for it.

        When the gateway refuses the transaction the booking is cancelled
        and a 502 is raised.
        """
        now = now or datetime.now(timezone.utc)

        if not court_id:
            raise CourtEaseError("ID lapangan tidak ditemukan.", status_code=400)

        court = self.courts.get(court_id)
        if not court:
            raise NotFoundError("Lapangan tidak ditemukan.")
        if not court.get("is_active", True):
            raise BookingValidationError("Lapangan sedang tidak tersedia untuk booking.")

        start = rules.parse_timestamp(start_time)
        end = rules.parse_timestamp(end_time)
        rules.validate_schedule(start, end, now, self.settings.booking_horizon_months)
        price_total = rules.compute_price_total(court.get("price_per_hour"), start, end)

        if self.bookings.find_overlapping(court["id"], start, end):
            raise BookingConflictError("Jadwal sudah dibooking. Pilih waktu lain.")

        profile = self.profiles.get(profile_id) or {}
        notes = notes.strip() if isinstance(notes, str) and notes.strip() else None
        reference = rules.generate_payment_reference(now)

        booking = self.bookings.create(
            court_id=court["id"],
            profile_id=profile_id,
            start_time=start.astimezone(timezone.utc),
            end_time=end.astimezone(timezone.utc),
            price_total=price_total,
            payment_reference=reference,
            notes=notes,
        )

        origin = (origin or self.settings.app_url).rstrip("/")
        try:
            transaction = await self.gateway.create_transaction(
                order_id=reference,
                amount=price_total,
                court_name=court.get("name"),
                customer={
                    "first_name": profile.get("full_name")
                    or (email.split("@")[0] if email else None),
                    "email": email,
                },
                success_redirect_url=f"{origin}/dashboard/user/bookings/{booking['id']}",
            )
        except MidtransTransactionError as e:
            logger.error("Failed to start payment", booking_id=booking["id"], error=e.message, detail=e.detail)
            self.bookings.update(booking["id"], **rules.cancellation_changes())
            raise CourtEaseError(e.message, status_code=502)

        expires_at = rules.payment_expires_at(now, self.settings.payment_window_hours).isoformat()
        try:
            self.bookings.update(
                booking["id"],
                payment_token=transaction.token,
                payment_redirect_url=transaction.redirect_url,
                payment_expired_at=expires_at,
            )
        except Exception as e:
            logger.error("Failed to store payment metadata", booking_id=booking["id"], error=str(e))

        logger.info("Booking started", booking_id=booking["id"], order_id=reference, amount=price_total)
        return BookingStarted(
            booking_id=booking["id"],
            payment=PaymentSession(
                token=transaction.token,
                redirect_url=transaction.redirect_url,
                expires_at=expires_at,
            ),
        )

    def list_bookings(
        self,
        profile_id: str,
        status: str | None = None,
        court_id: str | None = None,
        upcoming: bool = False,
        limit: int = 10,
        offset: int = 0,
    ) -> BookingPage:
        rows, total = self.bookings.list_for_profile(
            profile_id,
            statuses=[status] if status else None,
            court_id=court_id,
            upcoming_from=datetime.now(timezone.utc) if upcoming else None,
            limit=limit,
            offset=offset,
        )
        courts = self._court_views([row["court_id"] for row in rows if row.get("court_id")])
        return BookingPage(
            bookings=[BookingView.from_row(row, courts.get(row.get("court_id"))) for row in rows],
            pagination=Pagination(
                limit=limit,
                offset=offset,
                total=total,
                has_more=offset + limit < total,
            ),
        )

    async def get_booking(self, booking_id: str, profile_id: str) -> BookingView:
        """Booking detail for its owner, with the payment status refreshed."""
        row = self.bookings.get_for_profile(booking_id, profile_id)
        if not row:
            raise NotFoundError("Booking tidak ditemukan atau bukan milik kamu.")

        row = await self.payments.sync_booking(row)
        courts = self._court_views([row["court_id"]] if row.get("court_id") else [])

        review_row = self.reviews.get_by_booking(row["id"])
        review = (
            BookingReview(
                id=review_row["id"],
                rating=float(review_row.get("rating") or 0),
                comment=review_row.get("comment"),
                forum_thread_id=review_row.get("forum_thread_id"),
            )
            if review_row
            else None
        )
        return BookingView.from_row(row, courts.get(row.get("court_id")), review)

    def cancel_booking(self, booking_id: str, profile_id: str, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        booking = self.bookings.get_for_profile(booking_id, profile_id)
        if not booking:
            raise NotFoundError("Booking tidak ditemukan atau bukan milik kamu.")

        rules.ensure_cancellable(booking, now, self.settings.cancellation_cutoff_hours)
        self.bookings.update(booking_id, **rules.cancellation_changes())
        logger.info("Booking cancelled by owner", booking_id=booking_id)

        return {
            "booking_id": booking_id,
            "status": BookingStatus.CANCELLED.value,
            "payment_status": PaymentStatus.CANCELLED.value,
        }

    async def user_dashboard(self, profile_id: str) -> dict[str, Any]:
        """Upcoming bookings (synchronised), recommended courts and totals."""
        now = datetime.now(timezone.utc)
        upcoming = self.bookings.list_upcoming_for_profile(profile_id, now)
        synced = await asyncio.gather(*(self.payments.sync_booking(row) for row in upcoming))
        courts = self._court_views([row["court_id"] for row in synced if row.get("court_id")])

        try:
            recommended = [CourtSummary.from_row(row) for row in self.summaries.top_rated(3)]
        except Exception as e:
            logger.error("Failed to fetch recommended courts", error=str(e))
            recommended = []

        return {
            "bookings": [
                BookingView.from_row(row, courts.get(row.get("court_id"))).to_api() for row in synced
            ],
            "recommendedCourts": [court.to_api() for court in recommended],
            "stats": user_stats(self.bookings.list_all_for_profile(profile_id)).to_api(),
        }
