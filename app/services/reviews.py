"""
Court reviews. A submitted review is mirrored as a thread in the forum's
reviews category so players can discuss it.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from supabase import Client

from app.bookings.rules import WIB, can_review, normalize_rating, parse_timestamp
from app.db.repository import (
    BookingRepository,
    CourtRepository,
    ForumRepository,
    ReviewRepository,
    VenueRepository,
)
from app.errors import BookingValidationError, CourtEaseError, NotFoundError
from app.services.forum import EXCERPT_LENGTH, random_suffix

logger = structlog.get_logger()

REVIEW_CATEGORY_SLUG = "reviews"

DAY_NAMES = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]
MONTH_NAMES = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]


def format_booking_window(start_time: Any, end_time: Any) -> str:
    """'Senin, 5 Januari 2026 • 19.00 - 20.00 WIB'."""
    start = parse_timestamp(start_time)
    end = parse_timestamp(end_time)
    if start is None or end is None:
        return "-"
    start, end = start.astimezone(WIB), end.astimezone(WIB)
    date_label = (
        f"{DAY_NAMES[start.weekday()]}, {start.day} {MONTH_NAMES[start.month - 1]} {start.year}"
    )
    return f"{date_label} • {start:%H.%M} - {end:%H.%M} WIB"


def compose_review_thread(
    court: dict,
    venue: dict | None,
    rating: float,
    comment: str | None,
    start_time: Any,
    end_time: Any,
) -> dict[str, Any]:
    """Title, body, excerpt and tags of the forum thread mirroring a review."""
    court_name = court.get("name") or "Lapangan"
    rating_label = f"{rating:.1f} ★"

    lines = [f"Rating: {rating_label}", f"Jadwal bermain: {format_booking_window(start_time, end_time)}"]
    if comment:
        lines.extend(["", comment])

    tags = ["review", (court.get("sport") or "olahraga").lower()]
    if venue and venue.get("name"):
        tags.append(venue["name"].lower())

    return {
        "title": f"Review {court_name} — {rating_label}",
        "body": "\n".join(lines),
        "excerpt": comment[:EXCERPT_LENGTH] if comment else f"{court_name} dinilai {rating_label}",
        "tags": tags,
    }


class ReviewService:
    def __init__(self, client: Client):
        self.bookings = BookingRepository(client)
        self.courts = CourtRepository(client)
        self.venues = VenueRepository(client)
        self.reviews = ReviewRepository(client)
        self.forum = ForumRepository(client)

    def submit_review(
        self,
        booking_id: str,
        profile_id: str,
        rating: Any,
        comment: Any = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Create or update the review of a completed booking and its forum thread."""
        if not booking_id:
            raise BookingValidationError("ID booking tidak valid.")

        normalized = normalize_rating(rating)
        comment = comment.strip() if isinstance(comment, str) and comment.strip() else None

        booking = self.bookings.get_for_profile(booking_id, profile_id)
        if not booking:
            raise NotFoundError("Booking tidak ditemukan atau bukan milik kamu.")
        if not can_review(booking):
            raise BookingValidationError("Review hanya bisa dikirim setelah sesi bermain selesai.")

        existing = self.reviews.get_by_booking(booking["id"])
        if existing:
            review = self.reviews.update(existing["id"], rating=normalized, comment=comment)
            if not review:
                raise CourtEaseError("Gagal memperbarui review.", status_code=500)
            review_id = existing["id"]
            thread_id = review.get("forum_thread_id") or existing.get("forum_thread_id")
        else:
            review = self.reviews.create(
                court_id=booking["court_id"],
                profile_id=profile_id,
                booking_id=booking["id"],
                rating=normalized,
                comment=comment,
            )
            review_id = review["id"]
            thread_id = None

        court = self.courts.get(booking["court_id"]) or {}
        venue = self.venues.get(court["venue_id"]) if court.get("venue_id") else None
        thread = compose_review_thread(
            court, venue, normalized, comment, booking.get("start_time"), booking.get("end_time")
        )

        if thread_id:
            try:
                self.forum.update(thread_id, **thread)
            except Exception as e:
                logger.error("Failed to update review thread", thread_id=thread_id, error=str(e))
        else:
            category = self.forum.get_category_by_slug(REVIEW_CATEGORY_SLUG)
            slug_base = court.get("slug") or f"booking-{booking['id']}"
            try:
                created = self.forum.create_thread(
                    slug=f"review-{slug_base}-{random_suffix()}",
                    category_id=category["id"] if category else None,
                    author_profile_id=profile_id,
                    **thread,
                )
            except Exception as e:
                logger.error("Failed to create review thread", review_id=review_id, error=str(e))
                raise CourtEaseError(
                    "Review tersimpan, tetapi gagal membagikan ke forum.", status_code=500
                )
            thread_id = created["id"]
            self.reviews.update(review_id, forum_thread_id=thread_id)

        stamp = (now or datetime.now(timezone.utc)).isoformat()
        self.bookings.update(booking["id"], review_submitted_at=stamp)
        logger.info("Review submitted", booking_id=booking["id"], review_id=review_id, rating=normalized)

        return {
            "review_id": review_id,
            "forum_thread_id": thread_id,
            "rating": normalized,
            "comment": comment,
        }
