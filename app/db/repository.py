"""
Repository layer for database operations.

Thin wrappers over the Supabase query builder for every CourtEase table,
view and RPC. Rows are returned as plain dicts; joins are done by callers
with a second query keyed on ids.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from supabase import Client

from app.bookings.rules import parse_timestamp
from app.bookings.status import BLOCKING_BOOKING_STATUSES, BookingStatus, PaymentStatus
from app.db.client import get_supabase_client

logger = structlog.get_logger()


def _iso(value: datetime | str) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


def escape_like(value: str) -> str:
    """Escape ILIKE wildcards so user input matches literally."""
    return "".join(f"\\{char}" if char in "\\%_" else char for char in value)


class BaseRepository:
    """Base repository with common operations."""

    table_name: str = ""

    def __init__(self, client: Client | None = None):
        self.client = client or get_supabase_client()

    def _table(self, name: str | None = None):
        return self.client.table(name or self.table_name)

    @staticmethod
    def _first(result) -> dict | None:
        if result is None or not result.data:
            return None
        return result.data[0] if isinstance(result.data, list) else result.data

    def get(self, row_id: str | UUID) -> dict | None:
        """Get a row by ID."""
        result = self._table().select("*").eq("id", str(row_id)).execute()
        return self._first(result)

    def update(self, row_id: str | UUID, **kwargs) -> dict | None:
        """Update a row by ID."""
        result = self._table().update(kwargs).eq("id", str(row_id)).execute()
        return self._first(result)


class BookingRepository(BaseRepository):
    """Repository for bookings table."""

    table_name = "bookings"

    def create(
        self,
        court_id: str,
        profile_id: str,
        start_time: datetime,
        end_time: datetime,
        price_total: int,
        payment_reference: str,
        notes: str | None = None,
    ) -> dict:
        """Create a pending booking awaiting payment."""
        data = {
            "court_id": court_id,
            "profile_id": profile_id,
            "start_time": _iso(start_time),
            "end_time": _iso(end_time),
            "status": BookingStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "payment_reference": payment_reference,
            "price_total": price_total,
            "notes": notes,
        }
        result = self._table().insert(data).execute()
        logger.info("Created booking", booking_id=result.data[0]["id"], court_id=court_id)
        return result.data[0]

    def get_for_profile(self, booking_id: str, profile_id: str) -> dict | None:
        result = (
            self._table()
            .select("*")
            .eq("id", booking_id)
            .eq("profile_id", profile_id)
            .execute()
        )
        return self._first(result)

    def get_by_payment_reference(self, payment_reference: str) -> dict | None:
        result = (
            self._table().select("*").eq("payment_reference", payment_reference).execute()
        )
        return self._first(result)

    def list_for_profile(
        self,
        profile_id: str,
        statuses: list[str] | None = None,
        court_id: str | None = None,
        upcoming_from: datetime | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """Paginated bookings of one user, newest start first. Returns (rows, total)."""
        query = self._table().select("*", count="exact").eq("profile_id", profile_id)
        if statuses:
            query = query.in_("status", statuses)
        if court_id:
            query = query.eq("court_id", court_id)
        if upcoming_from:
            query = query.gte("start_time", _iso(upcoming_from))
        result = (
            query.order("start_time", desc=True).range(offset, offset + limit - 1).execute()
        )
        return result.data or [], result.count or 0

    def list_upcoming_for_profile(self, profile_id: str, now: datetime, limit: int = 5) -> list[dict]:
        result = (
            self._table()
            .select("*")
            .eq("profile_id", profile_id)
            .gte("start_time", _iso(now))
            .order("start_time")
            .limit(limit)
            .execute()
        )
        return result.data or []

    def list_all_for_profile(self, profile_id: str) -> list[dict]:
        result = (
            self._table()
            .select("id, status, payment_status, price_total, start_time, end_time")
            .eq("profile_id", profile_id)
            .execute()
        )
        return result.data or []

    def list_for_courts(
        self,
        court_ids: list[str],
        statuses: list[str] | None = None,
        payment_statuses: list[str] | None = None,
        start_from: datetime | str | None = None,
        start_to: datetime | str | None = None,
        court_id: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict]:
        """Bookings across a set of courts with optional filters."""
        if not court_ids:
            return []
        query = self._table().select("*").in_("court_id", court_ids)
        if statuses:
            query = query.in_("status", statuses)
        if payment_statuses:
            query = query.in_("payment_status", payment_statuses)
        if start_from:
            query = query.gte("start_time", _iso(start_from))
        if start_to:
            query = query.lte("start_time", _iso(start_to))
        if court_id:
            query = query.eq("court_id", court_id)
        query = query.order("start_time", desc=descending)
        if limit:
            query = query.limit(limit)
        return query.execute().data or []

    def find_overlapping(self, court_id: str, start: datetime, end: datetime) -> list[dict]:
        """Bookings still holding the court that overlap [start, end)."""
        result = (
            self._table()
            .select("id, start_time, end_time, status")
            .eq("court_id", court_id)
            .in_("status", [s.value for s in BLOCKING_BOOKING_STATUSES])
            .lt("start_time", _iso(end))
            .gt("end_time", _iso(start))
            .execute()
        )
        return result.data or []

    def list_slots(self, court_id: str, window_start: datetime, window_end: datetime) -> list[dict]:
        """Existing reservations of a court from the court_booking_slots view."""
        result = (
            self._table("court_booking_slots")
            .select("id, start_time, end_time, status, payment_status")
            .eq("court_id", court_id)
            .gte("end_time", _iso(window_start))
            .lte("start_time", _iso(window_end))
            .order("start_time")
            .execute()
        )
        return result.data or []

    def list_stale_pending(self, created_before: datetime) -> list[dict]:
        """Pending bookings with pending payment created before the cutoff."""
        result = (
            self._table()
            .select("*")
            .eq("status", BookingStatus.PENDING.value)
            .eq("payment_status", PaymentStatus.PENDING.value)
            .lt("created_at", _iso(created_before))
            .execute()
        )
        return result.data or []

    def has_active_for_court(self, court_id: str, now: datetime) -> bool:
        """Confirmed or checked-in bookings, or paid bookings still to be played."""
        result = (
            self._table()
            .select("id, status, end_time")
            .eq("court_id", court_id)
            .in_(
                "status",
                [
                    BookingStatus.CONFIRMED.value,
                    BookingStatus.CHECKED_IN.value,
                    BookingStatus.COMPLETED.value,
                ],
            )
            .execute()
        )
        for row in result.data or []:
            if row.get("status") != BookingStatus.COMPLETED.value:
                return True
            end = parse_timestamp(row.get("end_time"))
            if end and end > now:
                return True
        return False

    def list_recent(self, limit: int = 10) -> list[dict]:
        result = self._table().select("*").order("created_at", desc=True).limit(limit).execute()
        return result.data or []

    def list_for_stats(self) -> list[dict]:
        """Every booking, reduced to the columns platform stats need."""
        result = (
            self._table()
            .select("id, court_id, status, payment_status, price_total, start_time, end_time")
            .execute()
        )
        return result.data or []


class CourtRepository(BaseRepository):
    """Repository for courts table."""

    table_name = "courts"

    def create(self, venue_id: str, **kwargs) -> dict:
        data = {"venue_id": venue_id, "is_active": True, **kwargs}
        result = self._table().insert(data).execute()
        logger.info("Created court", court_id=result.data[0]["id"], venue_id=venue_id)
        return result.data[0]

    def get_by_slug(self, slug: str) -> dict | None:
        return self._first(self._table().select("*").eq("slug", slug).execute())

    def list_by_ids(self, court_ids: list[str]) -> list[dict]:
        if not court_ids:
            return []
        return self._table().select("*").in_("id", court_ids).execute().data or []

    def list_by_venues(self, venue_ids: list[str], include_inactive: bool = True) -> list[dict]:
        if not venue_ids:
            return []
        query = self._table().select("*").in_("venue_id", venue_ids)
        if not include_inactive:
            query = query.eq("is_active", True)
        return query.order("name").execute().data or []

    def slug_exists(self, slug: str) -> bool:
        return bool(self._table().select("id").eq("slug", slug).limit(1).execute().data)

    def count_all(self) -> int:
        result = self._table().select("id", count="exact").execute()
        return result.count or 0

    def list_active_ids(self) -> list[str]:
        result = self._table().select("id").eq("is_active", True).execute()
        return [row["id"] for row in result.data or []]


class CourtSummaryRepository(BaseRepository):
    """Read-only repository for the court_summaries / active_courts views."""

    table_name = "court_summaries"

    def list_all(self, limit: int = 100) -> list[dict]:
        return self._table().select("*").order("name").limit(limit).execute().data or []

    def get_by_slug(self, slug: str) -> dict | None:
        return self._first(self._table().select("*").eq("slug", slug).execute())

    def list_by_ids(self, court_ids: list[str]) -> list[dict]:
        if not court_ids:
            return []
        return self._table().select("*").in_("id", court_ids).execute().data or []

    def top_rated(self, limit: int = 5) -> list[dict]:
        result = (
            self._table().select("*").order("average_rating", desc=True).limit(limit).execute()
        )
        return result.data or []

    def search(self, term: str, limit: int = 5) -> list[dict]:
        pattern = f"%{escape_like(term)}%"
        columns = ("name", "sport", "venue_name", "venue_city")
        result = (
            self._table()
            .select("id, slug, name, sport, venue_name, venue_city")
            .or_(",".join(f"{col}.ilike.{pattern}" for col in columns))
            .limit(limit)
            .execute()
        )
        return result.data or []

    def active_ratings(self) -> list[float]:
        result = (
            self._table("active_courts").select("average_rating").gt("average_rating", 0).execute()
        )
        return [float(row.get("average_rating") or 0) for row in result.data or []]


class VenueRepository(BaseRepository):
    """Repository for venues table."""

    table_name = "venues"

    def create(self, name: str, owner_profile_id: str, **kwargs) -> dict:
        data = {"name": name, "owner_profile_id": owner_profile_id, **kwargs}
        result = self._table().insert(data).execute()
        logger.info("Created venue", venue_id=result.data[0]["id"], owner=owner_profile_id)
        return result.data[0]

    def list_by_owner(self, owner_profile_id: str) -> list[dict]:
        result = (
            self._table().select("*").eq("owner_profile_id", owner_profile_id).order("name").execute()
        )
        return result.data or []

    def list_all(self, limit: int = 100) -> list[dict]:
        return self._table().select("*").order("name").limit(limit).execute().data or []

    def list_by_ids(self, venue_ids: list[str]) -> list[dict]:
        if not venue_ids:
            return []
        return self._table().select("*").in_("id", venue_ids).execute().data or []

    def search(self, term: str, limit: int = 5) -> list[dict]:
        pattern = f"%{escape_like(term)}%"
        result = (
            self._table()
            .select("id, slug, name, city")
            .or_(f"name.ilike.{pattern},city.ilike.{pattern}")
            .limit(limit)
            .execute()
        )
        return result.data or []

    def count_all(self) -> int:
        return self._table().select("id", count="exact").execute().count or 0

    def top_by_revenue(self, limit: int = 5) -> list[dict]:
        result = (
            self._table("venue_stats")
            .select("venue_id, venue_name, venue_city, total_bookings, total_revenue")
            .order("total_revenue", desc=True)
            .limit(limit)
            .execute()
        )
        return result.data or []


class ProfileRepository(BaseRepository):
    """Repository for profiles table."""

    table_name = "profiles"

    def find_by_email(self, email: str) -> dict | None:
        result = self._table().select("*").ilike("email", escape_like(email.strip())).execute()
        return self._first(result)

    def list_by_ids(self, profile_ids: list[str]) -> list[dict]:
        if not profile_ids:
            return []
        return self._table().select("*").in_("id", profile_ids).execute().data or []

    def update_role(self, profile_id: str, role: str) -> dict | None:
        logger.info("Updating profile role", profile_id=profile_id, role=role)
        return self.update(profile_id, role=role)

    def count_all(self) -> int:
        return self._table().select("id", count="exact").execute().count or 0


class ReviewRepository(BaseRepository):
    """Repository for court_reviews table."""

    table_name = "court_reviews"

    def get_by_booking(self, booking_id: str) -> dict | None:
        return self._first(self._table().select("*").eq("booking_id", booking_id).execute())

    def create(self, **kwargs) -> dict:
        result = self._table().insert(kwargs).execute()
        logger.info("Created review", review_id=result.data[0]["id"], booking_id=kwargs.get("booking_id"))
        return result.data[0]

    def list_by_court(self, court_id: str, limit: int = 20) -> list[dict]:
        result = (
            self._table()
            .select("*")
            .eq("court_id", court_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return result.data or []

    def list_by_thread_ids(self, thread_ids: list[str]) -> list[dict]:
        if not thread_ids:
            return []
        return self._table().select("*").in_("forum_thread_id", thread_ids).execute().data or []


class ForumRepository(BaseRepository):
    """Repository for forum_threads and its companion tables."""

    table_name = "forum_threads"

    def list_categories(self) -> list[dict]:
        return self._table("forum_categories").select("id, slug, name").order("name").execute().data or []

    def get_category_by_slug(self, slug: str) -> dict | None:
        return self._first(self._table("forum_categories").select("*").eq("slug", slug).execute())

    def list_threads(self, category_id: str | None = None, limit: int = 50) -> list[dict]:
        query = self._table().select("*")
        if category_id:
            query = query.eq("category_id", category_id)
        return query.order("created_at", desc=True).limit(limit).execute().data or []

    def get_thread_by_slug(self, slug: str) -> dict | None:
        return self._first(self._table().select("*").eq("slug", slug).execute())

    def create_thread(self, **kwargs) -> dict:
        result = self._table().insert(kwargs).execute()
        logger.info("Created forum thread", thread_id=result.data[0]["id"], slug=kwargs.get("slug"))
        return result.data[0]

    def search(self, term: str, limit: int = 5) -> list[dict]:
        pattern = f"%{escape_like(term)}%"
        result = (
            self._table()
            .select("id, slug, title, category_id")
            .ilike("title", pattern)
            .limit(limit)
            .execute()
        )
        return result.data or []

    def list_replies(self, thread_id: str) -> list[dict]:
        result = (
            self._table("forum_replies")
            .select("*")
            .eq("thread_id", thread_id)
            .order("created_at")
            .execute()
        )
        return result.data or []

    def create_reply(self, thread_id: str, author_profile_id: str, body: str) -> dict:
        result = (
            self._table("forum_replies")
            .insert({"thread_id": thread_id, "author_profile_id": author_profile_id, "body": body})
            .execute()
        )
        return result.data[0]

    def latest_activity(self, thread_ids: list[str]) -> list[dict]:
        if not thread_ids:
            return []
        result = (
            self._table("forum_thread_latest_activity")
            .select("thread_id, latest_reply_body, latest_reply_created_at")
            .in_("thread_id", thread_ids)
            .execute()
        )
        return result.data or []


class PartnerApplicationRepository(BaseRepository):
    """Repository for venue_partner_applications table."""

    table_name = "venue_partner_applications"

    def create(self, **kwargs) -> dict:
        data = {"status": "pending", **kwargs}
        result = self._table().insert(data).execute()
        logger.info("Created partner application", application_id=result.data[0]["id"])
        return result.data[0]

    def list(self, status: str | None = None, limit: int = 100) -> list[dict]:
        query = self._table().select("*")
        if status:
            query = query.eq("status", status)
        return query.order("created_at", desc=True).limit(limit).execute().data or []

    def count_by_status(self, status: str) -> int:
        result = self._table().select("id", count="exact").eq("status", status).execute()
        return result.count or 0


class BlackoutRepository(BaseRepository):
    """Repository for court_blackouts table."""

    table_name = "court_blackouts"

    def list_for_courts(
        self,
        court_ids: list[str],
        court_id: str | None = None,
        frequencies: list[str] | None = None,
        active_on: str | None = None,
        ending_from: str | None = None,
    ) -> list[dict]:
        if not court_ids:
            return []
        query = self._table().select("*").in_("court_id", court_ids)
        if court_id:
            query = query.eq("court_id", court_id)
        if frequencies:
            query = query.in_("frequency", frequencies)
        if active_on:
            query = query.lte("start_date", active_on).gte("end_date", active_on)
        if ending_from:
            query = query.gte("end_date", ending_from)
        return query.order("start_date").execute().data or []

    def create(self, **kwargs) -> dict:
        result = self._table().insert(kwargs).execute()
        logger.info("Created blackout", blackout_id=result.data[0]["id"], court_id=kwargs.get("court_id"))
        return result.data[0]

    def delete(self, blackout_id: str) -> None:
        self._table().delete().eq("id", blackout_id).execute()


class CourtImageRepository(BaseRepository):
    """Repository for court_images table and the court image storage bucket."""

    table_name = "court_images"

    def list_for_court(self, court_id: str) -> list[dict]:
        try:
            result = self.client.rpc("get_court_images", {"p_court_id": court_id}).execute()
            if result.data:
                return result.data
        except Exception as e:
            logger.warning("get_court_images RPC failed, reading table", court_id=court_id, error=str(e))
        result = (
            self._table()
            .select("*")
            .eq("court_id", court_id)
            .order("display_order")
            .execute()
        )
        return result.data or []

    def create(self, court_id: str, image_url: str, **kwargs) -> dict:
        data = {"court_id": court_id, "image_url": image_url, **kwargs}
        result = self._table().insert(data).execute()
        return result.data[0]

    def clear_primary(self, court_id: str) -> None:
        self._table().update({"is_primary": False}).eq("court_id", court_id).execute()

    def delete(self, image_id: str) -> None:
        self._table().delete().eq("id", image_id).execute()

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        """Upload bytes to storage and return the public URL."""
        storage = self.client.storage.from_(bucket)
        storage.upload(path, content, {"content-type": content_type, "upsert": "false"})
        return storage.get_public_url(path)

    def remove_object(self, bucket: str, path: str) -> None:
        self.client.storage.from_(bucket).remove([path])


class ReportRepository(BaseRepository):
    """Aggregate RPCs used by the admin dashboard."""

    def _rpc(self, name: str) -> list[dict]:
        try:
            return self.client.rpc(name, {}).execute().data or []
        except Exception as e:
            logger.error("Report RPC failed", rpc=name, error=str(e))
            return []

    def monthly_revenue(self) -> list[dict]:
        return self._rpc("get_monthly_revenue")

    def venue_growth(self) -> list[dict]:
        return self._rpc("get_venue_growth")

    def booking_trends(self) -> list[dict]:
        return self._rpc("get_booking_trends")
