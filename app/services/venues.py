"""
Venue management for venue partners.

Every operation resolves the caller's venues first and refuses to touch
courts, bookings, images or blackouts outside them.
"""

import random
import string
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import structlog
from supabase import Client

from app.bookings.rules import WIB, apply_venue_action, duration_hours, parse_timestamp
from app.bookings.status import BookingStatus, PaymentStatus, normalize_booking_status, normalize_payment_status
from app.config import Settings, get_settings
from app.db.repository import (
    BlackoutRepository,
    BookingRepository,
    CourtImageRepository,
    CourtRepository,
    ProfileRepository,
    VenueRepository,
)
from app.errors import BookingValidationError, NotFoundError, PermissionDeniedError
from app.models.booking import VenueBookingView
from app.models.catalog import CourtImage
from app.models.dashboard import BlackoutMetrics, VenueBookingMetrics, VenueRevenueReport
from app.services import analytics
from app.services.forum import slugify

logger = structlog.get_logger()

SPORTS = ("futsal", "basketball", "soccer", "volleyball", "badminton", "tennis", "padel")
COURT_FIELDS = ("name", "sport", "surface", "price_per_hour", "capacity", "facilities", "description", "is_active")
VENUE_SETTINGS_FIELDS = (
    "name",
    "city",
    "district",
    "address",
    "latitude",
    "longitude",
    "description",
    "contact_phone",
    "contact_email",
)
BLACKOUT_SCOPES = ("time_range", "full_day")
BLACKOUT_FREQUENCIES = ("once", "daily", "weekly", "monthly")
IMAGE_TYPES = {"image/jpeg": "jpg", "image/jpg": "jpg", "image/png": "png", "image/webp": "webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def _local(value: Any) -> datetime | None:
    parsed = parse_timestamp(value)
    return parsed.astimezone(WIB) if parsed else None


def to_venue_booking_view(row: dict, court: dict | None, profile: dict | None) -> VenueBookingView:
    """Project a booking row for the venue bookings table (times in WIB)."""
    start = _local(row.get("start_time"))
    end = _local(row.get("end_time"))
    created = _local(row.get("created_at"))
    court = court or {}
    profile = profile or {}
    return VenueBookingView(
        id=row["id"],
        customer_name=profile.get("full_name") or "Unknown",
        customer_email=profile.get("email"),
        court_name=court.get("name") or "Unknown Court",
        court_type=court.get("sport") or "Unknown",
        date=start.date().isoformat() if start else "",
        start_time=f"{start:%H:%M}" if start else "",
        end_time=f"{end:%H:%M}" if end else "",
        duration=analytics.round_half_up(duration_hours(start, end)) if start and end else 0,
        total_price=float(row.get("price_total") or 0),
        status=normalize_booking_status(row.get("status")).value,
        payment_status=normalize_payment_status(row.get("payment_status")).value,
        booking_date=created.date().isoformat() if created else None,
        notes=row.get("notes"),
        checked_in_at=row.get("checked_in_at"),
        completed_at=row.get("completed_at"),
    )


def validate_court_payload(data: dict[str, Any], partial: bool = False) -> dict[str, Any]:
    """Keep known court columns and check name, sport and price."""
    payload = {key: data[key] for key in COURT_FIELDS if key in data}

    if not partial or "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise BookingValidationError("Nama lapangan wajib diisi.")
        payload["name"] = name

    if not partial or "sport" in payload:
        sport = str(payload.get("sport") or "").strip().lower()
        if sport not in SPORTS:
            raise BookingValidationError("Jenis olahraga tidak valid.")
        payload["sport"] = sport

    if not partial or "price_per_hour" in payload:
        try:
            price = float(payload.get("price_per_hour"))
        except (TypeError, ValueError):
            price = 0
        if price <= 0:
            raise BookingValidationError("Harga per jam harus lebih dari 0.")
        payload["price_per_hour"] = price

    if "facilities" in payload and not isinstance(payload["facilities"], list):
        payload["facilities"] = []
    return payload


def validate_blackout_payload(data: dict[str, Any]) -> dict[str, Any]:
    title = str(data.get("title") or "").strip()
    if not title:
        raise BookingValidationError("Judul blackout wajib diisi.")

    scope = data.get("scope") or "time_range"
    if scope not in BLACKOUT_SCOPES:
        raise BookingValidationError("Cakupan blackout tidak valid.")

    frequency = data.get("frequency") or "once"
    if frequency not in BLACKOUT_FREQUENCIES:
        raise BookingValidationError("Frekuensi blackout tidak valid.")

    try:
        start_date = date.fromisoformat(str(data.get("start_date")))
        end_date = date.fromisoformat(str(data.get("end_date") or data.get("start_date")))
    except ValueError:
        raise BookingValidationError("Tanggal blackout tidak valid.")
    if end_date < start_date:
        raise BookingValidationError("Tanggal selesai harus setelah tanggal mulai.")

    start_time = end_time = None
    if scope == "time_range":
        try:
            start_time = time.fromisoformat(str(data.get("start_time")))
            end_time = time.fromisoformat(str(data.get("end_time")))
        except ValueError:
            raise BookingValidationError("Jam blackout tidak valid.")
        if end_time <= start_time:
            raise BookingValidationError("Jam selesai harus setelah jam mulai.")

    repeat_day = data.get("repeat_day_of_week")
    if frequency == "weekly":
        if repeat_day is None:
            repeat_day = (start_date.weekday() + 1) % 7
        if not isinstance(repeat_day, int) or not 0 <= repeat_day <= 6:
            raise BookingValidationError("Hari pengulangan tidak valid.")
    else:
        repeat_day = None

    return {
        "title": title,
        "notes": str(data.get("notes") or "").strip() or None,
        "scope": scope,
        "frequency": frequency,
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "start_time": start_time.strftime("%H:%M") if start_time else None,
        "end_time": end_time.strftime("%H:%M") if end_time else None,
        "repeat_day_of_week": repeat_day,
    }


def storage_path_from_url(url: str, bucket: str) -> str | None:
    marker = f"/{bucket}/"
    if not url or marker not in url:
        return None
    return url.split(marker, 1)[1].split("?", 1)[0]


class VenueService:
    def __init__(self, client: Client, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.venues = VenueRepository(client)
        self.courts = CourtRepository(client)
        self.bookings = BookingRepository(client)
        self.profiles = ProfileRepository(client)
        self.images = CourtImageRepository(client)
        self.blackouts = BlackoutRepository(client)

    # ═══════════════════════════════════════════════════════════════════════════
    # Ownership
    # ═══════════════════════════════════════════════════════════════════════════

    def _primary_venue(self, profile_id: str) -> dict:
        venues = self.venues.list_by_owner(profile_id)
        if not venues:
            raise NotFoundError("Venue tidak ditemukan")
        return venues[0]

    def _owned_courts(self, profile_id: str) -> list[dict]:
        venues = self.venues.list_by_owner(profile_id)
        return self.courts.list_by_venues([v["id"] for v in venues])

    def _owned_court(self, profile_id: str, court_id: str) -> tuple[dict, dict]:
        court = self.courts.get(court_id)
        if not court:
            raise NotFoundError("Lapangan tidak ditemukan")
        venue = self.venues.get(court["venue_id"]) if court.get("venue_id") else None
        if not venue or venue.get("owner_profile_id") != profile_id:
            raise PermissionDeniedError("Akses ditolak: Lapangan tidak termasuk dalam venue Anda")
        return court, venue

    # ═══════════════════════════════════════════════════════════════════════════
    # Bookings
    # ═══════════════════════════════════════════════════════════════════════════

    def update_booking_status(
        self,
        profile_id: str,
        booking_id: str,
        action: str,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Check a player in, or mark the session completed."""
        if not booking_id:
            raise BookingValidationError("ID booking tidak valid.")
        now = now or datetime.now(timezone.utc)

        booking = self.bookings.get(booking_id)
        if not booking:
            raise NotFoundError("Booking tidak ditemukan.")

        court = self.courts.get(booking["court_id"]) if booking.get("court_id") else None
        venue = self.venues.get(court["venue_id"]) if court and court.get("venue_id") else None
        if not venue or venue.get("owner_profile_id") != profile_id:
            raise PermissionDeniedError("Kamu tidak memiliki akses ke booking ini.")

        result = apply_venue_action(booking, action, now)
        if result.changes:
            self.bookings.update(booking_id, **result.changes)
            logger.info("Venue booking action applied", booking_id=booking_id, action=action, status=result.status.value)

        stamp_key = "checked_in_at" if action == "check_in" else "completed_at"
        return {"status": result.status.value, stamp_key: result.timestamp or booking.get(stamp_key)}

    def list_bookings(
        self,
        profile_id: str,
        statuses: list[str] | None = None,
        payment_statuses: list[str] | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        court_id: str | None = None,
    ) -> list[VenueBookingView]:
        courts = {c["id"]: c for c in self._owned_courts(profile_id)}
        if court_id and court_id not in courts:
            raise PermissionDeniedError("Akses ditolak: Lapangan tidak termasuk dalam venue Anda")

        rows = self.bookings.list_for_courts(
            list(courts),
            statuses=statuses,
            payment_statuses=payment_statuses,
            start_from=date_from,
            start_to=date_to,
            court_id=court_id,
        )
        profiles = {
            p["id"]: p
            for p in self.profiles.list_by_ids(sorted({r["profile_id"] for r in rows if r.get("profile_id")}))
        }
        return [
            to_venue_booking_view(row, courts.get(row.get("court_id")), profiles.get(row.get("profile_id")))
            for row in rows
        ]

    def booking_metrics(self, profile_id: str, now: datetime | None = None) -> VenueBookingMetrics:
        now = now or datetime.now(timezone.utc)
        courts = self._owned_courts(profile_id)
        try:
            bookings = self.bookings.list_for_courts([c["id"] for c in courts])
        except Exception as e:
            logger.error("Failed to fetch venue bookings for metrics", profile_id=profile_id, error=str(e))
            bookings = []
        return analytics.venue_booking_metrics(
            bookings,
            active_courts=sum(1 for c in courts if c.get("is_active", True)),
            today=now.astimezone(WIB).date(),
            hours_per_day=self.settings.operating_hours_per_day,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Dashboard & reports
    # ═══════════════════════════════════════════════════════════════════════════

    def dashboard(self, profile_id: str, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        venue = self._primary_venue(profile_id)
        courts = self.courts.list_by_venues([venue["id"]])

        try:
            revenue_rows = self.bookings.list_for_courts(
                [c["id"] for c in courts],
                statuses=[BookingStatus.COMPLETED.value],
                payment_statuses=[PaymentStatus.PAID.value],
            )
        except Exception as e:
            logger.error("Failed to fetch venue revenue bookings", venue_id=venue["id"], error=str(e))
            revenue_rows = []

        stats = analytics.venue_dashboard_stats(courts, revenue_rows, now.astimezone(WIB).date())
        return {
            "venue": venue,
            "courts": courts,
            "stats": stats.to_api(),
            "topCourts": [court.to_api() for court in stats.top_courts],
        }

    def revenue_report(self, profile_id: str, now: datetime | None = None) -> VenueRevenueReport:
        """Last six calendar months of revenue plus 30 days of daily trends."""
        now = now or datetime.now(timezone.utc)
        courts = self._owned_courts(profile_id)
        court_ids = [c["id"] for c in courts]

        current = now.astimezone(timezone.utc)
        index = current.year * 12 + current.month - 1 - 5
        window_start = datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)

        try:
            rows = self.bookings.list_for_courts(
                court_ids,
                statuses=[BookingStatus.COMPLETED.value],
                payment_statuses=[PaymentStatus.PAID.value],
                start_from=window_start,
            )
            trend_rows = self.bookings.list_for_courts(court_ids, start_from=now - timedelta(days=30))
        except Exception as e:
            logger.error("Failed to fetch venue report bookings", profile_id=profile_id, error=str(e))
            rows, trend_rows = [], []

        return analytics.venue_revenue_report(
            rows,
            trend_rows,
            {c["id"]: c for c in courts},
            active_courts=sum(1 for c in courts if c.get("is_active", True)),
            now=now,
            hours_per_day=self.settings.operating_hours_per_day,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Courts
    # ═══════════════════════════════════════════════════════════════════════════

    def list_courts(self, profile_id: str) -> list[dict]:
        return self._owned_courts(profile_id)

    def get_court(self, profile_id: str, court_id: str) -> dict:
        court, _ = self._owned_court(profile_id, court_id)
        return court

    def _unique_slug(self, base: str) -> str:
        base = base or "court"
        slug, counter = base, 2
        while self.courts.slug_exists(slug):
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    def create_court(self, profile_id: str, data: dict[str, Any]) -> dict:
        venue_id = data.get("venue_id")
        venues = self.venues.list_by_owner(profile_id)
        venue = next((v for v in venues if v["id"] == venue_id), None) if venue_id else (venues[0] if venues else None)
        if not venue:
            raise PermissionDeniedError("Akses ditolak: Venue tidak ditemukan atau bukan milik Anda")

        payload = validate_court_payload(data)
        payload.setdefault("facilities", [])
        payload["slug"] = self._unique_slug(slugify(f"{venue.get('name') or ''} {payload['name']}"))
        payload.pop("is_active", None)
        return self.courts.create(venue["id"], **payload)

    def update_court(self, profile_id: str, court_id: str, data: dict[str, Any]) -> dict:
        self._owned_court(profile_id, court_id)
        payload = validate_court_payload(data, partial=True)
        if not payload:
            raise BookingValidationError("Tidak ada perubahan yang dikirim.")
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        updated = self.courts.update(court_id, **payload)
        logger.info("Court updated", court_id=court_id, fields=sorted(payload))
        return updated

    def delete_court(self, profile_id: str, court_id: str) -> dict[str, Any]:
        """Deactivate a court. Refused while active or paid upcoming bookings exist."""
        court, _ = self._owned_court(profile_id, court_id)
        if self.bookings.has_active_for_court(court_id, datetime.now(timezone.utc)):
            raise BookingValidationError(
                "Lapangan tidak dapat dihapus karena masih memiliki booking aktif."
            )
        self.courts.update(court_id, is_active=False, updated_at=datetime.now(timezone.utc).isoformat())
        logger.info("Court deactivated", court_id=court_id)
        return {"success": True, "message": f"Lapangan {court.get('name') or ''} berhasil dinonaktifkan".strip()}

    # ═══════════════════════════════════════════════════════════════════════════
    # Court images
    # ═══════════════════════════════════════════════════════════════════════════

    def list_images(self, profile_id: str, court_id: str) -> list[CourtImage]:
        self._owned_court(profile_id, court_id)
        return [CourtImage.from_row(row) for row in self.images.list_for_court(court_id)]

    def upload_image(
        self,
        profile_id: str,
        court_id: str,
        filename: str,
        content: bytes,
        content_type: str,
        is_primary: bool = False,
        caption: str | None = None,
        now: datetime | None = None,
    ) -> CourtImage:
        court, venue = self._owned_court(profile_id, court_id)
        if not content:
            raise BookingValidationError("File gambar wajib diupload")
        if content_type not in IMAGE_TYPES:
            raise BookingValidationError("Tipe file tidak diizinkan. Gunakan JPG, PNG, atau WebP")
        if len(content) > MAX_IMAGE_BYTES:
            raise BookingValidationError("Ukuran file terlalu besar. Maksimal 5MB")

        now = now or datetime.now(timezone.utc)
        extension = (filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else "") or IMAGE_TYPES[content_type]
        token = "".join(random.choice(string.ascii_lowercase + string.digits) for _ in range(12))
        path = f"{venue['id']}/{court_id}/{int(now.timestamp() * 1000)}_{token}.{extension}"

        bucket = self.settings.court_images_bucket
        url = self.images.upload(bucket, path, content, content_type)

        existing = self.images.list_for_court(court_id)
        is_primary = is_primary or not existing
        if is_primary:
            self.images.clear_primary(court_id)
            self.courts.update(court_id, primary_image_url=url)

        row = self.images.create(
            court_id,
            url,
            caption=caption,
            is_primary=is_primary,
            display_order=len(existing),
        )
        logger.info("Court image uploaded", court_id=court["id"], path=path, is_primary=is_primary)
        return CourtImage.from_row(row)

    def _owned_image(self, profile_id: str, court_id: str, image_id: str) -> dict:
        self._owned_court(profile_id, court_id)
        image = self.images.get(image_id)
        if not image or image.get("court_id") != court_id:
            raise NotFoundError("Gambar tidak ditemukan")
        return image

    def set_primary_image(self, profile_id: str, court_id: str, image_id: str) -> CourtImage:
        image = self._owned_image(profile_id, court_id, image_id)
        self.images.clear_primary(court_id)
        updated = self.images.update(image_id, is_primary=True) or {**image, "is_primary": True}
        self.courts.update(court_id, primary_image_url=image.get("image_url"))
        return CourtImage.from_row(updated)

    def delete_image(self, profile_id: str, court_id: str, image_id: str) -> dict[str, Any]:
        image = self._owned_image(profile_id, court_id, image_id)
        self.images.delete(image_id)

        bucket = self.settings.court_images_bucket
        path = storage_path_from_url(image.get("image_url") or "", bucket)
        if path:
            try:
                self.images.remove_object(bucket, path)
            except Exception as e:
                logger.warning("Failed to remove image object", image_id=image_id, path=path, error=str(e))

        if image.get("is_primary"):
            self.courts.update(court_id, primary_image_url=None)
        return {"success": True, "message": "Gambar berhasil dihapus"}

    # ═══════════════════════════════════════════════════════════════════════════
    # Blackouts
    # ═══════════════════════════════════════════════════════════════════════════

    def list_blackouts(
        self,
        profile_id: str,
        court_id: str | None = None,
        active: bool | None = None,
        upcoming: bool = False,
        frequencies: list[str] | None = None,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        today = (now or datetime.now(timezone.utc)).astimezone(WIB).date().isoformat()
        courts = {c["id"]: c for c in self._owned_courts(profile_id)}

        rows = self.blackouts.list_for_courts(
            list(courts),
            court_id=court_id,
            frequencies=frequencies,
            active_on=today if active else None,
            ending_from=today if upcoming else None,
        )
        if active is False:
            rows = [r for r in rows if not (r.get("start_date") or "") <= today <= (r.get("end_date") or "")]
        if upcoming:
            rows = [r for r in rows if (r.get("start_date") or "") > today]

        return [
            {
                **row,
                "court_name": courts.get(row.get("court_id"), {}).get("name") or "Unknown Court",
                "court_sport": courts.get(row.get("court_id"), {}).get("sport") or "Unknown",
            }
            for row in rows
        ]

    def create_blackout(self, profile_id: str, data: dict[str, Any]) -> dict:
        court, _ = self._owned_court(profile_id, data.get("court_id") or "")
        payload = validate_blackout_payload(data)
        return self.blackouts.create(court_id=court["id"], created_by=profile_id, **payload)

    def delete_blackout(self, profile_id: str, blackout_id: str) -> dict[str, Any]:
        blackout = self.blackouts.get(blackout_id)
        if not blackout:
            raise NotFoundError("Blackout tidak ditemukan")
        self._owned_court(profile_id, blackout.get("court_id") or "")
        self.blackouts.delete(blackout_id)
        logger.info("Blackout deleted", blackout_id=blackout_id)
        return {"success": True}

    def blackout_metrics(self, profile_id: str, now: datetime | None = None) -> BlackoutMetrics:
        courts = self._owned_courts(profile_id)
        try:
            rows = self.blackouts.list_for_courts([c["id"] for c in courts])
        except Exception as e:
            logger.error("Failed to fetch blackouts for metrics", profile_id=profile_id, error=str(e))
            rows = []
        today = (now or datetime.now(timezone.utc)).astimezone(WIB).date()
        return analytics.blackout_metrics(rows, courts, today)

    # ═══════════════════════════════════════════════════════════════════════════
    # Settings
    # ═══════════════════════════════════════════════════════════════════════════

    def update_settings(self, profile_id: str, data: dict[str, Any]) -> dict:
        venue = self._primary_venue(profile_id)
        payload = {key: data[key] for key in VENUE_SETTINGS_FIELDS if key in data}
        if "name" in payload and not str(payload["name"] or "").strip():
            raise BookingValidationError("Nama venue wajib diisi.")
        if not payload:
            raise BookingValidationError("Tidak ada perubahan yang dikirim.")
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        updated = self.venues.update(venue["id"], **payload)
        logger.info("Venue settings updated", venue_id=venue["id"], fields=sorted(payload))
        return updated or {**venue, **payload}
