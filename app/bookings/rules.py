"""
Pure booking rules: schedule window, pricing, cancellation, venue actions
and expiry. Nothing here touches the database or the gateway.
"""

import calendar
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from app.bookings.status import (
    BLOCKING_BOOKING_STATUSES,
    BookingStatus,
    PaymentStatus,
    normalize_booking_status,
    normalize_payment_status,
)
from app.errors import BookingValidationError

WIB = timezone(timedelta(hours=7), name="WIB")

VenueAction = Literal["check_in", "complete"]


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (Postgres or JS style). Naive values are UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's end."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def booking_horizon(now: datetime, months: int = 3) -> datetime:
    """Last bookable instant: end of day (WIB) ``months`` months from now."""
    local = add_months(now.astimezone(WIB), months)
    return local.replace(hour=23, minute=59, second=59, microsecond=999999)


def validate_schedule(
    start: datetime | None,
    end: datetime | None,
    now: datetime,
    horizon_months: int = 3,
) -> None:
    """Raise BookingValidationError when the requested window is not bookable."""
    if start is None or end is None:
        raise BookingValidationError("Jadwal booking tidak valid.")

    horizon = booking_horizon(now, horizon_months)

    if start < now:
        raise BookingValidationError("Tanggal booking sudah lewat. Pilih jadwal lain.")
    if start > horizon:
        raise BookingValidationError(
            f"Booking hanya dapat dijadwalkan maksimal {horizon_months} bulan ke depan."
        )
    if end <= start:
        raise BookingValidationError("Waktu selesai harus setelah waktu mulai.")
    if end > horizon:
        raise BookingValidationError("Durasi booking melebihi batas jadwal yang diizinkan.")


def duration_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def compute_price_total(price_per_hour: Any, start: datetime, end: datetime) -> int:
    """Hourly price times duration, charged for at least one hour, rounded up."""
    try:
        rate = float(price_per_hour or 0)
    except (TypeError, ValueError):
        rate = 0.0

    hours = max(1.0, duration_hours(start, end))
    total = rate * hours
    if not math.isfinite(total) or total <= 0:
        raise BookingValidationError("Harga lapangan belum dikonfigurasi.")
    return math.ceil(total)


def generate_payment_reference(now: datetime, rng: random.Random | None = None) -> str:
    """Gateway order id: BOOK-<epoch millis>-<0..999>."""
    rng = rng or random
    millis = int(now.timestamp() * 1000)
    return f"BOOK-{millis}-{rng.randrange(1000)}"


def payment_expires_at(now: datetime, hours: int = 3) -> datetime:
    return now + timedelta(hours=hours)


def ranges_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    return start_a < end_b and end_a > start_b


def find_conflicts(
    bookings: list[dict[str, Any]],
    start: datetime,
    end: datetime,
) -> list[dict[str, Any]]:
    """Bookings that still hold the slot and overlap [start, end)."""
    conflicts = []
    for row in bookings:
        if normalize_booking_status(row.get("status")) not in BLOCKING_BOOKING_STATUSES:
            continue
        row_start = parse_timestamp(row.get("start_time"))
        row_end = parse_timestamp(row.get("end_time"))
        if row_start and row_end and ranges_overlap(start, end, row_start, row_end):
            conflicts.append(row)
    return conflicts


def ensure_cancellable(
    booking: dict[str, Any],
    now: datetime,
    cutoff_hours: int = 2,
) -> None:
    """Owner cancellation is allowed from pending/confirmed, ahead of the cutoff."""
    start = parse_timestamp(booking.get("start_time"))
    if start is None:
        raise BookingValidationError("Jadwal booking tidak valid.")

    hours_until = (start - now).total_seconds() / 3600
    if hours_until < cutoff_hours:
        raise BookingValidationError(
            f"Booking hanya dapat dibatalkan paling lambat {cutoff_hours} jam sebelum jadwal mulai."
        )

    status = normalize_booking_status(booking.get("status"))
    if status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
        raise BookingValidationError(
            f"Booking dengan status {status.value} tidak dapat dibatalkan."
        )


def cancellation_changes() -> dict[str, str]:
    return {
        "status": BookingStatus.CANCELLED.value,
        "payment_status": PaymentStatus.CANCELLED.value,
    }


@dataclass
class VenueActionResult:
    """What a check-in / complete action does to a booking."""

    status: BookingStatus
    changes: dict[str, Any] = field(default_factory=dict)
    timestamp: str | None = None


def apply_venue_action(
    booking: dict[str, Any],
    action: str,
    now: datetime,
) -> VenueActionResult:
    """
    Decide the effect of a venue operator action on a booking.

    check_in stamps checked_in_at (pending bookings become confirmed);
    complete requires a prior check-in. Repeating an action is a no-op.
    """
    if action not in ("check_in", "complete"):
        raise BookingValidationError("Aksi tidak dikenali. Gunakan check_in atau complete.")

    current = normalize_booking_status(booking.get("status"))
    stamp = now.isoformat()

    if action == "check_in":
        if booking.get("completed_at"):
            raise BookingValidationError("Booking sudah ditandai selesai.")
        if booking.get("checked_in_at"):
            return VenueActionResult(current)

        next_status = BookingStatus.CONFIRMED if current == BookingStatus.PENDING else current
        changes = {"checked_in_at": stamp}
        if next_status != current:
            changes["status"] = next_status.value
        return VenueActionResult(next_status, changes, stamp)

    if not booking.get("checked_in_at"):
        raise BookingValidationError(
            "Validasi kedatangan terlebih dahulu sebelum menandai selesai."
        )
    if booking.get("completed_at"):
        return VenueActionResult(BookingStatus.COMPLETED)

    changes = {"completed_at": stamp, "status": BookingStatus.COMPLETED.value}
    return VenueActionResult(BookingStatus.COMPLETED, changes, stamp)


def is_stale_pending(
    booking: dict[str, Any],
    now: datetime,
    expiry_minutes: int = 30,
) -> bool:
    """A pending/pending booking created more than ``expiry_minutes`` ago."""
    if normalize_booking_status(booking.get("status")) != BookingStatus.PENDING:
        return False
    if normalize_payment_status(booking.get("payment_status")) != PaymentStatus.PENDING:
        return False
    created = parse_timestamp(booking.get("created_at"))
    return created is not None and created < now - timedelta(minutes=expiry_minutes)


def can_review(booking: dict[str, Any]) -> bool:
    return (
        normalize_booking_status(booking.get("status")) == BookingStatus.COMPLETED
        or bool(booking.get("completed_at"))
    )


def normalize_rating(value: Any) -> float:
    """Validate a 1..5 star rating and round it to the nearest half star."""
    try:
        rating = float(value)
    except (TypeError, ValueError):
        rating = float("nan")

    if not math.isfinite(rating) or rating < 1 or rating > 5:
        raise BookingValidationError("Nilai rating harus antara 1 hingga 5 bintang.")
    return math.floor(rating * 2 + 0.5) / 2
