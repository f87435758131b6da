"""
Revenue and metrics aggregation.

Every function here is pure: it takes booking/court rows already fetched
from the database and reduces them to dashboard numbers. Calendar months
are bucketed in UTC; days and hours shown to venue operators are in WIB.
"""

import math
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable

from app.bookings.rules import WIB, duration_hours, parse_timestamp
from app.bookings.status import (
    BookingStatus,
    PaymentStatus,
    normalize_booking_status,
    normalize_payment_status,
)
from app.models.dashboard import (
    AdminStats,
    BlackoutMetrics,
    BookingStats,
    CourtPerformance,
    CourtStats,
    MonthlyRevenue,
    TrendPoint,
    UserStats,
    VenueBookingMetrics,
    VenueDashboardStats,
    VenueRevenueReport,
)

Row = dict[str, Any]

DAY_NAMES = ["Minggu", "Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu"]

DEFAULT_OPERATING_HOURS = 16


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _price(row: Row) -> float:
    try:
        return float(row.get("price_total") or 0)
    except (TypeError, ValueError):
        return 0.0


def _status(row: Row) -> BookingStatus:
    return normalize_booking_status(row.get("status"))


def _start(row: Row) -> datetime | None:
    return parse_timestamp(row.get("start_time"))


def _local_date(row: Row) -> date | None:
    start = _start(row)
    return start.astimezone(WIB).date() if start else None


def is_revenue_booking(row: Row) -> bool:
    """Only completed bookings with a settled payment count as revenue."""
    return (
        _status(row) == BookingStatus.COMPLETED
        and normalize_payment_status(row.get("payment_status")) == PaymentStatus.PAID
    )


def total_revenue(rows: Iterable[Row]) -> float:
    return sum(_price(row) for row in rows if is_revenue_booking(row))


def booked_hours(rows: Iterable[Row]) -> float:
    total = 0.0
    for row in rows:
        start = _start(row)
        end = parse_timestamp(row.get("end_time"))
        if start and end and end > start:
            total += duration_hours(start, end)
    return total


def _month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def month_keys(now: datetime, months: int = 6) -> list[str]:
    """Calendar month keys (UTC), oldest first, ending with the current month."""
    current = now.astimezone(timezone.utc)
    keys = []
    for offset in range(months - 1, -1, -1):
        index = current.year * 12 + current.month - 1 - offset
        keys.append(f"{index // 12:04d}-{index % 12 + 1:02d}")
    return keys


def monthly_revenue(rows: Iterable[Row], now: datetime, months: int = 6) -> list[MonthlyRevenue]:
    """
    Revenue and booking count per calendar month over the last ``months``.

    Rows that are not revenue bookings, or start outside the window, are
    ignored. Buckets with no bookings are still present.
    """
    buckets = {key: MonthlyRevenue(month=key) for key in month_keys(now, months)}
    for row in rows:
        if not is_revenue_booking(row):
            continue
        start = _start(row)
        if start is None:
            continue
        bucket = buckets.get(_month_key(start.astimezone(timezone.utc)))
        if bucket is None:
            continue
        bucket.revenue += _price(row)
        bucket.booking_count += 1
    return list(buckets.values())


def court_performance(
    rows: Iterable[Row],
    courts: dict[str, Row],
    limit: int = 5,
) -> list[CourtPerformance]:
    """Per-court booking count and revenue, busiest courts first."""
    stats: dict[str, CourtPerformance] = {}
    for row in rows:
        court_id = row.get("court_id")
        if not court_id:
            continue
        if court_id not in stats:
            court = courts.get(court_id, {})
            stats[court_id] = CourtPerformance(
                court_id=court_id,
                court_name=court.get("name") or "Unknown Court",
                sport=court.get("sport"),
            )
        stats[court_id].booking_count += 1
        stats[court_id].revenue += _price(row)

    ranked = sorted(stats.values(), key=lambda item: item.booking_count, reverse=True)
    return ranked[:limit]


def _most_common(counter: Counter) -> Any:
    # first key to reach the top count wins ties
    best_key, best_count = None, 0
    for key, count in counter.items():
        if count > best_count:
            best_key, best_count = key, count
    return best_key


def peak_hour(rows: Iterable[Row]) -> str:
    """Busiest start hour rendered in WIB as 'HH:00 - HH:00'."""
    hours = Counter()
    for row in rows:
        start = _start(row)
        if start:
            hours[start.astimezone(timezone.utc).hour] += 1
    hour = _most_common(hours)
    if hour is None:
        return "N/A"
    return f"{(hour + 7) % 24:02d}:00 - {(hour + 8) % 24:02d}:00"


def peak_day(rows: Iterable[Row]) -> str:
    """Busiest weekday (WIB) as an Indonesian day name."""
    days = Counter()
    for row in rows:
        local = _local_date(row)
        if local:
            days[(local.weekday() + 1) % 7] += 1
    day = _most_common(days)
    return DAY_NAMES[day] if day is not None else "N/A"


def occupancy_rate(
    hours_booked: float,
    active_courts: int,
    days: int = 1,
    hours_per_day: int = DEFAULT_OPERATING_HOURS,
) -> int:
    """Booked hours over available court-hours, as a rounded percentage."""
    capacity = active_courts * days * hours_per_day
    if capacity <= 0:
        return 0
    return round_half_up(hours_booked / capacity * 100)


def daily_booking_trends(rows: Iterable[Row], today: date, days: int = 30) -> list[TrendPoint]:
    """Bookings per WIB day for the ``days`` days ending today, oldest first."""
    counts = Counter(_local_date(row) for row in rows)
    return [
        TrendPoint(date=day.isoformat(), bookings=counts.get(day, 0))
        for day in (today - timedelta(days=offset) for offset in range(days - 1, -1, -1))
    ]


def venue_revenue_report(
    rows: list[Row],
    trend_rows: list[Row],
    courts: dict[str, Row],
    active_courts: int,
    now: datetime,
    hours_per_day: int = DEFAULT_OPERATING_HOURS,
) -> VenueRevenueReport:
    """Six-month revenue report for a venue owner."""
    revenue_rows = [row for row in rows if is_revenue_booking(row)]
    today = now.astimezone(WIB).date()
    return VenueRevenueReport(
        total_revenue=sum(_price(row) for row in revenue_rows),
        monthly_revenue=monthly_revenue(revenue_rows, now),
        booking_stats=BookingStats(
            total_bookings=len(revenue_rows),
            average_occupancy=occupancy_rate(
                booked_hours(revenue_rows), active_courts, days=30, hours_per_day=hours_per_day
            ),
            peak_hours=peak_hour(revenue_rows),
            peak_day=peak_day(revenue_rows),
        ),
        top_courts=court_performance(revenue_rows, courts),
        booking_trends=daily_booking_trends(
            [row for row in trend_rows if _status(row) == BookingStatus.COMPLETED], today
        ),
    )


def venue_booking_metrics(
    bookings: list[Row],
    active_courts: int,
    today: date,
    hours_per_day: int = DEFAULT_OPERATING_HOURS,
) -> VenueBookingMetrics:
    """Counters shown above the venue bookings table."""
    live = [row for row in bookings if _status(row) != BookingStatus.CANCELLED]
    todays = [row for row in live if _local_date(row) == today]
    day_start = datetime.combine(today, time.min, tzinfo=WIB)

    upcoming = [
        row
        for row in bookings
        if _status(row) == BookingStatus.CONFIRMED and (_start(row) or day_start) >= day_start
    ]
    pending = [row for row in bookings if _status(row) == BookingStatus.PENDING]
    today_revenue = sum(
        _price(row)
        for row in todays
        if _status(row) in (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
    )

    total_hours = active_courts * hours_per_day
    hours = booked_hours(todays)

    return VenueBookingMetrics(
        total_bookings=len(live),
        today_bookings=len(todays),
        upcoming_bookings=len(upcoming),
        pending_bookings=len(pending),
        today_revenue=today_revenue,
        occupancy_rate=occupancy_rate(hours, active_courts, hours_per_day=hours_per_day),
        available_hours=round_half_up(max(0.0, total_hours - hours)),
        total_hours=total_hours,
    )


def venue_dashboard_stats(courts: list[Row], bookings: list[Row], today: date) -> VenueDashboardStats:
    """Per-court and venue-wide revenue from revenue bookings."""
    per_court = {
        court["id"]: CourtStats(court_id=court["id"], court_name=court.get("name") or "")
        for court in courts
    }
    for row in bookings:
        if not is_revenue_booking(row):
            continue
        stats = per_court.get(row.get("court_id"))
        if stats is None:
            continue
        stats.total_revenue += _price(row)
        stats.total_bookings += 1
        if _local_date(row) == today:
            stats.today_revenue += _price(row)
            stats.today_bookings += 1

    court_stats = list(per_court.values())
    return VenueDashboardStats(
        total_revenue=sum(item.total_revenue for item in court_stats),
        today_revenue=sum(item.today_revenue for item in court_stats),
        total_bookings=sum(item.total_bookings for item in court_stats),
        today_bookings=sum(item.today_bookings for item in court_stats),
        courts=court_stats,
        top_courts=sorted(court_stats, key=lambda item: item.total_revenue, reverse=True)[:5],
    )


def admin_stats(
    bookings: list[Row],
    today: date,
    total_venues: int = 0,
    total_users: int = 0,
    total_courts: int = 0,
    pending_applications: int = 0,
    ratings: list[float] | None = None,
) -> AdminStats:
    """Platform-wide totals. Cancelled and unpaid (pending) bookings are excluded."""
    counted = [
        row
        for row in bookings
        if _status(row) not in (BookingStatus.CANCELLED, BookingStatus.PENDING)
    ]
    todays = [
        row
        for row in bookings
        if _local_date(row) == today and _status(row) != BookingStatus.CANCELLED
    ]
    positive = [rating for rating in ratings or [] if rating > 0]

    return AdminStats(
        total_venues=total_venues,
        total_users=total_users,
        total_courts=total_courts,
        total_bookings=len(counted),
        total_revenue=sum(_price(row) for row in counted),
        today_bookings=len(todays),
        today_revenue=sum(
            _price(row) for row in todays if _status(row) == BookingStatus.COMPLETED
        ),
        pending_applications=pending_applications,
        average_rating=sum(positive) / len(positive) if positive else 0,
    )


def user_stats(bookings: list[Row]) -> UserStats:
    return UserStats(
        total_bookings=len(bookings),
        active_bookings=sum(
            1
            for row in bookings
            if _status(row) in (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
        ),
        pending_payments=sum(
            1
            for row in bookings
            if normalize_payment_status(row.get("payment_status")) == PaymentStatus.PENDING
            and _status(row) != BookingStatus.CANCELLED
        ),
        total_spent=sum(
            _price(row)
            for row in bookings
            if normalize_payment_status(row.get("payment_status")) == PaymentStatus.PAID
        ),
    )


def _blackout_hours(row: Row) -> float:
    if row.get("scope") == "full_day":
        return 24.0
    start, end = row.get("start_time"), row.get("end_time")
    if not start or not end:
        return 0.0
    try:
        start_t = time.fromisoformat(start)
        end_t = time.fromisoformat(end)
    except ValueError:
        return 0.0
    anchor = date(2000, 1, 1)
    delta = datetime.combine(anchor, end_t) - datetime.combine(anchor, start_t)
    return max(0.0, delta.total_seconds() / 3600)


def blackout_metrics(blackouts: list[Row], courts: list[Row], today: date) -> BlackoutMetrics:
    today_key = today.isoformat()
    horizon = (today + timedelta(days=30)).isoformat()

    active = [
        row
        for row in blackouts
        if (row.get("start_date") or "") <= today_key <= (row.get("end_date") or "")
    ]
    upcoming = [
        row for row in blackouts if today_key < (row.get("start_date") or "") <= horizon
    ]
    per_court = Counter(row.get("court_id") for row in blackouts if row.get("court_id"))
    names = {court["id"]: court.get("name") for court in courts}
    most_affected = _most_common(per_court)

    return BlackoutMetrics(
        total_blackouts=len(blackouts),
        active_blackouts=len(active),
        upcoming_blackouts=min(len(upcoming), 10),
        affected_courts=len(per_court),
        most_affected_court=names.get(most_affected) or "None",
        total_affected_hours=sum(_blackout_hours(row) for row in active),
        total_courts=len(courts),
    )
