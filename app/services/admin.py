"""
Admin dashboard: platform totals, chart series and recent activity.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from supabase import Client

from app.bookings.rules import WIB
from app.bookings.status import normalize_booking_status, normalize_payment_status
from app.db.repository import (
    BookingRepository,
    CourtRepository,
    CourtSummaryRepository,
    PartnerApplicationRepository,
    ProfileRepository,
    ReportRepository,
    VenueRepository,
)
from app.models.dashboard import AdminStats
from app.services.analytics import admin_stats

logger = structlog.get_logger()


class AdminService:
    def __init__(self, client: Client):
        self.bookings = BookingRepository(client)
        self.courts = CourtRepository(client)
        self.summaries = CourtSummaryRepository(client)
        self.venues = VenueRepository(client)
        self.profiles = ProfileRepository(client)
        self.applications = PartnerApplicationRepository(client)
        self.reports = ReportRepository(client)

    def stats(self, now: datetime | None = None) -> AdminStats:
        """Platform totals. Each source falls back to zero on failure."""
        now = now or datetime.now(timezone.utc)

        def safe(label: str, fetch, default):
            try:
                return fetch()
            except Exception as e:
                logger.error("Admin stats query failed", source=label, error=str(e))
                return default

        return admin_stats(
            bookings=safe("bookings", self.bookings.list_for_stats, []),
            today=now.astimezone(WIB).date(),
            total_venues=safe("venues", self.venues.count_all, 0),
            total_users=safe("profiles", self.profiles.count_all, 0),
            total_courts=safe("courts", lambda: len(self.courts.list_active_ids()), 0),
            pending_applications=safe("applications", lambda: self.applications.count_by_status("pending"), 0),
            ratings=safe("ratings", self.summaries.active_ratings, []),
        )

    def dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        return {
            "stats": self.stats(now).to_api(),
            "monthlyRevenue": self.reports.monthly_revenue(),
            "venueGrowth": self.reports.venue_growth(),
            "bookingTrends": self.reports.booking_trends(),
            "topVenues": self.venue_stats(limit=5),
        }

    def venue_stats(self, limit: int = 50) -> list[dict[str, Any]]:
        try:
            rows = self.venues.top_by_revenue(limit)
        except Exception as e:
            logger.error("Failed to fetch venue stats", error=str(e))
            return []
        return [
            {
                "venue_id": row.get("venue_id"),
                "venue_name": row.get("venue_name"),
                "venue_city": row.get("venue_city"),
                "total_bookings": int(row.get("total_bookings") or 0),
                "total_revenue": float(row.get("total_revenue") or 0),
            }
            for row in rows
        ]

    def recent_bookings(self, limit: int = 50) -> list[dict[str, Any]]:
        rows = self.bookings.list_recent(limit)
        courts = {c["id"]: c for c in self.courts.list_by_ids(sorted({r["court_id"] for r in rows if r.get("court_id")}))}
        venues = {
            v["id"]: v
            for v in self.venues.list_by_ids(sorted({c["venue_id"] for c in courts.values() if c.get("venue_id")}))
        }
        profiles = {
            p["id"]: p
            for p in self.profiles.list_by_ids(sorted({r["profile_id"] for r in rows if r.get("profile_id")}))
        }

        recent = []
        for row in rows:
            court = courts.get(row.get("court_id"), {})
            venue = venues.get(court.get("venue_id"), {})
            recent.append(
                {
                    "id": row["id"],
                    "start_time": row.get("start_time"),
                    "end_time": row.get("end_time"),
                    "status": normalize_booking_status(row.get("status")).value,
                    "payment_status": normalize_payment_status(row.get("payment_status")).value,
                    "price_total": float(row.get("price_total") or 0),
                    "created_at": row.get("created_at"),
                    "court_name": court.get("name"),
                    "venue_name": venue.get("name"),
                    "customer_name": profiles.get(row.get("profile_id"), {}).get("full_name"),
                }
            )
        return recent
