"""
Public catalog: court and venue listings, court detail, availability,
distance helpers, search and recommendations.
"""

import math
from datetime import datetime, timezone

import structlog
from supabase import Client

from app.bookings.rules import booking_horizon
from app.bookings.status import normalize_booking_status
from app.config import Settings, get_settings
from app.db.repository import (
    BookingRepository,
    CourtImageRepository,
    CourtRepository,
    CourtSummaryRepository,
    ForumRepository,
    ProfileRepository,
    ReviewRepository,
    VenueRepository,
)
from app.errors import NotFoundError
from app.models.catalog import (
    BookingSlot,
    CourtDetail,
    CourtImage,
    CourtReview,
    CourtSummary,
    SearchResult,
    VenueCourt,
    VenueListing,
)

logger = structlog.get_logger()

EARTH_RADIUS_KM = 6371.0
MAX_RESULTS_PER_KIND = 5
MAX_SEARCH_RESULTS = 15
MAX_RECOMMENDATIONS = 5

FALLBACK_RECOMMENDATIONS = [
    {
        "id": "fallback-sunrise-sports-hub",
        "slug": "sunrise-sports-hub",
        "name": "Sunrise Sports Hub",
        "sport": "futsal",
        "venue_name": "Arena Sunrise",
        "venue_city": "Jakarta",
        "price_per_hour": 180000,
        "average_rating": 4.8,
    },
    {
        "id": "fallback-lagoon-futsal-prime",
        "slug": "lagoon-futsal-prime",
        "name": "Lagoon Futsal Prime",
        "sport": "futsal",
        "venue_name": "Lagoon Dome",
        "venue_city": "Bandung",
        "price_per_hour": 150000,
        "average_rating": 4.7,
    },
    {
        "id": "fallback-nusa-badminton-club",
        "slug": "nusa-badminton-club",
        "name": "Nusa Badminton Club",
        "sport": "badminton",
        "venue_name": "Gor Nusa Indah",
        "venue_city": "Surabaya",
        "price_per_hour": 120000,
        "average_rating": 4.6,
    },
]


def haversine_km(origin_lat: float, origin_lng: float, target_lat: float, target_lng: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(target_lat - origin_lat)
    d_lng = math.radians(target_lng - origin_lng)
    lat1 = math.radians(origin_lat)
    lat2 = math.radians(target_lat)

    a = math.sin(d_lat / 2) ** 2 + math.sin(d_lng / 2) ** 2 * math.cos(lat1) * math.cos(lat2)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(distance_km: float | None) -> str | None:
    """'850 m' under a kilometre, '3.2 km' under ten, '12 km' beyond."""
    if distance_km is None or math.isnan(distance_km):
        return None
    if distance_km < 1:
        return f"{math.floor(distance_km * 1000 + 0.5)} m"
    if distance_km < 10:
        return f"{distance_km:.1f} km"
    return f"{math.floor(distance_km + 0.5)} km"


class CatalogService:
    """Read-only catalog queries."""

    def __init__(self, client: Client, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.summaries = CourtSummaryRepository(client)
        self.courts = CourtRepository(client)
        self.venues = VenueRepository(client)
        self.images = CourtImageRepository(client)
        self.reviews = ReviewRepository(client)
        self.profiles = ProfileRepository(client)
        self.bookings = BookingRepository(client)
        self.forum = ForumRepository(client)

    def list_courts(self, sport: str | None = None, city: str | None = None) -> list[CourtSummary]:
        courts = [CourtSummary.from_row(row) for row in self.summaries.list_all()]
        if sport:
            courts = [c for c in courts if c.sport.lower() == sport.lower()]
        if city:
            courts = [c for c in courts if (c.venue_city or "").lower() == city.lower()]
        return courts

    def get_court(self, slug: str) -> CourtDetail:
        row = self.summaries.get_by_slug(slug)
        if not row:
            raise NotFoundError("Lapangan tidak ditemukan.")

        summary = CourtSummary.from_row(row)
        images = [CourtImage.from_row(image) for image in self.images.list_for_court(summary.id)]

        review_rows = self.reviews.list_by_court(summary.id)
        authors = {
            profile["id"]: profile.get("full_name")
            for profile in self.profiles.list_by_ids(
                sorted({r["profile_id"] for r in review_rows if r.get("profile_id")})
            )
        }
        reviews = [
            CourtReview(
                id=review["id"],
                rating=float(review.get("rating") or 0),
                comment=review.get("comment"),
                author=authors.get(review.get("profile_id")),
                created_at=review.get("created_at"),
                forum_thread_id=review.get("forum_thread_id"),
            )
            for review in review_rows
        ]
        return CourtDetail(**summary.model_dump(), images=images, reviews=reviews)

    def nearest_courts(self, latitude: float, longitude: float, limit: int = 10) -> list[CourtSummary]:
        located = []
        for court in self.list_courts():
            if court.venue_latitude is None or court.venue_longitude is None:
                continue
            court.distance_km = haversine_km(latitude, longitude, court.venue_latitude, court.venue_longitude)
            court.distance_label = format_distance(court.distance_km)
            located.append(court)
        located.sort(key=lambda court: court.distance_km)
        return located[:limit]

    def list_venues(self, latitude: float | None = None, longitude: float | None = None) -> list[VenueListing]:
        venues = self.venues.list_all()
        courts_by_venue: dict[str, list[VenueCourt]] = {}
        for court in self.courts.list_by_venues([v["id"] for v in venues], include_inactive=False):
            courts_by_venue.setdefault(court["venue_id"], []).append(
                VenueCourt(
                    id=court["id"],
                    slug=court.get("slug"),
                    name=court.get("name") or "",
                    sport=court.get("sport") or "",
                    price_per_hour=float(court.get("price_per_hour") or 0),
                    is_active=court.get("is_active", True),
                )
            )

        listings = []
        for venue in venues:
            listing = VenueListing(
                id=venue["id"],
                slug=venue.get("slug"),
                name=venue.get("name") or "",
                city=venue.get("city"),
                district=venue.get("district"),
                address=venue.get("address"),
                latitude=venue.get("latitude"),
                longitude=venue.get("longitude"),
                description=venue.get("description"),
                courts=courts_by_venue.get(venue["id"], []),
            )
            if None not in (latitude, longitude, listing.latitude, listing.longitude):
                listing.distance_km = haversine_km(latitude, longitude, listing.latitude, listing.longitude)
                listing.distance_label = format_distance(listing.distance_km)
            listings.append(listing)

        if latitude is not None and longitude is not None:
            listings.sort(key=lambda v: (v.distance_km is None, v.distance_km or 0))
        return listings

    def availability(self, court_id: str, now: datetime | None = None) -> list[BookingSlot]:
        """Existing reservations of a court from now until the booking horizon."""
        now = now or datetime.now(timezone.utc)
        horizon = booking_horizon(now, self.settings.booking_horizon_months)
        return [
            BookingSlot(
                id=slot["id"],
                start_time=slot["start_time"],
                end_time=slot["end_time"],
                status=normalize_booking_status(slot.get("status")).value,
                payment_status=slot.get("payment_status") or "pending",
            )
            for slot in self.bookings.list_slots(court_id, now, horizon)
        ]

    def search(self, query: str) -> list[SearchResult]:
        """Courts, venues and forum threads matching ``query``."""
        term = (query or "").strip()
        if not term:
            return []

        results: list[SearchResult] = []

        try:
            for court in self.summaries.search(term, MAX_RESULTS_PER_KIND):
                parts = [court.get("sport") or "", court.get("venue_name") or ""]
                if court.get("venue_city"):
                    parts.append(court["venue_city"])
                results.append(
                    SearchResult(
                        type="court",
                        title=court.get("name") or "",
                        description=" • ".join(parts),
                        href=f"/court/{court.get('slug')}",
                    )
                )
        except Exception as e:
            logger.error("Court search failed", query=term, error=str(e))

        try:
            for venue in self.venues.search(term, MAX_RESULTS_PER_KIND):
                results.append(
                    SearchResult(
                        type="venue",
                        title=venue.get("name") or "",
                        description=f"Venue • {venue['city']}" if venue.get("city") else "Venue",
                        href=f"/venues/{venue.get('slug')}",
                    )
                )
        except Exception as e:
            logger.error("Venue search failed", query=term, error=str(e))

        try:
            threads = self.forum.search(term, MAX_RESULTS_PER_KIND)
            categories = {c["id"]: c.get("name") for c in self.forum.list_categories()} if threads else {}
            for thread in threads:
                category = categories.get(thread.get("category_id"))
                results.append(
                    SearchResult(
                        type="forum",
                        title=thread.get("title") or "",
                        description=f"Forum • {category}" if category else "Forum",
                        href=f"/forum/{thread.get('slug')}",
                    )
                )
        except Exception as e:
            logger.error("Forum search failed", query=term, error=str(e))

        return results[:MAX_SEARCH_RESULTS]

    def recommended_courts(self) -> list[CourtSummary]:
        """Top rated courts, or a static list when the view is empty or failing."""
        try:
            rows = self.summaries.top_rated(MAX_RECOMMENDATIONS)
        except Exception as e:
            logger.error("Failed to fetch recommended courts", error=str(e))
            rows = []
        return [CourtSummary.from_row(row) for row in rows or FALLBACK_RECOMMENDATIONS]
