"""
Catalog view models: courts, venues, images, reviews and search results.
"""

from typing import Literal

from pydantic import Field

from app.models.base import CamelModel, as_float, as_list, as_optional_float


class CourtSummary(CamelModel):
    """One row of the court_summaries view."""

    id: str
    slug: str
    name: str
    sport: str
    surface: str | None = None
    price_per_hour: float = 0
    capacity: int | None = None
    facilities: list[str] = Field(default_factory=list)
    description: str | None = None
    venue_name: str | None = None
    venue_city: str | None = None
    venue_district: str | None = None
    venue_latitude: float | None = None
    venue_longitude: float | None = None
    primary_image_url: str | None = None
    average_rating: float = 0
    review_count: int = 0
    distance_km: float | None = None
    distance_label: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "CourtSummary":
        return cls(
            id=row["id"],
            slug=row.get("slug") or "",
            name=row.get("name") or "",
            sport=row.get("sport") or "",
            surface=row.get("surface"),
            price_per_hour=as_float(row.get("price_per_hour")),
            capacity=row.get("capacity"),
            facilities=as_list(row.get("facilities") or row.get("amenities")),
            description=row.get("description"),
            venue_name=row.get("venue_name"),
            venue_city=row.get("venue_city"),
            venue_district=row.get("venue_district"),
            venue_latitude=as_optional_float(row.get("venue_latitude")),
            venue_longitude=as_optional_float(row.get("venue_longitude")),
            primary_image_url=row.get("primary_image_url"),
            average_rating=as_float(row.get("average_rating")),
            review_count=int(row.get("review_count") or 0),
        )


class CourtImage(CamelModel):
    id: str
    image_url: str
    caption: str | None = None
    is_primary: bool = False
    display_order: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "CourtImage":
        return cls(
            id=row["id"],
            image_url=row.get("image_url") or "",
            caption=row.get("caption"),
            is_primary=bool(row.get("is_primary")),
            display_order=int(row.get("display_order") or 0),
        )


class CourtReview(CamelModel):
    id: str
    rating: float
    comment: str | None = None
    author: str | None = None
    created_at: str | None = None
    forum_thread_id: str | None = None


class CourtDetail(CourtSummary):
    images: list[CourtImage] = Field(default_factory=list)
    reviews: list[CourtReview] = Field(default_factory=list)


class VenueCourt(CamelModel):
    id: str
    slug: str | None = None
    name: str
    sport: str
    price_per_hour: float = 0
    is_active: bool = True


class VenueListing(CamelModel):
    id: str
    slug: str | None = None
    name: str
    city: str | None = None
    district: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    description: str | None = None
    courts: list[VenueCourt] = Field(default_factory=list)
    distance_km: float | None = None
    distance_label: str | None = None


class SearchResult(CamelModel):
    type: Literal["court", "venue", "forum"]
    title: str
    description: str
    href: str


class BookingSlot(CamelModel):
    id: str
    start_time: str
    end_time: str
    status: str
    payment_status: str
