"""
Booking view models returned by the booking and venue endpoints.
"""

from pydantic import Field

from app.models.base import CamelModel, as_float


class BookingCourt(CamelModel):
    id: str
    slug: str | None = None
    name: str
    sport: str | None = None
    price_per_hour: float = 0
    venue_name: str | None = None
    venue_city: str | None = None
    venue_address: str | None = None


class BookingReview(CamelModel):
    id: str
    rating: float
    comment: str | None = None
    forum_thread_id: str | None = None


class BookingView(CamelModel):
    """A booking as seen by its owner."""

    id: str
    start_time: str
    end_time: str
    status: str
    payment_status: str
    payment_reference: str | None = None
    payment_redirect_url: str | None = None
    payment_token: str | None = None
    payment_expires_at: str | None = None
    price_total: float = 0
    notes: str | None = None
    checked_in_at: str | None = None
    completed_at: str | None = None
    created_at: str | None = None
    court: BookingCourt | None = None
    review: BookingReview | None = None

    @classmethod
    def from_row(
        cls,
        row: dict,
        court: BookingCourt | None = None,
        review: BookingReview | None = None,
    ) -> "BookingView":
        return cls(
            id=row["id"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            status=row.get("status") or "pending",
            payment_status=row.get("payment_status") or "pending",
            payment_reference=row.get("payment_reference"),
            payment_redirect_url=row.get("payment_redirect_url"),
            payment_token=row.get("payment_token"),
            payment_expires_at=row.get("payment_expired_at"),
            price_total=as_float(row.get("price_total")),
            notes=row.get("notes"),
            checked_in_at=row.get("checked_in_at"),
            completed_at=row.get("completed_at"),
            created_at=row.get("created_at"),
            court=court,
            review=review,
        )


class PaymentSession(CamelModel):
    token: str
    redirect_url: str | None = None
    expires_at: str


class BookingStarted(CamelModel):
    booking_id: str
    payment: PaymentSession


class Pagination(CamelModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class BookingPage(CamelModel):
    bookings: list[BookingView] = Field(default_factory=list)
    pagination: Pagination


class VenueBookingView(CamelModel):
    """A booking row as listed on the venue dashboard."""

    id: str
    customer_name: str
    customer_email: str | None = None
    court_name: str
    court_type: str
    date: str
    start_time: str
    end_time: str
    duration: int
    total_price: float
    status: str
    payment_status: str
    booking_date: str | None = None
    notes: str | None = None
    checked_in_at: str | None = None
    completed_at: str | None = None
