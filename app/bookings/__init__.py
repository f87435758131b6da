"""
Booking domain: status model and pure booking rules.
"""

from app.bookings.status import (
    BookingStatus,
    PaymentStatus,
    StatusMapping,
    map_gateway_response,
    map_gateway_status,
    normalize_booking_status,
    normalize_payment_status,
    reconcile,
    should_check_gateway,
)

__all__ = [
    "BookingStatus",
    "PaymentStatus",
    "StatusMapping",
    "map_gateway_response",
    "map_gateway_status",
    "normalize_booking_status",
    "normalize_payment_status",
    "reconcile",
    "should_check_gateway",
]
