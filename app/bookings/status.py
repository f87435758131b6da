"""
Booking and payment status model.

Holds the status enums, normalisation of raw database values, the lookup
table from Midtrans transaction statuses to local statuses, and the
reconciliation decision applied whenever a gateway status is observed
(on read, on explicit poll, on webhook, and from the cleanup job).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class BookingStatus(str, Enum):
    """Lifecycle of a court reservation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    """Local view of the payment attached to a booking."""

    PENDING = "pending"
    PROCESSING = "processing"
    WAITING_CONFIRMATION = "waiting_confirmation"
    PAID = "paid"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REFUNDED = "refunded"


# Statuses that still hold the court slot. Paid bookings are completed.
BLOCKING_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
    BookingStatus.COMPLETED,
)

# Payment statuses the gateway may still move.
OPEN_PAYMENT_STATUSES = (
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.WAITING_CONFIRMATION,
)


@dataclass(frozen=True)
class StatusMapping:
    """Local statuses implied by one gateway transaction status."""

    payment_status: PaymentStatus
    booking_status: BookingStatus

    def as_dict(self) -> dict[str, str]:
        return {
            "payment_status": self.payment_status.value,
            "booking_status": self.booking_status.value,
        }


_PAID = StatusMapping(PaymentStatus.PAID, BookingStatus.COMPLETED)
_AWAITING = StatusMapping(PaymentStatus.WAITING_CONFIRMATION, BookingStatus.PENDING)
_PENDING = StatusMapping(PaymentStatus.PENDING, BookingStatus.PENDING)
_EXPIRED = StatusMapping(PaymentStatus.EXPIRED, BookingStatus.CANCELLED)
_CANCELLED = StatusMapping(PaymentStatus.CANCELLED, BookingStatus.CANCELLED)
_REFUNDED = StatusMapping(PaymentStatus.REFUNDED, BookingStatus.CANCELLED)

GATEWAY_STATUS_TABLE: dict[str, StatusMapping] = {
    "settlement": _PAID,
    "capture": _PAID,
    "authorize": _AWAITING,
    "pending": _PENDING,
    "expire": _EXPIRED,
    "expired": _EXPIRED,
    "deny": _CANCELLED,
    "cancel": _CANCELLED,
    "failure": _CANCELLED,
    "refund": _REFUNDED,
    "partial_refund": _REFUNDED,
    "chargeback": _REFUNDED,
    "partial_chargeback": _REFUNDED,
}


def _clean(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def normalize_booking_status(raw: Any) -> BookingStatus:
    """Coerce a raw column value into a BookingStatus (unknown -> pending)."""
    try:
        return BookingStatus(_clean(raw))
    except ValueError:
        return BookingStatus.PENDING


def normalize_payment_status(raw: Any) -> PaymentStatus:
    """Coerce a raw column value into a PaymentStatus (unknown -> pending)."""
    try:
        return PaymentStatus(_clean(raw))
    except ValueError:
        return PaymentStatus.PENDING


def map_gateway_status(
    transaction_status: Any,
    fraud_status: Any = None,
) -> StatusMapping | None:
    """
    Map a Midtrans transaction status to local payment/booking statuses.

    Returns None when the status is empty or unknown, meaning "leave the
    booking alone".
    """
    status = _clean(transaction_status)
    if not status:
        return None

    if status == "capture" and _clean(fraud_status) == "challenge":
        return _AWAITING

    return GATEWAY_STATUS_TABLE.get(status)


def map_gateway_response(response: dict[str, Any] | None) -> StatusMapping | None:
    """Map a full Midtrans status/notification body."""
    if not response:
        return None
    return map_gateway_status(
        response.get("transaction_status"),
        response.get("fraud_status"),
    )


def should_check_gateway(payment_status: Any) -> bool:
    """Whether the gateway can still change this payment."""
    return normalize_payment_status(payment_status) in OPEN_PAYMENT_STATUSES


@dataclass
class Reconciliation:
    """Outcome of applying a gateway mapping to a booking."""

    booking_status: BookingStatus
    payment_status: PaymentStatus
    changes: dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def reconcile(
    booking: dict[str, Any],
    mapping: StatusMapping | None,
    now: datetime | None = None,
) -> Reconciliation:
    """
    Decide the next statuses for a booking row given a gateway mapping.

    A booking that already completed (by status or completed_at) keeps the
    completed status; only its payment status follows the gateway. The
    returned changes dict holds just the columns that differ.
    """
    current_booking = normalize_booking_status(booking.get("status"))
    current_payment = normalize_payment_status(booking.get("payment_status"))

    if mapping is None:
        return Reconciliation(current_booking, current_payment)

    is_completed = current_booking == BookingStatus.COMPLETED or bool(booking.get("completed_at"))
    next_booking = BookingStatus.COMPLETED if is_completed else mapping.booking_status
    next_payment = mapping.payment_status

    changes: dict[str, Any] = {}
    if next_payment != current_payment:
        changes["payment_status"] = next_payment.value
    if next_booking != current_booking:
        changes["status"] = next_booking.value

    if next_payment == PaymentStatus.PAID and not booking.get("payment_completed_at"):
        stamp = now or datetime.now(timezone.utc)
        changes["payment_completed_at"] = stamp.isoformat()

    return Reconciliation(next_booking, next_payment, changes)
