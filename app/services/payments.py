"""
Payment synchronisation between bookings and Midtrans.

The same reconciliation runs from four places: when a booking is read,
when the client polls explicitly, when Midtrans posts a notification, and
from the expired-booking cleanup job.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import structlog
from supabase import Client

from app.bookings.rules import WIB, is_stale_pending
from app.bookings.status import (
    BookingStatus,
    PaymentStatus,
    StatusMapping,
    map_gateway_response,
    normalize_booking_status,
    normalize_payment_status,
    reconcile,
    should_check_gateway,
)
from app.db.repository import BookingRepository
from app.errors import CourtEaseError, NotFoundError
from app.payments.midtrans import MidtransService, verify_signature

logger = structlog.get_logger()

_CANCELLED = StatusMapping(PaymentStatus.CANCELLED, BookingStatus.CANCELLED)


def parse_transaction_time(value: Any) -> datetime | None:
    """Midtrans reports 'YYYY-MM-DD HH:MM:SS' in WIB without an offset."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    return parsed.replace(tzinfo=WIB) if parsed.tzinfo is None else parsed


class PaymentSyncService:
    """Keeps local booking/payment statuses in line with the gateway."""

    def __init__(self, client: Client, gateway: MidtransService):
        self.bookings = BookingRepository(client)
        self.gateway = gateway

    async def sync_booking(self, booking: dict[str, Any]) -> dict[str, Any]:
        """
        Poll the gateway for an open payment and persist any status change.

        Never raises: on any failure the booking's current statuses are kept.
        Returns the booking row with the (possibly) updated statuses applied.
        """
        if not booking.get("payment_reference") or not should_check_gateway(
            booking.get("payment_status")
        ):
            return booking

        try:
            response = await self.gateway.get_transaction_status(booking["payment_reference"])
            outcome = reconcile(booking, map_gateway_response(response))
            if not outcome.changed:
                return booking

            self.bookings.update(booking["id"], **outcome.changes)
            logger.info(
                "Booking synced from Midtrans",
                booking_id=booking["id"],
                status=outcome.booking_status.value,
                payment_status=outcome.payment_status.value,
            )
            return {**booking, **outcome.changes}
        except Exception as e:
            logger.error("Failed to sync Midtrans payment status", booking_id=booking.get("id"), error=str(e))
            return booking

    async def check_payment_status(self, booking_id: str, profile_id: str) -> dict[str, Any]:
        """Explicit poll requested by the booking owner."""
        booking = self.bookings.get_for_profile(booking_id, profile_id)
        if not booking:
            raise NotFoundError("Booking tidak ditemukan atau bukan milik kamu.")

        current = {
            "id": booking["id"],
            "status": normalize_booking_status(booking.get("status")).value,
            "payment_status": normalize_payment_status(booking.get("payment_status")).value,
        }

        if not booking.get("payment_reference"):
            return {
                "success": True,
                "message": "No payment reference found - might be manual booking",
                "midtrans_status": None,
                "status_mapping": None,
                "booking": current,
                "status_updated": False,
            }

        response = await self.gateway.get_transaction_status(booking["payment_reference"])
        if response is None:
            return {
                "success": False,
                "message": "Could not retrieve payment status from Midtrans",
                "midtrans_status": None,
                "status_mapping": None,
                "booking": current,
                "status_updated": False,
            }

        mapping = map_gateway_response(response)
        outcome = reconcile(booking, mapping)
        if outcome.changed:
            self.bookings.update(booking["id"], **outcome.changes)
            logger.info(
                "Booking updated from payment status check",
                booking_id=booking["id"],
                changes=outcome.changes,
            )

        return {
            "success": True,
            "message": "Payment status retrieved and booking updated"
            if outcome.changed
            else "Payment status retrieved",
            "midtrans_status": response,
            "status_mapping": mapping.as_dict() if mapping else None,
            "booking": {
                "id": booking["id"],
                "status": outcome.booking_status.value,
                "payment_status": outcome.payment_status.value,
            },
            "status_updated": outcome.changed,
        }

    async def handle_webhook(self, payload: dict[str, Any], signature: str | None) -> dict[str, Any]:
        """
        Apply a Midtrans notification.

        Bad signatures (401) and a missing order id (400) are rejected;
        everything past that point is acknowledged with status ok so the
        gateway does not keep retrying.
        """
        server_key = self.gateway.server_key
        if not server_key:
            logger.error("MIDTRANS_SERVER_KEY is not configured")
            raise CourtEaseError("Server configuration error", status_code=500)

        if not verify_signature(payload, signature, server_key):
            logger.warning("Webhook signature verification failed", order_id=payload.get("order_id"))
            raise CourtEaseError("Invalid signature", status_code=401)

        order_id = payload.get("order_id")
        if not order_id:
            raise CourtEaseError("Missing order_id", status_code=400)

        logger.info(
            "Processing Midtrans webhook",
            order_id=order_id,
            transaction_status=payload.get("transaction_status"),
            fraud_status=payload.get("fraud_status"),
            payment_type=payload.get("payment_type"),
        )

        try:
            mapping = map_gateway_response(payload)
            if mapping is None:
                logger.warning("Unable to map Midtrans status", transaction_status=payload.get("transaction_status"))
                return {"status": "ok"}

            booking = self.bookings.get_by_payment_reference(order_id)
            if not booking:
                logger.error("Booking not found for order_id", order_id=order_id)
                return {"status": "ok"}

            paid_at = parse_transaction_time(payload.get("settlement_time") or payload.get("transaction_time"))
            outcome = reconcile(booking, mapping, now=paid_at)
            if not outcome.changed:
                return {"status": "ok"}

            self.bookings.update(booking["id"], **outcome.changes)
            logger.info(
                "Booking updated from webhook",
                booking_id=booking["id"],
                payment_reference=order_id,
                old_status=booking.get("status"),
                old_payment_status=booking.get("payment_status"),
                new_status=outcome.booking_status.value,
                new_payment_status=outcome.payment_status.value,
            )
            return {"status": "ok", "message": "Booking updated successfully"}
        except Exception as e:
            logger.error("Unexpected error in Midtrans webhook", order_id=order_id, error=str(e))
            return {"status": "ok"}

    async def cancel_expired_bookings(self, now: datetime | None = None, expiry_minutes: int = 30) -> dict[str, Any]:
        """
        Resolve pending bookings whose payment window lapsed.

        Each stale booking is checked against the gateway once more: paid
        bookings are completed, everything else is cancelled.
        """
        now = now or datetime.now(timezone.utc)
        stale = [
            booking
            for booking in self.bookings.list_stale_pending(now - timedelta(minutes=expiry_minutes))
            if is_stale_pending(booking, now, expiry_minutes)
        ]

        if not stale:
            logger.info("No expired bookings found to process")
            return {"success": True, "message": "No expired bookings found", "processed": 0, "updated": 0}

        logger.info("Processing expired bookings", count=len(stale))
        processed = updated = 0

        for booking in stale:
            processed += 1
            mapping = None
            if booking.get("payment_reference"):
                response = await self.gateway.get_transaction_status(booking["payment_reference"])
                mapping = map_gateway_response(response)

            if mapping is None or mapping.payment_status != PaymentStatus.PAID:
                mapping = _CANCELLED

            outcome = reconcile(booking, mapping, now=now)
            if not outcome.changed:
                continue
            try:
                self.bookings.update(booking["id"], **outcome.changes)
                updated += 1
                logger.info(
                    "Expired booking resolved",
                    booking_id=booking["id"],
                    status=outcome.booking_status.value,
                    payment_status=outcome.payment_status.value,
                )
            except Exception as e:
                logger.error("Failed to update expired booking", booking_id=booking["id"], error=str(e))

        return {
            "success": True,
            "message": f"Processed {processed} expired bookings, updated {updated}",
            "processed": processed,
            "updated": updated,
        }

    async def stream_payment_status(
        self,
        booking_id: str,
        profile_id: str,
        interval: float = 5.0,
        timeout: float = 300.0,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Yield the booking's payment status until it leaves the open states.

        Emits one event per poll; stops on a terminal payment status, when the
        booking disappears, or after ``timeout`` seconds.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        last: tuple[str, str] | None = None

        while True:
            booking = self.bookings.get_for_profile(booking_id, profile_id)
            if not booking:
                yield {"event": "error", "data": {"error": "Booking tidak ditemukan."}}
                return

            booking = await self.sync_booking(booking)
            state = (
                normalize_booking_status(booking.get("status")).value,
                normalize_payment_status(booking.get("payment_status")).value,
            )
            if state != last:
                yield {
                    "event": "status",
                    "data": {"booking_id": booking_id, "status": state[0], "payment_status": state[1]},
                }
                last = state

            if not should_check_gateway(state[1]):
                yield {"event": "done", "data": {"booking_id": booking_id, "payment_status": state[1]}}
                return

            if loop.time() >= deadline:
                yield {"event": "timeout", "data": {"booking_id": booking_id}}
                return

            await asyncio.sleep(interval)
