"""
API routes for player bookings.

Start a booking with a Snap payment, list and read bookings, cancel,
poll or stream the payment status, and review a finished session.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sse_starlette.sse import EventSourceResponse
from supabase import Client

from app.api.deps import get_db, get_gateway
from app.api.middleware.auth import AuthenticatedUser, get_current_user
from app.models.base import CamelModel
from app.payments.midtrans import MidtransService
from app.services.bookings import BookingService
from app.services.payments import PaymentSyncService
from app.services.reviews import ReviewService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


# ══════════════════════════════════════════════════════════
# Request/Response Models
# ══════════════════════════════════════════════════════════


class StartBookingRequest(CamelModel):
    """Request to reserve a court; accepts courtId/startTime/endTime."""

    court_id: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    notes: str | None = None


class ReviewRequest(CamelModel):
    rating: Any = None
    comment: Any = None


# ══════════════════════════════════════════════════════════
# Endpoints
# ══════════════════════════════════════════════════════════


@router.post("/start")
async def start_booking(
    body: StartBookingRequest,
    request: Request,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    """Create a pending booking and return the Snap payment session."""
    service = BookingService(db, gateway)
    started = await service.start_booking(
        profile_id=auth.user_id,
        email=auth.email,
        court_id=body.court_id,
        start_time=body.start_time,
        end_time=body.end_time,
        notes=body.notes,
        origin=request.headers.get("origin"),
    )
    return {"data": started.to_api()}


@router.get("")
async def list_bookings(
    status: str | None = None,
    court_id: str | None = None,
    upcoming: bool = False,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    """List the caller's bookings, newest first."""
    page = BookingService(db, gateway).list_bookings(
        auth.user_id,
        status=status,
        court_id=court_id,
        upcoming=upcoming,
        limit=limit,
        offset=offset,
    )
    return {"data": page.to_api()}


@router.get("/{booking_id}")
async def get_booking(
    booking_id: str,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    """Booking detail with its payment status refreshed from Midtrans."""
    booking = await BookingService(db, gateway).get_booking(booking_id, auth.user_id)
    return {"data": booking.to_api()}


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    result = BookingService(db, gateway).cancel_booking(booking_id, auth.user_id)
    return {"data": result, "message": "Booking berhasil dibatalkan."}


@router.get("/{booking_id}/payment-status")
async def check_payment_status(
    booking_id: str,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    """Poll Midtrans for this booking and apply any status change."""
    return await PaymentSyncService(db, gateway).check_payment_status(booking_id, auth.user_id)


@router.get("/{booking_id}/payment-status/stream")
async def stream_payment_status(
    booking_id: str,
    interval: float = Query(5.0, ge=1.0, le=60.0),
    timeout: float = Query(300.0, ge=5.0, le=1800.0),
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
):
    """SSE endpoint re-polling the payment until it settles or times out."""
    service = PaymentSyncService(db, gateway)

    async def event_generator():
        logger.info("Client subscribed to payment status", booking_id=booking_id)
        async for event in service.stream_payment_status(
            booking_id, auth.user_id, interval=interval, timeout=timeout
        ):
            yield {"event": event["event"], "data": json.dumps(event["data"])}

    return EventSourceResponse(event_generator())


@router.post("/{booking_id}/review")
async def submit_review(
    booking_id: str,
    body: ReviewRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    result = ReviewService(db).submit_review(booking_id, auth.user_id, body.rating, body.comment)
    return {"data": result}
