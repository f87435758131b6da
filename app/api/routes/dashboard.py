"""
API routes for the player and venue partner dashboards.

Venue endpoints require the venue_partner (or admin) role and only ever
touch the caller's own venues.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from supabase import Client

from app.api.deps import get_db, get_gateway
from app.api.middleware.auth import AuthenticatedUser, get_current_user, require_venue_partner
from app.models.base import CamelModel
from app.payments.midtrans import MidtransService
from app.services.bookings import BookingService
from app.services.venues import VenueService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


# ══════════════════════════════════════════════════════════
# Request/Response Models
# ══════════════════════════════════════════════════════════


class CourtRequest(CamelModel):
    """Court fields; unset fields are left untouched on update."""

    venue_id: str | None = None
    name: str | None = None
    sport: str | None = None
    surface: str | None = None
    price_per_hour: float | None = None
    capacity: int | None = None
    facilities: list[str] | None = None
    description: str | None = None
    is_active: bool | None = None


class BlackoutRequest(CamelModel):
    court_id: str
    title: str
    notes: str | None = None
    scope: str = "time_range"
    frequency: str = "once"
    start_date: str
    end_date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    repeat_day_of_week: int | None = None


class VenueSettingsRequest(CamelModel):
    name: str | None = None
    city: str | None = None
    district: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    description: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None


# ══════════════════════════════════════════════════════════
# Player
# ══════════════════════════════════════════════════════════


@router.get("/user")
async def user_dashboard(
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    """Upcoming bookings, recommended courts and booking totals."""
    return {"data": await BookingService(db, gateway).user_dashboard(auth.user_id)}


# ══════════════════════════════════════════════════════════
# Venue partner
# ══════════════════════════════════════════════════════════


@router.get("/venue")
async def venue_dashboard(
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": VenueService(db).dashboard(auth.user_id)}


@router.get("/venue/bookings")
async def venue_bookings(
    status: list[str] | None = Query(None),
    payment_status: list[str] | None = Query(None),
    date_from: str | None = None,
    date_to: str | None = None,
    court_id: str | None = None,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    bookings = VenueService(db).list_bookings(
        auth.user_id,
        statuses=status,
        payment_statuses=payment_status,
        date_from=date_from,
        date_to=date_to,
        court_id=court_id,
    )
    return {"data": [booking.to_api() for booking in bookings]}


@router.get("/venue/bookings/metrics")
async def venue_booking_metrics(
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": VenueService(db).booking_metrics(auth.user_id).to_api()}


@router.get("/venue/revenue")
async def venue_revenue(
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    """Six-month revenue report."""
    return {"data": VenueService(db).revenue_report(auth.user_id).to_api()}


@router.patch("/venue/settings")
async def update_venue_settings(
    body: VenueSettingsRequest,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    venue = VenueService(db).update_settings(auth.user_id, body.model_dump(exclude_unset=True))
    return {"data": venue}


# ── Courts ────────────────────────────────────────────────


@router.get("/venue/courts")
async def list_courts(
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": VenueService(db).list_courts(auth.user_id)}


@router.post("/venue/courts")
async def create_court(
    body: CourtRequest,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    court = VenueService(db).create_court(auth.user_id, body.model_dump(exclude_unset=True))
    return {"data": court}


@router.get("/venue/courts/{court_id}")
async def get_court(
    court_id: str,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": VenueService(db).get_court(auth.user_id, court_id)}


@router.patch("/venue/courts/{court_id}")
async def update_court(
    court_id: str,
    body: CourtRequest,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    updates = body.model_dump(exclude_unset=True)
    updates.pop("venue_id", None)
    return {"data": VenueService(db).update_court(auth.user_id, court_id, updates)}


@router.delete("/venue/courts/{court_id}")
async def delete_court(
    court_id: str,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return VenueService(db).delete_court(auth.user_id, court_id)


# ── Court images ──────────────────────────────────────────


@router.get("/venue/courts/{court_id}/images")
async def list_court_images(
    court_id: str,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    images = VenueService(db).list_images(auth.user_id, court_id)
    return {"data": [image.to_api() for image in images]}


@router.post("/venue/courts/{court_id}/images/upload")
async def upload_court_image(
    court_id: str,
    image: UploadFile = File(...),
    is_primary: bool = Form(False, alias="isPrimary"),
    caption: str | None = Form(None),
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    content = await image.read()
    uploaded = VenueService(db).upload_image(
        auth.user_id,
        court_id,
        filename=image.filename or "",
        content=content,
        content_type=image.content_type or "",
        is_primary=is_primary,
        caption=caption,
    )
    message = "Gambar berhasil diupload sebagai gambar utama" if uploaded.is_primary else "Gambar berhasil diupload"
    return {"data": {"message": message, "image": uploaded.to_api()}}


@router.patch("/venue/courts/{court_id}/images/{image_id}")
async def set_primary_image(
    court_id: str,
    image_id: str,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    """Make this image the court's primary image."""
    image = VenueService(db).set_primary_image(auth.user_id, court_id, image_id)
    return {"data": image.to_api()}


@router.delete("/venue/courts/{court_id}/images/{image_id}")
async def delete_court_image(
    court_id: str,
    image_id: str,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return VenueService(db).delete_image(auth.user_id, court_id, image_id)


# ── Blackouts ─────────────────────────────────────────────


@router.get("/venue/blackouts")
async def list_blackouts(
    court_id: str | None = None,
    active: bool | None = None,
    upcoming: bool = False,
    frequency: list[str] | None = Query(None),
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    blackouts = VenueService(db).list_blackouts(
        auth.user_id, court_id=court_id, active=active, upcoming=upcoming, frequencies=frequency
    )
    return {"data": blackouts}


@router.get("/venue/blackouts/metrics")
async def blackout_metrics(
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": VenueService(db).blackout_metrics(auth.user_id).to_api()}


@router.post("/venue/blackouts")
async def create_blackout(
    body: BlackoutRequest,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    blackout = VenueService(db).create_blackout(auth.user_id, body.model_dump())
    logger.info("Blackout created", blackout_id=blackout.get("id"), court_id=body.court_id)
    return {"data": blackout}


@router.delete("/venue/blackouts/{blackout_id}")
async def delete_blackout(
    blackout_id: str,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return VenueService(db).delete_blackout(auth.user_id, blackout_id)
