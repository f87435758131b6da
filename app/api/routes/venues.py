"""
Venue directory and the venue partner's booking status action.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from supabase import Client

from app.api.deps import get_db
from app.api.middleware.auth import AuthenticatedUser, require_venue_partner
from app.services.catalog import CatalogService
from app.services.venues import VenueService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/venues", tags=["venues"])


class BookingActionRequest(BaseModel):
    action: str  # check_in | complete


@router.get("")
async def list_venues(
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    """All venues with their active courts; sorted by distance when lat/lng are given."""
    venues = CatalogService(db).list_venues(latitude=lat, longitude=lng)
    return {"data": [venue.to_api() for venue in venues]}


@router.patch("/bookings/{booking_id}/status")
async def update_booking_status(
    booking_id: str,
    body: BookingActionRequest,
    auth: AuthenticatedUser = Depends(require_venue_partner),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    """Check a player in or mark the session completed."""
    result = VenueService(db).update_booking_status(auth.user_id, booking_id, body.action)
    return {"data": result}
