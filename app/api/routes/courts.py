"""
Public court catalog endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from supabase import Client

from app.api.deps import get_db
from app.services.catalog import CatalogService

router = APIRouter(prefix="/api/courts", tags=["courts"])


@router.get("")
async def list_courts(
    sport: str | None = None,
    city: str | None = None,
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    courts = CatalogService(db).list_courts(sport=sport, city=city)
    return {"data": [court.to_api() for court in courts]}


@router.get("/nearest")
async def nearest_courts(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    limit: int = Query(10, ge=1, le=50),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    """Courts ordered by distance from (lat, lng)."""
    courts = CatalogService(db).nearest_courts(lat, lng, limit=limit)
    return {"data": [court.to_api() for court in courts]}


@router.get("/{court_id}/availability")
async def court_availability(court_id: str, db: Client = Depends(get_db)) -> dict[str, Any]:
    """Existing reservations between now and the booking horizon."""
    slots = CatalogService(db).availability(court_id)
    return {"data": [slot.to_api() for slot in slots]}


@router.get("/{slug}")
async def get_court(slug: str, db: Client = Depends(get_db)) -> dict[str, Any]:
    return {"data": CatalogService(db).get_court(slug).to_api()}
