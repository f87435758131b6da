"""
API routes for platform administrators.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from supabase import Client

from app.api.deps import get_db
from app.api.middleware.auth import AuthenticatedUser, require_admin
from app.services.admin import AdminService
from app.services.applications import ApplicationService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/admin", tags=["admin"])


class RejectRequest(BaseModel):
    reason: str | None = None


@router.get("/dashboard")
async def admin_dashboard(
    auth: AuthenticatedUser = Depends(require_admin),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    """Platform stats, chart series and top venues."""
    return {"data": AdminService(db).dashboard()}


@router.get("/venues/stats")
async def venue_stats(
    limit: int = Query(50, ge=1, le=200),
    auth: AuthenticatedUser = Depends(require_admin),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": AdminService(db).venue_stats(limit)}


@router.get("/bookings/recent")
async def recent_bookings(
    limit: int = Query(50, ge=1, le=200),
    auth: AuthenticatedUser = Depends(require_admin),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": AdminService(db).recent_bookings(limit)}


@router.get("/applications")
async def list_applications(
    status: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    auth: AuthenticatedUser = Depends(require_admin),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return {"data": ApplicationService(db).list(status, limit)}


@router.post("/applications/{application_id}/approve")
async def approve_application(
    application_id: str,
    auth: AuthenticatedUser = Depends(require_admin),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    logger.info("Approving partner application", application_id=application_id, admin=auth.user_id)
    return ApplicationService(db).approve(application_id, handled_by=auth.email)


@router.post("/applications/{application_id}/reject")
async def reject_application(
    application_id: str,
    body: RejectRequest | None = None,
    auth: AuthenticatedUser = Depends(require_admin),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    return ApplicationService(db).reject(
        application_id, handled_by=auth.email, note=body.reason if body else None
    )
