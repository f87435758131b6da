"""
HTTP-triggered maintenance jobs. Scheduling is left to an external cron.
"""

import hmac
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException
from supabase import Client

from app.api.deps import get_db, get_gateway
from app.api.middleware.auth import AuthenticatedUser, require_admin
from app.config import get_settings
from app.payments.midtrans import MidtransService
from app.services.payments import PaymentSyncService

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["jobs"])


def verify_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    secret = get_settings().cron_secret
    if secret and not hmac.compare_digest(secret, x_cron_secret or ""):
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@router.post("/jobs/cancel-expired-bookings", dependencies=[Depends(verify_cron_secret)])
async def cancel_expired_bookings(
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    """Resolve pending bookings whose payment window lapsed."""
    logger.info("Starting expired bookings cleanup job")
    return await PaymentSyncService(db, gateway).cancel_expired_bookings(
        expiry_minutes=get_settings().pending_expiry_minutes
    )


@router.get("/jobs/cancel-expired-bookings")
async def cleanup_usage() -> dict[str, Any]:
    return {
        "success": True,
        "message": "Use POST to trigger expired bookings cleanup job",
        "usage": {
            "method": "POST",
            "endpoint": "/api/jobs/cancel-expired-bookings",
            "description": "Cancels pending bookings older than the payment expiry window",
        },
    }


@router.post("/admin/payments/check-expired")
async def admin_check_expired(
    auth: AuthenticatedUser = Depends(require_admin),
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    """Same cleanup, triggered manually by an admin."""
    logger.info("Admin triggered expired bookings cleanup", admin=auth.user_id)
    return await PaymentSyncService(db, gateway).cancel_expired_bookings(
        expiry_minutes=get_settings().pending_expiry_minutes
    )
