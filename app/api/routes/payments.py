"""
API routes for Midtrans payments: ad-hoc Snap transactions and the
notification webhook.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from supabase import Client

from app.api.deps import get_db, get_gateway
from app.api.middleware.auth import AuthenticatedUser, get_current_user
from app.models.base import CamelModel
from app.payments.midtrans import MidtransService
from app.services.payments import PaymentSyncService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/payments", tags=["payments"])


# ══════════════════════════════════════════════════════════
# Request/Response Models
# ══════════════════════════════════════════════════════════


class SnapCustomer(CamelModel):
    first_name: str | None = None
    email: str | None = None


class CreateTransactionRequest(CamelModel):
    """Ad-hoc Snap transaction; items missing id, price or quantity are dropped."""

    order_id: str | None = None
    amount: Any = None
    court_name: str | None = None
    customer: SnapCustomer | None = None
    items: list[dict[str, Any]] | None = None
    success_redirect_url: str | None = None


# ══════════════════════════════════════════════════════════
# Endpoints
# ══════════════════════════════════════════════════════════


@router.post("/midtrans")
async def create_transaction(
    body: CreateTransactionRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    gateway: MidtransService = Depends(get_gateway),
) -> dict[str, Any]:
    transaction = await gateway.create_transaction(
        order_id=body.order_id,
        amount=body.amount,
        court_name=body.court_name,
        customer=body.customer.model_dump() if body.customer else None,
        items=body.items,
        success_redirect_url=body.success_redirect_url,
    )
    return {"data": {"token": transaction.token, "redirectUrl": transaction.redirect_url}}


@router.post("/midtrans/webhook")
async def midtrans_webhook(
    request: Request,
    db: Client = Depends(get_db),
    gateway: MidtransService = Depends(get_gateway),
):
    """
    Midtrans HTTP notification.

    The signature is read from the x-callback-signature header, falling back
    to the signature_key field Midtrans puts in the body.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw)
    except ValueError:
        logger.error("Invalid Midtrans webhook payload")
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid JSON payload"})

    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid JSON payload"})

    signature = request.headers.get("x-callback-signature") or payload.get("signature_key")
    return await PaymentSyncService(db, gateway).handle_webhook(payload, signature)
