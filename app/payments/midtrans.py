"""
Midtrans gateway client.

Creates Snap transactions, polls transaction status from the Core API and
verifies webhook signatures. All HTTP goes through httpx.AsyncClient.
"""

import base64
import hashlib
import hmac
import math
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from app.errors import CourtEaseError
from app.payments.config import MidtransConfig, get_midtrans_config

logger = structlog.get_logger()

DEFAULT_ITEM_ID = "court-reservation"
DEFAULT_ITEM_NAME = "Booking Lapangan CourtEase"
DEFAULT_CUSTOMER_NAME = "CourtEase User"
DEFAULT_CUSTOMER_EMAIL = "no-reply@courtease.id"


class MidtransTransactionError(CourtEaseError):
    """Snap transaction could not be created."""

    def __init__(self, message: str, status_code: int = 500, detail: Any = None):
        super().__init__(message, status_code)
        self.detail = detail


@dataclass
class SnapTransaction:
    token: str
    redirect_url: str | None = None


def _number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return float("nan")
    return number


def sanitize_items(
    items: list[dict[str, Any]] | None,
    fallback_name: str | None,
    amount: int,
) -> list[dict[str, Any]]:
    """Keep items with an id, positive price and quantity; else one fallback line."""
    valid = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        item_id = item.get("id").strip() if isinstance(item.get("id"), str) else ""
        price = _number(item.get("price"))
        quantity = _number(item.get("quantity"))
        if not item_id:
            continue
        if not math.isfinite(price) or price <= 0:
            continue
        if not math.isfinite(quantity) or quantity <= 0:
            continue
        valid.append(
            {
                "id": item_id,
                "price": int(price) if price.is_integer() else price,
                "quantity": int(quantity) if quantity.is_integer() else quantity,
                "name": item.get("name") or fallback_name or DEFAULT_ITEM_NAME,
            }
        )

    if valid:
        return valid

    return [
        {
            "id": DEFAULT_ITEM_ID,
            "price": amount,
            "quantity": 1,
            "name": fallback_name or DEFAULT_ITEM_NAME,
        }
    ]


def sanitize_customer(customer: dict[str, Any] | None) -> dict[str, str]:
    customer = customer or {}
    first_name = customer.get("first_name")
    email = customer.get("email")
    return {
        "first_name": first_name.strip()
        if isinstance(first_name, str) and first_name.strip()
        else DEFAULT_CUSTOMER_NAME,
        "email": email.strip() if isinstance(email, str) and email.strip() else DEFAULT_CUSTOMER_EMAIL,
    }


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_signature(payload: dict[str, Any], signature: str | None, server_key: str) -> bool:
    """
    Check a webhook signature.

    Midtrans signs notifications with
    SHA-512(order_id + status_code + gross_amount + server_key).
    """
    if not signature or not server_key:
        return False
    expected = compute_signature(
        str(payload.get("order_id") or ""),
        str(payload.get("status_code") or ""),
        str(payload.get("gross_amount") or ""),
        server_key,
    )
    return hmac.compare_digest(expected, signature.strip().lower())


class MidtransService:
    """Service for talking to the Midtrans Snap and Core APIs."""

    def __init__(
        self,
        config: MidtransConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or get_midtrans_config()
        self.server_key = self.config.midtrans_server_key.strip()
        self.snap_base_url = self.config.midtrans_snap_base_url.rstrip("/")
        self.api_base_url = self.config.midtrans_api_base_url.rstrip("/")
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.server_key)

    def _auth_header(self) -> str:
        token = base64.b64encode(f"{self.server_key}:".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.config.midtrans_timeout_seconds,
        )

    async def create_transaction(
        self,
        order_id: str,
        amount: int,
        court_name: str | None = None,
        customer: dict[str, Any] | None = None,
        items: list[dict[str, Any]] | None = None,
        success_redirect_url: str | None = None,
    ) -> SnapTransaction:
        """
        Create a Snap transaction.

        Raises:
            MidtransTransactionError: 500 when unconfigured, 400 for a blank
                order id or non-positive amount, 502 when the gateway fails
                or answers with something unusable.
        """
        if not self.is_configured:
            raise MidtransTransactionError(
                "Midtrans belum dikonfigurasi. Isi MIDTRANS_SERVER_KEY di environment server.",
                status_code=500,
            )

        order_id = (order_id or "").strip()
        if not order_id:
            raise MidtransTransactionError("ID pesanan Midtrans tidak valid.", status_code=400)

        gross = _number(amount)
        if not math.isfinite(gross) or gross <= 0:
            raise MidtransTransactionError("Jumlah pembayaran tidak valid.", status_code=400)

        payload: dict[str, Any] = {
            "transaction_details": {"order_id": order_id, "gross_amount": amount},
            "customer_details": sanitize_customer(customer),
            "item_details": sanitize_items(items, court_name, amount),
            "credit_card": {"secure": True},
        }
        if success_redirect_url and success_redirect_url.strip():
            payload["callbacks"] = {"finish": success_redirect_url.strip()}

        logger.info("Creating Midtrans transaction", order_id=order_id, amount=amount)

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.snap_base_url}/snap/v1/transactions",
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": self._auth_header(),
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error("Midtrans request failed", order_id=order_id, error=str(e))
            raise MidtransTransactionError(
                "Gagal membuat transaksi Midtrans.", status_code=502, detail=str(e)
            )

        if response.is_error:
            logger.error(
                "Midtrans rejected transaction",
                order_id=order_id,
                status=response.status_code,
                detail=response.text,
            )
            raise MidtransTransactionError(
                "Gagal membuat transaksi Midtrans.", status_code=502, detail=response.text
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MidtransTransactionError(
                "Midtrans mengembalikan respons tidak valid.", status_code=502, detail=str(e)
            )

        if not isinstance(data, dict):
            raise MidtransTransactionError(
                "Midtrans mengembalikan respons tidak valid.", status_code=502
            )

        token = next(
            (
                data[key]
                for key in ("token", "snap_token")
                if isinstance(data.get(key), str) and data[key].strip()
            ),
            None,
        )
        if not token:
            raise MidtransTransactionError(
                "Midtrans mengembalikan respons tidak valid.", status_code=502, detail=data
            )

        redirect_url = data.get("redirect_url")
        if not isinstance(redirect_url, str) or not redirect_url.strip():
            redirect_url = None

        logger.info("Midtrans transaction created", order_id=order_id)
        return SnapTransaction(token=token, redirect_url=redirect_url)

    async def get_transaction_status(self, order_id: str | None) -> dict[str, Any] | None:
        """
        Fetch the current transaction status for an order.

        Returns None when the gateway is unconfigured, the order id is blank,
        the request fails or the body is not a JSON object.
        """
        if not self.is_configured:
            logger.warning("Midtrans server key not configured, skipping status check")
            return None

        order_id = (order_id or "").strip()
        if not order_id:
            return None

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.api_base_url}/v2/{quote(order_id, safe='')}/status",
                    headers={
                        "Accept": "application/json",
                        "Authorization": self._auth_header(),
                    },
                )
        except httpx.HTTPError as e:
            logger.error("Midtrans status request failed", order_id=order_id, error=str(e))
            return None

        if response.is_error:
            logger.error(
                "Failed to fetch Midtrans transaction status",
                order_id=order_id,
                status=response.status_code,
                detail=response.text,
            )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.error("Invalid Midtrans status response", order_id=order_id)
            return None

        return data if isinstance(data, dict) else None


# Singleton instance
_midtrans_service: MidtransService | None = None


def get_midtrans_service() -> MidtransService:
    """Get or create the Midtrans service singleton."""
    global _midtrans_service
    if _midtrans_service is None:
        _midtrans_service = MidtransService()
    return _midtrans_service
