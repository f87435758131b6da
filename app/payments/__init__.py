"""
Midtrans payment gateway integration.
"""

from app.payments.config import MidtransConfig, get_midtrans_config
from app.payments.midtrans import (
    MidtransService,
    MidtransTransactionError,
    SnapTransaction,
    get_midtrans_service,
    verify_signature,
)

__all__ = [
    "MidtransConfig",
    "get_midtrans_config",
    "MidtransService",
    "MidtransTransactionError",
    "SnapTransaction",
    "get_midtrans_service",
    "verify_signature",
]
