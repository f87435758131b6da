"""
Shared FastAPI dependencies: database client and payment gateway.

Tests replace these through app.dependency_overrides.
"""

from supabase import Client

from app.db.client import get_supabase_client
from app.payments.midtrans import MidtransService, get_midtrans_service


def get_db() -> Client:
    return get_supabase_client()


def get_gateway() -> MidtransService:
    return get_midtrans_service()
