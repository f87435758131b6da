"""
Supabase client configuration.
"""

from functools import lru_cache

from supabase import Client, create_client

from app.config import get_settings


def _get_url_and_key() -> tuple[str, str]:
    """Get Supabase URL and service key from settings."""
    settings = get_settings()
    url = settings.supabase_url
    key = settings.supabase_service_key

    if not url or not key:
        raise ValueError(
            "Supabase URL and key must be set. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_KEY"
        )

    return url, key


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get a cached Supabase client instance using the service key.

    Used for server-side reads/writes that bypass RLS (payment sync,
    webhooks, cleanup job, admin actions).
    """
    url, key = _get_url_and_key()
    return create_client(url, key)
