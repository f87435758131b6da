"""
Midtrans configuration.

Reads environment variables:
- MIDTRANS_SERVER_KEY: server key used for Basic auth and webhook signatures
- MIDTRANS_SNAP_BASE_URL: Snap checkout host (sandbox by default)
- MIDTRANS_API_BASE_URL: Core API host used for status polling
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class MidtransConfig(BaseSettings):
    """Configuration for the Midtrans payment gateway."""

    midtrans_server_key: str = ""

    # API hosts
    midtrans_snap_base_url: str = "https://app.sandbox.midtrans.com"
    midtrans_api_base_url: str = "https://api.sandbox.midtrans.com"

    # Request settings
    midtrans_timeout_seconds: float = 15.0
    payment_window_hours: int = 3

    class Config:
        env_file = ".env"
        env_prefix = ""
        case_sensitive = False
        extra = "ignore"


@lru_cache(maxsize=1)
def get_midtrans_config() -> MidtransConfig:
    """Get cached Midtrans configuration from environment."""
    return MidtransConfig()


def validate_midtrans_config() -> bool:
    """Whether a server key is configured."""
    return bool(get_midtrans_config().midtrans_server_key.strip())
