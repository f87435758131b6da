from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Server
    port: int = 8000
    debug: bool = False
    app_url: str = "http://localhost:3000"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Supabase
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_jwt_secret: str = ""
    court_images_bucket: str = "court-images"

    # Booking rules
    booking_horizon_months: int = 3
    payment_window_hours: int = 3
    cancellation_cutoff_hours: int = 2
    pending_expiry_minutes: int = 30
    operating_hours_per_day: int = 16

    # Jobs (empty disables the x-cron-secret check)
    cron_secret: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
