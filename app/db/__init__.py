"""
Database layer for CourtEase.

Uses Supabase as the backend for:
- PostgreSQL tables, views and RPCs
- Court image storage
"""

from app.db.client import get_supabase_client
from app.db.repository import (
    BlackoutRepository,
    BookingRepository,
    CourtImageRepository,
    CourtRepository,
    CourtSummaryRepository,
    ForumRepository,
    PartnerApplicationRepository,
    ProfileRepository,
    ReportRepository,
    ReviewRepository,
    VenueRepository,
)

__all__ = [
    "get_supabase_client",
    "BlackoutRepository",
    "BookingRepository",
    "CourtImageRepository",
    "CourtRepository",
    "CourtSummaryRepository",
    "ForumRepository",
    "PartnerApplicationRepository",
    "ProfileRepository",
    "ReportRepository",
    "ReviewRepository",
    "VenueRepository",
]
