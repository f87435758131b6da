"""
Dashboard and report view models produced by the analytics service.
"""

from pydantic import Field

from app.models.base import CamelModel


class MonthlyRevenue(CamelModel):
    month: str
    revenue: float = 0
    booking_count: int = 0


class CourtPerformance(CamelModel):
    court_id: str
    court_name: str
    sport: str | None = None
    booking_count: int = 0
    revenue: float = 0


class TrendPoint(CamelModel):
    date: str
    bookings: int = 0


class BookingStats(CamelModel):
    total_bookings: int = 0
    average_occupancy: int = 0
    peak_hours: str = "N/A"
    peak_day: str = "N/A"


class VenueRevenueReport(CamelModel):
    total_revenue: float = 0
    monthly_revenue: list[MonthlyRevenue] = Field(default_factory=list)
    booking_stats: BookingStats = Field(default_factory=BookingStats)
    top_courts: list[CourtPerformance] = Field(default_factory=list)
    booking_trends: list[TrendPoint] = Field(default_factory=list)


class VenueBookingMetrics(CamelModel):
    total_bookings: int = 0
    today_bookings: int = 0
    upcoming_bookings: int = 0
    pending_bookings: int = 0
    today_revenue: float = 0
    occupancy_rate: int = 0
    available_hours: int = 0
    total_hours: int = 0


class CourtStats(CamelModel):
    court_id: str
    court_name: str
    total_revenue: float = 0
    today_revenue: float = 0
    total_bookings: int = 0
    today_bookings: int = 0


class VenueDashboardStats(CamelModel):
    total_revenue: float = 0
    today_revenue: float = 0
    total_bookings: int = 0
    today_bookings: int = 0
    courts: list[CourtStats] = Field(default_factory=list)
    top_courts: list[CourtStats] = Field(default_factory=list)


class BlackoutMetrics(CamelModel):
    total_blackouts: int = 0
    active_blackouts: int = 0
    upcoming_blackouts: int = 0
    affected_courts: int = 0
    most_affected_court: str = "None"
    total_affected_hours: float = 0
    total_courts: int = 0


class AdminStats(CamelModel):
    total_venues: int = 0
    total_users: int = 0
    total_courts: int = 0
    total_bookings: int = 0
    total_revenue: float = 0
    today_bookings: int = 0
    today_revenue: float = 0
    pending_applications: int = 0
    average_rating: float = 0


class UserStats(CamelModel):
    total_bookings: int = 0
    active_bookings: int = 0
    pending_payments: int = 0
    total_spent: float = 0
