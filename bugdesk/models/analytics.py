"""
bugdesk Analytics Models

Derived, never persisted. Recomputed from the live ticket/user snapshot on
every request.
"""

from typing import List

from pydantic import Field

from .base import TrackerModel
from .ticket import Ticket


class CategoryCount(TrackerModel):
    """One slice of a categorical breakdown."""
    name: str
    value: int
    color: str  # Hex color for UI


class UserPerformance(TrackerModel):
    user: str  # Display name
    resolved: int
    assigned: int
    completion_rate: int  # Percent, rounded


class WeeklyTrend(TrackerModel):
    week: str  # e.g. "Mar 03"
    created: int
    resolved: int
    date: str  # ISO week start


class MonthlyTrend(TrackerModel):
    month: str  # e.g. "Mar 2024"
    created: int
    resolved: int
    date: str  # ISO month start


class HeatmapCell(TrackerModel):
    """
    One day of the activity heatmap.

    day/week are POSITIONAL (index % 7, index // 7) within the 365-day
    window, not the calendar weekday of `date`.
    """
    date: str  # YYYY-MM-DD
    count: int
    day: int
    week: int


class AnalyticsData(TrackerModel):
    tickets_by_status: List[CategoryCount] = Field(default_factory=list)
    tickets_by_priority: List[CategoryCount] = Field(default_factory=list)
    tickets_by_type: List[CategoryCount] = Field(default_factory=list)
    user_performance: List[UserPerformance] = Field(default_factory=list)
    weekly_trends: List[WeeklyTrend] = Field(default_factory=list)
    monthly_trends: List[MonthlyTrend] = Field(default_factory=list)
    activity_heatmap: List[HeatmapCell] = Field(default_factory=list)


class DashboardSummary(TrackerModel):
    """Headline numbers for the dashboard view."""
    total_tickets: int
    open_tickets: int
    in_progress_tickets: int
    testing_tickets: int
    closed_tickets: int
    critical_tickets: int
    resolution_rate: int  # Percent of tickets closed, rounded
    active_users: int

    recent_tickets: List[Ticket] = Field(default_factory=list)
    open_critical_tickets: List[Ticket] = Field(default_factory=list)
