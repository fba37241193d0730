"""
bugdesk Models

Tickets own Comments and Activities; Users are referenced, never owned.
"""

from .base import TrackerModel, utcnow, new_id
from .ticket import (
    # Enums
    TicketStatus,
    Priority,
    TicketType,

    # Core models
    Ticket,
    Comment,
    Activity,
)
from .user import (
    Role,
    Resource,
    Action,
    Permission,
    User,
)
from .analytics import (
    CategoryCount,
    UserPerformance,
    WeeklyTrend,
    MonthlyTrend,
    HeatmapCell,
    AnalyticsData,
    DashboardSummary,
)

__all__ = [
    "TrackerModel", "utcnow", "new_id",
    "TicketStatus", "Priority", "TicketType",
    "Ticket", "Comment", "Activity",
    "Role", "Resource", "Action", "Permission", "User",
    "CategoryCount", "UserPerformance", "WeeklyTrend", "MonthlyTrend",
    "HeatmapCell", "AnalyticsData", "DashboardSummary",
]
