"""
bugdesk Analytics Aggregator

Pure transformation of a (tickets, users) snapshot into AnalyticsData.

- No state between calls: the same snapshot and `now` give the same result
- Time buckets are half-open [start, next_start): an instant exactly on a
  boundary belongs to the later bucket only
- Calendar math runs in the timezone of `now` (UTC by default)
"""

from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..models.analytics import (
    AnalyticsData,
    CategoryCount,
    DashboardSummary,
    HeatmapCell,
    MonthlyTrend,
    UserPerformance,
    WeeklyTrend,
)
from ..models.base import utcnow
from ..models.ticket import Priority, Ticket, TicketStatus, TicketType
from ..models.user import User


# Display name + hex color per category, in chart order
STATUS_DISPLAY = (
    (TicketStatus.OPEN, "Open", "#3B82F6"),
    (TicketStatus.IN_PROGRESS, "In Progress", "#8B5CF6"),
    (TicketStatus.TESTING, "Testing", "#F59E0B"),
    (TicketStatus.CLOSED, "Closed", "#10B981"),
)

PRIORITY_DISPLAY = (
    (Priority.CRITICAL, "Critical", "#EF4444"),
    (Priority.HIGH, "High", "#F97316"),
    (Priority.MEDIUM, "Medium", "#EAB308"),
    (Priority.LOW, "Low", "#22C55E"),
)

TYPE_DISPLAY = (
    (TicketType.BUG, "Bug", "#EF4444"),
    (TicketType.FEATURE, "Feature", "#8B5CF6"),
    (TicketType.ENHANCEMENT, "Enhancement", "#06B6D4"),
    (TicketType.TASK, "Task", "#84CC16"),
)

SUNDAY = 6  # date.weekday()

TREND_BUCKETS = 12
HEATMAP_DAYS = 365


def round_percent(part: int, whole: int) -> int:
    """round(part / whole * 100), halves rounded up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


class AnalyticsAggregator:
    """
    Stateless aggregation over ticket/user snapshots.

    week_starts_on uses date.weekday() numbering (Monday=0 ... Sunday=6).
    """

    def __init__(
        self,
        week_starts_on: int = SUNDAY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.week_starts_on = week_starts_on
        self.clock = clock

    def generate(
        self,
        tickets: Sequence[Ticket],
        users: Sequence[User],
        now: Optional[datetime] = None,
    ) -> AnalyticsData:
        now = now or self.clock()
        return AnalyticsData(
            tickets_by_status=self.status_breakdown(tickets),
            tickets_by_priority=self.priority_breakdown(tickets),
            tickets_by_type=self.type_breakdown(tickets),
            user_performance=self.user_performance(tickets, users),
            weekly_trends=self.weekly_trends(tickets, now),
            monthly_trends=self.monthly_trends(tickets, now),
            activity_heatmap=self.activity_heatmap(tickets, now),
        )

    # =========================================================================
    # Categorical breakdowns
    # =========================================================================

    def status_breakdown(self, tickets: Iterable[Ticket]) -> List[CategoryCount]:
        return _breakdown((t.status for t in tickets), STATUS_DISPLAY)

    def priority_breakdown(self, tickets: Iterable[Ticket]) -> List[CategoryCount]:
        return _breakdown((t.priority for t in tickets), PRIORITY_DISPLAY)

    def type_breakdown(self, tickets: Iterable[Ticket]) -> List[CategoryCount]:
        return _breakdown((t.type for t in tickets), TYPE_DISPLAY)

    # =========================================================================
    # Per-user performance
    # =========================================================================

    def user_performance(
        self,
        tickets: Sequence[Ticket],
        users: Iterable[User],
    ) -> List[UserPerformance]:
        """
        Assigned/resolved counts per roster user, in roster order.

        Users with nothing assigned are left out. Tickets assigned to ids
        missing from the roster are not counted anywhere.
        """
        assigned = Counter(t.assignee_id for t in tickets if t.assignee_id)
        resolved = Counter(
            t.assignee_id for t in tickets
            if t.assignee_id and t.status == TicketStatus.CLOSED
        )

        rows = []
        for user in users:
            total = assigned.get(user.id, 0)
            if total == 0:
                continue
            done = resolved.get(user.id, 0)
            rows.append(UserPerformance(
                user=user.name,
                resolved=done,
                assigned=total,
                completion_rate=round_percent(done, total),
            ))
        return rows

    # =========================================================================
    # Time windows
    # =========================================================================

    def week_start(self, day: date) -> date:
        offset = (day.weekday() - self.week_starts_on) % 7
        return day - timedelta(days=offset)

    def weekly_trends(self, tickets: Sequence[Ticket], now: datetime) -> List[WeeklyTrend]:
        """
        One bucket per week from the week of `now - 11 weeks` through the
        week of `now`: always 12 buckets.
        """
        now = _aware(now)
        tz = now.tzinfo
        first = self.week_start((now - timedelta(weeks=TREND_BUCKETS - 1)).date())

        trends = []
        for index in range(TREND_BUCKETS):
            start_day = first + timedelta(weeks=index)
            start = _midnight(start_day, tz)
            end = _midnight(start_day + timedelta(weeks=1), tz)
            created, resolved = _window_counts(tickets, start, end)
            trends.append(WeeklyTrend(
                week=start.strftime("%b %d"),
                created=created,
                resolved=resolved,
                date=start.isoformat(),
            ))
        return trends

    def monthly_trends(self, tickets: Sequence[Ticket], now: datetime) -> List[MonthlyTrend]:
        """The 12 calendar months ending with `now`'s month."""
        now = _aware(now)
        tz = now.tzinfo

        trends = []
        for back in range(TREND_BUCKETS - 1, -1, -1):
            year, month = _shift_month(now.year, now.month, -back)
            next_year, next_month = _shift_month(year, month, 1)
            start = _midnight(date(year, month, 1), tz)
            end = _midnight(date(next_year, next_month, 1), tz)
            created, resolved = _window_counts(tickets, start, end)
            trends.append(MonthlyTrend(
                month=start.strftime("%b %Y"),
                created=created,
                resolved=resolved,
                date=start.isoformat(),
            ))
        return trends

    def activity_heatmap(self, tickets: Iterable[Ticket], now: datetime) -> List[HeatmapCell]:
        """
        365 daily buckets ending today, counting tickets created that day.

        day/week are positional: cell i sits at column i % 7 of row i // 7,
        whatever weekday its date actually falls on.
        """
        now = _aware(now)
        tz = now.tzinfo
        per_day = Counter(t.created_at.astimezone(tz).date() for t in tickets)

        first = now.date() - timedelta(days=HEATMAP_DAYS - 1)
        cells = []
        for index in range(HEATMAP_DAYS):
            day = first + timedelta(days=index)
            cells.append(HeatmapCell(
                date=day.isoformat(),
                count=per_day.get(day, 0),
                day=index % 7,
                week=index // 7,
            ))
        return cells

    # =========================================================================
    # Dashboard
    # =========================================================================

    def dashboard_summary(
        self,
        tickets: Sequence[Ticket],
        users: Iterable[User],
        recent_limit: int = 6,
    ) -> DashboardSummary:
        by_status = Counter(t.status for t in tickets)
        total = len(tickets)
        closed = by_status.get(TicketStatus.CLOSED, 0)

        recent = sorted(tickets, key=lambda t: t.updated_at, reverse=True)[:recent_limit]
        open_critical = [
            t for t in tickets
            if t.priority == Priority.CRITICAL and t.status != TicketStatus.CLOSED
        ]

        return DashboardSummary(
            total_tickets=total,
            open_tickets=by_status.get(TicketStatus.OPEN, 0),
            in_progress_tickets=by_status.get(TicketStatus.IN_PROGRESS, 0),
            testing_tickets=by_status.get(TicketStatus.TESTING, 0),
            closed_tickets=closed,
            critical_tickets=sum(1 for t in tickets if t.priority == Priority.CRITICAL),
            resolution_rate=round_percent(closed, total),
            active_users=sum(1 for u in users if u.is_active),
            recent_tickets=recent,
            open_critical_tickets=open_critical,
        )


def generate_analytics(
    tickets: Sequence[Ticket],
    users: Sequence[User],
    now: Optional[datetime] = None,
) -> AnalyticsData:
    """Shortcut for AnalyticsAggregator().generate(...)."""
    return AnalyticsAggregator().generate(tickets, users, now)


# =============================================================================
# Helpers
# =============================================================================

def _breakdown(values: Iterable, display: Tuple) -> List[CategoryCount]:
    counts = Counter(values)
    return [
        CategoryCount(name=name, value=counts[key], color=color)
        for key, name, color in display
        if counts.get(key, 0) > 0
    ]


def _window_counts(tickets: Iterable[Ticket], start: datetime, end: datetime) -> Tuple[int, int]:
    """(created in [start, end), closed with updated_at in [start, end))."""
    created = 0
    resolved = 0
    for ticket in tickets:
        if start <= ticket.created_at < end:
            created += 1
        if ticket.status == TicketStatus.CLOSED and start <= ticket.updated_at < end:
            resolved += 1
    return created, resolved


def _aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _midnight(day: date, tz) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
