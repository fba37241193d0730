"""Breakdowns, user performance, trend buckets and the heatmap."""
from datetime import date, datetime, timedelta, timezone

import pytest

from bugdesk.services.analytics import AnalyticsAggregator, generate_analytics, round_percent
from bugdesk.services.identity import default_users


NOW = datetime(2024, 3, 13, 12, 0, tzinfo=timezone.utc)  # a Wednesday


@pytest.fixture
def users():
    return default_users(datetime(2023, 1, 1, tzinfo=timezone.utc))


# -- Categorical breakdowns ---------------------------------------------------

def test_status_breakdown_skips_empty_categories(aggregator, make_ticket):
    tickets = [
        make_ticket(status="open"),
        make_ticket(status="open"),
        make_ticket(status="closed"),
    ]
    rows = aggregator.status_breakdown(tickets)
    assert [(r.name, r.value, r.color) for r in rows] == [
        ("Open", 2, "#3B82F6"),
        ("Closed", 1, "#10B981"),
    ]


def test_breakdowns_sum_to_ticket_count(aggregator, make_ticket):
    statuses = ["open", "in-progress", "testing", "closed", "closed", "open", "testing"]
    tickets = [make_ticket(status=s) for s in statuses]
    data = aggregator.generate(tickets, [], now=NOW)

    for rows in (data.tickets_by_status, data.tickets_by_priority, data.tickets_by_type):
        assert sum(r.value for r in rows) == len(tickets)
        assert all(r.value > 0 for r in rows)


def test_priority_and_type_order_and_colors(aggregator, make_ticket):
    tickets = [
        make_ticket(priority="low", type="task"),
        make_ticket(priority="critical", type="bug"),
        make_ticket(priority="critical", type="enhancement"),
    ]
    assert [(r.name, r.value, r.color) for r in aggregator.priority_breakdown(tickets)] == [
        ("Critical", 2, "#EF4444"),
        ("Low", 1, "#22C55E"),
    ]
    assert [r.name for r in aggregator.type_breakdown(tickets)] == ["Bug", "Enhancement", "Task"]
    assert aggregator.type_breakdown(tickets)[1].color == "#06B6D4"


def test_empty_snapshot_has_no_breakdown_rows(aggregator):
    data = aggregator.generate([], [], now=NOW)
    assert data.tickets_by_status == []
    assert data.tickets_by_priority == []
    assert data.tickets_by_type == []
    assert data.user_performance == []


# -- User performance ---------------------------------------------------------

def test_completion_rate_three_assigned_one_closed(aggregator, make_ticket, users):
    tickets = [
        make_ticket(assignee_id="3", status="closed"),
        make_ticket(assignee_id="3", status="open"),
        make_ticket(assignee_id="3", status="testing"),
    ]
    rows = aggregator.user_performance(tickets, users)
    assert len(rows) == 1
    row = rows[0]
    assert (row.user, row.assigned, row.resolved, row.completion_rate) == ("Alex Chen", 3, 1, 33)


def test_users_without_assignments_are_excluded(aggregator, make_ticket, users):
    tickets = [
        make_ticket(assignee_id="2", status="closed"),
        make_ticket(assignee_id="4", status="open"),
        make_ticket(assignee_id=None),
        make_ticket(assignee_id="ghost", status="closed"),
    ]
    rows = aggregator.user_performance(tickets, users)
    assert [(r.user, r.completion_rate) for r in rows] == [
        ("Sarah Wilson", 100),
        ("Maria Rodriguez", 0),
    ]


@pytest.mark.parametrize("part,whole,expected", [
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),  # 12.5 rounds up
    (0, 5, 0),
    (0, 0, 0),
    (4, 4, 100),
])
def test_round_percent(part, whole, expected):
    assert round_percent(part, whole) == expected


# -- Weekly trend ---------------------------------------------------------------

def test_weekly_trend_buckets_start_on_sunday(aggregator):
    weeks = aggregator.weekly_trends([], NOW)
    assert len(weeks) == 12
    assert weeks[0].week == "Dec 24"
    assert weeks[-1].week == "Mar 10"
    assert weeks[-1].date == "2024-03-10T00:00:00+00:00"
    for bucket in weeks:
        assert datetime.fromisoformat(bucket.date).weekday() == 6


def test_weekly_trend_counts_created_and_resolved(aggregator, make_ticket):
    tickets = [
        make_ticket(created_at=datetime(2024, 3, 11, 8, tzinfo=timezone.utc)),
        make_ticket(
            created_at=datetime(2024, 3, 5, tzinfo=timezone.utc),
            updated_at=datetime(2024, 3, 12, tzinfo=timezone.utc),
            status="closed",
        ),
        # Closed, but last touched before the window
        make_ticket(created_at=datetime(2023, 6, 1, tzinfo=timezone.utc), status="closed"),
    ]
    weeks = aggregator.weekly_trends(tickets, NOW)
    assert (weeks[-1].created, weeks[-1].resolved) == (1, 1)
    assert (weeks[-2].created, weeks[-2].resolved) == (1, 0)  # Mar 03 - Mar 09
    assert sum(w.created for w in weeks) == 2
    assert sum(w.resolved for w in weeks) == 1


def test_instant_on_week_boundary_counts_once(aggregator, make_ticket):
    boundary = datetime(2024, 3, 10, tzinfo=timezone.utc)
    tickets = [make_ticket(created_at=boundary, status="closed")]
    weeks = aggregator.weekly_trends(tickets, NOW)
    assert (weeks[-1].created, weeks[-1].resolved) == (1, 1)
    assert (weeks[-2].created, weeks[-2].resolved) == (0, 0)


# -- Monthly trend --------------------------------------------------------------

def test_monthly_trend_spans_twelve_months_across_year_end(aggregator):
    months = aggregator.monthly_trends([], datetime(2024, 2, 15, tzinfo=timezone.utc))
    assert len(months) == 12
    assert months[0].month == "Mar 2023"
    assert months[-1].month == "Feb 2024"
    assert months[-1].date == "2024-02-01T00:00:00+00:00"


def test_monthly_boundaries_are_half_open(aggregator, make_ticket):
    tickets = [
        make_ticket(created_at=datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)),
        make_ticket(created_at=datetime(2024, 2, 1, tzinfo=timezone.utc)),
    ]
    months = aggregator.monthly_trends(tickets, datetime(2024, 2, 15, tzinfo=timezone.utc))
    assert months[-2].created == 1
    assert months[-1].created == 1


# -- Heatmap --------------------------------------------------------------------

def test_heatmap_window_and_counts(aggregator, make_ticket):
    tickets = [
        make_ticket(created_at=datetime(2024, 3, 12, 23, 30, tzinfo=timezone.utc)),
        make_ticket(created_at=datetime(2024, 3, 12, 1, 0, tzinfo=timezone.utc)),
        make_ticket(created_at=datetime(2024, 3, 13, 9, 0, tzinfo=timezone.utc)),
        make_ticket(created_at=datetime(2022, 1, 1, tzinfo=timezone.utc)),  # outside
    ]
    cells = aggregator.activity_heatmap(tickets, NOW)

    assert len(cells) == 365
    assert cells[0].date == "2023-03-15"
    assert cells[-1].date == "2024-03-13"
    assert cells[-2].count == 2
    assert cells[-1].count == 1
    assert sum(c.count for c in cells) == 3


def test_heatmap_day_and_week_are_positional_not_calendar(aggregator):
    """
    Known misalignment: column 0 is the first day of the window, not Sunday.
    """
    cells = aggregator.activity_heatmap([], NOW)
    assert [(c.day, c.week) for c in cells[:8]] == [
        (0, 0), (1, 0), (2, 0), (3, 0), (4, 0), (5, 0), (6, 0), (0, 1),
    ]
    assert (cells[-1].day, cells[-1].week) == (364 % 7, 364 // 7)

    first = date.fromisoformat(cells[0].date)
    assert first.weekday() != 6  # 2023-03-15 is a Wednesday, still column 0


@pytest.mark.parametrize("now", [
    datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc),
    datetime(2023, 12, 31, 0, 0, tzinfo=timezone.utc),
    datetime(2025, 1, 5, 6, 0, tzinfo=timezone.utc),  # a Sunday
    datetime(2024, 7, 1, 12, 0),  # naive, read as UTC
])
def test_bucket_counts_are_fixed_for_any_now(aggregator, now):
    data = aggregator.generate([], [], now=now)
    assert len(data.weekly_trends) == 12
    assert len(data.monthly_trends) == 12
    assert len(data.activity_heatmap) == 365


def test_calendar_math_follows_timezone_of_now(aggregator, make_ticket):
    tz = timezone(timedelta(hours=-5))
    now = datetime(2024, 3, 13, 8, 0, tzinfo=tz)
    # 02:00 UTC on the 13th is still the 12th at UTC-5
    ticket = make_ticket(created_at=datetime(2024, 3, 13, 2, 0, tzinfo=timezone.utc))
    cells = aggregator.activity_heatmap([ticket], now)
    assert cells[-2].date == "2024-03-12"
    assert cells[-2].count == 1


# -- Whole aggregate ------------------------------------------------------------

def test_generate_is_deterministic(make_ticket, users):
    tickets = [
        make_ticket(created_at=NOW - timedelta(days=d), assignee_id=str(d % 5 + 1),
                    status="closed" if d % 2 else "open")
        for d in range(0, 60, 3)
    ]
    first = generate_analytics(tickets, users, now=NOW)
    second = AnalyticsAggregator().generate(tickets, users, now=NOW)
    assert first == second
    assert first.to_json()["ticketsByStatus"][0]["name"] == "Open"


def test_generate_uses_clock_when_now_omitted():
    aggregator = AnalyticsAggregator(clock=lambda: NOW)
    assert aggregator.generate([], []).activity_heatmap[-1].date == "2024-03-13"


# -- Dashboard ------------------------------------------------------------------

def test_dashboard_summary(aggregator, make_ticket, users):
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    tickets = [
        make_ticket(title=f"T{i}", created_at=base, updated_at=base + timedelta(hours=i),
                    status=status, priority=priority)
        for i, (status, priority) in enumerate([
            ("open", "critical"),
            ("closed", "critical"),
            ("in-progress", "low"),
            ("testing", "high"),
            ("closed", "medium"),
            ("open", "low"),
            ("open", "medium"),
        ])
    ]
    users[4].is_active = False

    summary = aggregator.dashboard_summary(tickets, users, recent_limit=3)

    assert summary.total_tickets == 7
    assert (summary.open_tickets, summary.in_progress_tickets) == (3, 1)
    assert (summary.testing_tickets, summary.closed_tickets) == (1, 2)
    assert summary.critical_tickets == 2
    assert summary.resolution_rate == 29
    assert summary.active_users == 4
    assert [t.title for t in summary.recent_tickets] == ["T6", "T5", "T4"]
    assert [t.title for t in summary.open_critical_tickets] == ["T0"]


def test_dashboard_summary_empty(aggregator):
    summary = aggregator.dashboard_summary([], [])
    assert summary.total_tickets == 0
    assert summary.resolution_rate == 0
    assert summary.recent_tickets == []
