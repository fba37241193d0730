"""
bugdesk

Issue/bug tracking core with:
- Role-based permission table gating every mutation
- Ticket store with cascade delete of comments and activities
- Identity context (roster + current user)
- Analytics over ticket snapshots (breakdowns, trends, heatmap)
"""

__version__ = "0.1.0"
