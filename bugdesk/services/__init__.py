"""
bugdesk Services

Core business logic for ticket tracking:
permissions -> (caller checks) -> store mutations; analytics reads snapshots.
"""

from .permissions import (
    ROLE_PERMISSIONS,
    ROLE_HIERARCHY,
    has_permission,
    can_create_tickets,
    can_edit_tickets,
    can_delete_tickets,
    can_assign_tickets,
    can_manage_users,
    can_view_analytics,
    can_user_access_role,
    get_role_hierarchy,
    permissions_for_role,
    permission_summary,
    require_permission,
)
from .store import EntityStore
from .identity import IdentityContext, default_users
from .analytics import AnalyticsAggregator, generate_analytics
