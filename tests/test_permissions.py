"""Role table, derived predicates and the role hierarchy."""
import pytest

from bugdesk.errors import PermissionDenied
from bugdesk.models import Action, Resource, Role, User
from bugdesk.services import permissions
from bugdesk.services.permissions import (
    can_assign_tickets,
    can_create_tickets,
    can_delete_tickets,
    can_edit_tickets,
    can_manage_users,
    can_user_access_role,
    has_permission,
    permission_summary,
    permissions_for_role,
    require_permission,
)


EXPECTED = {
    "admin": {
        "tickets": {"create", "read", "update", "delete", "assign"},
        "users": {"create", "read", "update", "delete"},
        "analytics": {"read"},
        "settings": {"create", "read", "update", "delete"},
    },
    "manager": {
        "tickets": {"create", "read", "update", "assign"},
        "users": {"read"},
        "analytics": {"read"},
    },
    "developer": {
        "tickets": {"read", "update"},
        "analytics": {"read"},
    },
    "qa": {
        "tickets": {"create", "read", "update"},
        "analytics": {"read"},
    },
    "viewer": {
        "tickets": {"read"},
        "analytics": {"read"},
    },
}


def user_with(role: str, organization_role: str = None) -> User:
    return User(
        id=f"u-{role}",
        name=role.title(),
        email=f"{role}@company.com",
        role=role,
        organization_role=organization_role or role,
    )


@pytest.mark.parametrize("role", [r.value for r in Role])
@pytest.mark.parametrize("resource", [r.value for r in Resource])
@pytest.mark.parametrize("action", [a.value for a in Action])
def test_has_permission_matches_table(role, resource, action):
    expected = action in EXPECTED[role].get(resource, set())
    assert has_permission(user_with(role), resource, action) is expected


@pytest.mark.parametrize("resource", list(Resource))
@pytest.mark.parametrize("action", list(Action))
def test_no_user_has_no_permission(resource, action):
    assert has_permission(None, resource, action) is False


def test_unknown_resource_or_action_is_denied():
    admin = user_with("admin")
    assert has_permission(admin, "billing", "read") is False
    assert has_permission(admin, "tickets", "archive") is False


def test_table_is_read_only():
    with pytest.raises(TypeError):
        permissions.ROLE_PERMISSIONS[Role.VIEWER] = {}
    with pytest.raises(TypeError):
        permissions.ROLE_PERMISSIONS[Role.VIEWER][Resource.USERS] = frozenset()


def test_permission_uses_role_not_organization_role():
    # A viewer by role stays a viewer even if ranked as admin in the org
    user = user_with("viewer", organization_role="admin")
    assert can_create_tickets(user) is False
    assert can_user_access_role(user, "manager") is True


def test_derived_predicates():
    manager = user_with("manager")
    assert can_create_tickets(manager)
    assert can_edit_tickets(manager)
    assert not can_delete_tickets(manager)
    assert can_assign_tickets(manager)
    assert not can_manage_users(manager)

    assert can_manage_users(user_with("admin"))
    assert not can_assign_tickets(user_with("qa"))


def test_permission_summary_keys():
    summary = permission_summary(user_with("developer"))
    assert summary == {
        "canCreateTickets": False,
        "canEditTickets": True,
        "canDeleteTickets": False,
        "canAssignTickets": False,
        "canManageUsers": False,
        "canViewAnalytics": True,
    }
    assert not any(permission_summary(None).values())


def test_permissions_for_role_rows():
    rows = permissions_for_role("manager")
    assert [row.resource for row in rows] == [Resource.TICKETS, Resource.USERS, Resource.ANALYTICS]
    assert rows[0].actions == [Action.CREATE, Action.READ, Action.UPDATE, Action.ASSIGN]
    assert permissions_for_role("intern") == []


def test_require_permission_raises_with_blocking_message():
    with pytest.raises(PermissionDenied) as excinfo:
        require_permission(user_with("viewer"), Resource.TICKETS, Action.CREATE)
    assert excinfo.value.message == "You do not have permission to create tickets."
    assert excinfo.value.resource == "tickets"
    assert excinfo.value.action == "create"


def test_require_permission_update_reads_as_edit():
    with pytest.raises(PermissionDenied) as excinfo:
        require_permission(None, Resource.TICKETS, Action.UPDATE)
    assert excinfo.value.message == "You do not have permission to edit tickets."


def test_require_permission_passes_silently():
    require_permission(user_with("admin"), Resource.SETTINGS, Action.DELETE)


# -- Role hierarchy ----------------------------------------------------------

def test_role_hierarchy_order():
    assert permissions.get_role_hierarchy() == [
        Role.ADMIN, Role.MANAGER, Role.DEVELOPER, Role.QA, Role.VIEWER,
    ]


def test_hierarchy_direction_senior_reaches_down_not_up():
    """Pins index(current) <= index(target); changing it must be deliberate."""
    assert can_user_access_role(user_with("admin"), "viewer") is True
    assert can_user_access_role(user_with("viewer"), "admin") is False
    assert can_user_access_role(user_with("developer"), "developer") is True


@pytest.mark.parametrize("target", [r.value for r in Role])
def test_admin_accesses_every_role(target):
    assert can_user_access_role(user_with("admin"), target)


@pytest.mark.parametrize("target,expected", [
    ("admin", False),
    ("manager", False),
    ("developer", False),
    ("qa", False),
    ("viewer", True),
])
def test_viewer_accesses_only_viewer(target, expected):
    assert can_user_access_role(user_with("viewer"), target) is expected


def test_hierarchy_without_user_or_with_unknown_role():
    assert can_user_access_role(None, "viewer") is False
    assert can_user_access_role(user_with("admin"), "intern") is False
