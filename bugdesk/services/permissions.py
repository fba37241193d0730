"""
bugdesk Permission Engine

Role-based permissions as DATA, not types.

Rules:
1. A role is just a key into ROLE_PERMISSIONS; there is no class per role
2. The table is built once at import time and is read-only
3. No user = no permission, whatever the resource/action
4. Hierarchy checks use organization_role, permission checks use role
"""

from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Union

from ..errors import PermissionDenied
from ..models.user import Action, Permission, Resource, Role, User


RoleLike = Union[Role, str]


def _table(entries: Dict[Role, Dict[Resource, List[Action]]]) -> Mapping[Role, Mapping[Resource, FrozenSet[Action]]]:
    return MappingProxyType({
        role: MappingProxyType({
            resource: frozenset(actions)
            for resource, actions in resources.items()
        })
        for role, resources in entries.items()
    })


_CRUD = [Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE]

ROLE_PERMISSIONS = _table({
    Role.ADMIN: {
        Resource.TICKETS: _CRUD + [Action.ASSIGN],
        Resource.USERS: _CRUD,
        Resource.ANALYTICS: [Action.READ],
        Resource.SETTINGS: _CRUD,
    },
    Role.MANAGER: {
        Resource.TICKETS: [Action.CREATE, Action.READ, Action.UPDATE, Action.ASSIGN],
        Resource.USERS: [Action.READ],
        Resource.ANALYTICS: [Action.READ],
    },
    Role.DEVELOPER: {
        Resource.TICKETS: [Action.READ, Action.UPDATE],
        Resource.ANALYTICS: [Action.READ],
    },
    Role.QA: {
        Resource.TICKETS: [Action.CREATE, Action.READ, Action.UPDATE],
        Resource.ANALYTICS: [Action.READ],
    },
    Role.VIEWER: {
        Resource.TICKETS: [Action.READ],
        Resource.ANALYTICS: [Action.READ],
    },
})

# Index 0 = most senior
ROLE_HIERARCHY = (Role.ADMIN, Role.MANAGER, Role.DEVELOPER, Role.QA, Role.VIEWER)

_VERBS = {Action.UPDATE: "edit"}


def has_permission(
    user: Optional[User],
    resource: Union[Resource, str],
    action: Union[Action, str],
) -> bool:
    """Whether `user`'s role allows `action` on `resource`."""
    if user is None:
        return False

    try:
        role = Role(user.role)
        resource = Resource(resource)
        action = Action(action)
    except ValueError:
        return False

    allowed = ROLE_PERMISSIONS.get(role, {}).get(resource, frozenset())
    return action in allowed


def can_create_tickets(user: Optional[User]) -> bool:
    return has_permission(user, Resource.TICKETS, Action.CREATE)


def can_edit_tickets(user: Optional[User]) -> bool:
    return has_permission(user, Resource.TICKETS, Action.UPDATE)


def can_delete_tickets(user: Optional[User]) -> bool:
    return has_permission(user, Resource.TICKETS, Action.DELETE)


def can_assign_tickets(user: Optional[User]) -> bool:
    return has_permission(user, Resource.TICKETS, Action.ASSIGN)


def can_manage_users(user: Optional[User]) -> bool:
    return has_permission(user, Resource.USERS, Action.UPDATE)


def can_view_analytics(user: Optional[User]) -> bool:
    return has_permission(user, Resource.ANALYTICS, Action.READ)


def permissions_for_role(role: RoleLike) -> List[Permission]:
    """The table entry for `role` as Permission rows (enum order)."""
    try:
        resources = ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return []
    return [
        Permission(
            resource=resource,
            actions=[action for action in Action if action in resources[resource]],
        )
        for resource in Resource
        if resource in resources
    ]


def permission_summary(user: Optional[User]) -> Dict[str, bool]:
    """Every predicate for `user`, keyed the way the UI gates its controls."""
    return {
        "canCreateTickets": can_create_tickets(user),
        "canEditTickets": can_edit_tickets(user),
        "canDeleteTickets": can_delete_tickets(user),
        "canAssignTickets": can_assign_tickets(user),
        "canManageUsers": can_manage_users(user),
        "canViewAnalytics": can_view_analytics(user),
    }


def get_role_hierarchy() -> List[Role]:
    return list(ROLE_HIERARCHY)


def can_user_access_role(current_user: Optional[User], target_role: RoleLike) -> bool:
    """
    True iff the user's organization_role is at or above `target_role`.

    Admin reaches every role, viewer only viewer. The comparison is
    index(current) <= index(target) on ROLE_HIERARCHY.
    """
    if current_user is None:
        return False

    try:
        current_index = ROLE_HIERARCHY.index(Role(current_user.organization_role))
        target_index = ROLE_HIERARCHY.index(Role(target_role))
    except ValueError:
        return False

    return current_index <= target_index


def denial_message(resource: Union[Resource, str], action: Union[Action, str]) -> str:
    action = Action(action)
    verb = _VERBS.get(action, action.value)
    return f"You do not have permission to {verb} {Resource(resource).value}."


def require_permission(
    user: Optional[User],
    resource: Union[Resource, str],
    action: Union[Action, str],
    message: Optional[str] = None,
) -> None:
    """
    Guard for callers: raise PermissionDenied unless the user may act.

    The store performs whatever it is asked; this is where the check lives.
    """
    if not has_permission(user, resource, action):
        raise PermissionDenied(
            resource=Resource(resource).value,
            action=Action(action).value,
            message=message or denial_message(resource, action),
        )
