"""
bugdesk User & Permission Models

A user carries two roles:
- role: what the user may DO (looked up in the static permission table)
- organization_role: where the user sits in the hierarchy (who they may
  "access"); may diverge from role
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import Field

from .base import TrackerModel, new_id, utcnow


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    DEVELOPER = "developer"
    QA = "qa"
    VIEWER = "viewer"


class Resource(str, Enum):
    TICKETS = "tickets"
    USERS = "users"
    ANALYTICS = "analytics"
    SETTINGS = "settings"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"


# =============================================================================
# MODELS
# =============================================================================

class Permission(TrackerModel):
    """A resource and the actions allowed on it."""
    resource: Resource
    actions: List[Action] = Field(default_factory=list)


class User(TrackerModel):
    id: str = Field(default_factory=new_id)

    name: str
    email: str
    avatar: Optional[str] = None

    role: Role = Role.VIEWER
    organization_role: Role = Role.VIEWER

    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    # Reserved for per-user overrides; always empty today
    permissions: List[Permission] = Field(default_factory=list)
