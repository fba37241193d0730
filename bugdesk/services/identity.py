"""
bugdesk Identity Context

Holds the roster of users and the single active ("current") user.

The current user is assumed to be already authenticated; switching it is a
plain write, not a login.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..models.base import new_id, utcnow
from ..models.user import Role, User
from ..storage import KeyValueStore, Slot


logger = logging.getLogger(__name__)


DEFAULT_USERS = [
    ("1", "John Doe", "john@company.com", Role.ADMIN),
    ("2", "Sarah Wilson", "sarah@company.com", Role.MANAGER),
    ("3", "Alex Chen", "alex@company.com", Role.DEVELOPER),
    ("4", "Maria Rodriguez", "maria@company.com", Role.QA),
    ("5", "David Kim", "david@company.com", Role.VIEWER),
]


def default_users(now: Optional[datetime] = None) -> List[User]:
    """One user per role; role and organization_role agree."""
    stamp = now or utcnow()
    return [
        User(
            id=user_id,
            name=name,
            email=email,
            role=role,
            organization_role=role,
            is_active=True,
            created_at=stamp,
        )
        for user_id, name, email, role in DEFAULT_USERS
    ]


class IdentityContext:
    """
    Roster + current user.

    An empty roster is seeded with DEFAULT_USERS on construction. When no
    currentUser slot exists yet, the first roster user becomes current; an
    explicitly stored null is left alone.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.kv_store = kv_store
        self.clock = clock
        self._seed()

    def _seed(self) -> None:
        users = self.list_users()
        if not users:
            users = default_users(self.clock())
            self._save_users(users)
            logger.debug("Seeded %d default users", len(users))

        # Missing slot -> first roster user; a stored null means "nobody"
        if not self.kv_store.contains(Slot.CURRENT_USER):
            self.kv_store.set(Slot.CURRENT_USER, users[0].to_json())
            logger.debug("Current user defaulted to %s", users[0].id)

    def _save_users(self, users: List[User]) -> None:
        self.kv_store.set(Slot.USERS, [u.to_json() for u in users])

    # =========================================================================
    # Roster
    # =========================================================================

    def list_users(self) -> List[User]:
        return [User.model_validate(raw) for raw in self.kv_store.get(Slot.USERS, [])]

    def find_user_by_id(self, user_id: Optional[str]) -> Optional[User]:
        if user_id is None:
            return None
        for user in self.list_users():
            if user.id == user_id:
                return user
        return None

    def display_name(self, user_id: Optional[str], fallback: str = "Unknown user") -> str:
        """Name for a (possibly dangling) user reference."""
        user = self.find_user_by_id(user_id)
        return user.name if user else fallback

    def add_user(self, fields: Dict[str, Any]) -> User:
        data = {User.field_name(k): v for k, v in fields.items()}
        user = User.model_validate({
            **data,
            "id": new_id(),
            "created_at": self.clock(),
            "permissions": [],
        })
        users = self.list_users()
        users.append(user)
        self._save_users(users)

        logger.info("Added user %s (%s)", user.id, user.role.value)
        return user

    def update_user(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]:
        """Merge `patch` onto a user; the id never changes. No-op if unknown."""
        changes = {User.field_name(k): v for k, v in patch.items()}
        changes.pop("id", None)

        users = self.list_users()
        for index, user in enumerate(users):
            if user.id != user_id:
                continue
            updated = User.model_validate({**user.model_dump(), **changes})
            users[index] = updated
            self._save_users(users)

            # Keep the cached current user in step with the roster
            current = self.current_user
            if current is not None and current.id == user_id:
                self.kv_store.set(Slot.CURRENT_USER, updated.to_json())

            logger.info("Updated user %s fields=%s", user_id, sorted(changes))
            return updated

        logger.debug("Update of unknown user %s ignored", user_id)
        return None

    def delete_user(self, user_id: str) -> bool:
        """
        Remove a user from the roster.

        Tickets/comments/activities that reference the user keep their
        (now dangling) references.
        """
        users = self.list_users()
        remaining = [u for u in users if u.id != user_id]
        if len(remaining) == len(users):
            return False
        self._save_users(remaining)
        logger.info("Deleted user %s", user_id)
        return True

    # =========================================================================
    # Current user
    # =========================================================================

    @property
    def current_user(self) -> Optional[User]:
        raw = self.kv_store.get(Slot.CURRENT_USER)
        if raw is None:
            return None
        return User.model_validate(raw)

    def switch_user(self, user_id: str) -> Optional[User]:
        """
        Make a roster user current. Unknown id leaves the current user as is
        and returns None.
        """
        user = self.find_user_by_id(user_id)
        if user is None:
            logger.debug("Switch to unknown user %s ignored", user_id)
            return None
        self.kv_store.set(Slot.CURRENT_USER, user.to_json())
        logger.info("Current user is now %s (%s)", user.id, user.role.value)
        return user

    def clear_current_user(self) -> None:
        self.kv_store.set(Slot.CURRENT_USER, None)
