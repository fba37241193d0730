"""
bugdesk Entity Store

CRUD over Tickets, Comments and Activities on top of the key-value store.

Rules:
1. No permission logic here; the caller checks first
2. Every mutation is a full read-modify-write of its slot(s)
3. "Not found" is a silent no-op (update/delete) or None (lookups)
4. Deleting a ticket deletes its comments and activities
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from ..models.base import TrackerModel, new_id, utcnow
from ..models.ticket import Activity, Comment, Ticket
from ..models.user import User
from ..storage import KeyValueStore, Slot


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=TrackerModel)

# Assigned by the store, never by the caller
_READ_ONLY_TICKET_FIELDS = {"id", "created_at", "updated_at"}


class EntityStore:
    """
    Owns the ticket, comment and activity collections.

    `clock` returns the aware "now" used for every timestamp; tests pass a
    fixed or stepping clock.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.kv_store = kv_store
        self.clock = clock

    # =========================================================================
    # Snapshot I/O
    # =========================================================================

    def _load(self, slot: str, model: Type[M]) -> List[M]:
        return [model.model_validate(raw) for raw in self.kv_store.get(slot, [])]

    def _save(self, slot: str, items: List[TrackerModel]) -> None:
        self.kv_store.set(slot, [item.to_json() for item in items])

    # =========================================================================
    # Tickets
    # =========================================================================

    def list_tickets(self) -> List[Ticket]:
        return self._load(Slot.TICKETS, Ticket)

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        for ticket in self.list_tickets():
            if ticket.id == ticket_id:
                return ticket
        return None

    def create_ticket(self, fields: Dict[str, Any]) -> Ticket:
        """
        Create a ticket with a fresh id and created_at == updated_at == now.
        """
        now = self.clock()
        data = _normalize(Ticket, fields)
        for key in _READ_ONLY_TICKET_FIELDS:
            data.pop(key, None)

        ticket = Ticket.model_validate({
            **data,
            "id": new_id(),
            "created_at": now,
            "updated_at": now,
        })

        tickets = self.list_tickets()
        tickets.append(ticket)
        self._save(Slot.TICKETS, tickets)

        logger.info("Created ticket %s (%s)", ticket.id, ticket.title)
        return ticket

    def update_ticket(self, ticket_id: str, patch: Dict[str, Any]) -> Optional[Ticket]:
        """
        Merge `patch` onto the ticket and refresh updated_at.

        Unknown id: nothing is written and None is returned.
        """
        tickets = self.list_tickets()
        for index, ticket in enumerate(tickets):
            if ticket.id != ticket_id:
                continue

            changes = _normalize(Ticket, patch)
            for key in _READ_ONLY_TICKET_FIELDS:
                changes.pop(key, None)

            # Never move updated_at backwards, even if the clock does
            now = max(self.clock(), ticket.updated_at)
            updated = Ticket.model_validate({
                **ticket.model_dump(),
                **changes,
                "updated_at": now,
            })
            tickets[index] = updated
            self._save(Slot.TICKETS, tickets)

            logger.info("Updated ticket %s fields=%s", ticket_id, sorted(changes))
            return updated

        logger.debug("Update of unknown ticket %s ignored", ticket_id)
        return None

    def delete_ticket(self, ticket_id: str) -> bool:
        """
        Delete a ticket and everything it owns.

        Dependents are written first (comments, then activities) and the
        ticket last, so an interrupted delete never leaves orphans behind.
        """
        tickets = self.list_tickets()
        remaining = [t for t in tickets if t.id != ticket_id]
        if len(remaining) == len(tickets):
            logger.debug("Delete of unknown ticket %s ignored", ticket_id)
            return False

        comments = self._load(Slot.COMMENTS, Comment)
        kept_comments = [c for c in comments if c.ticket_id != ticket_id]
        self._save(Slot.COMMENTS, kept_comments)

        activities = self._load(Slot.ACTIVITIES, Activity)
        kept_activities = [a for a in activities if a.ticket_id != ticket_id]
        self._save(Slot.ACTIVITIES, kept_activities)

        self._save(Slot.TICKETS, remaining)

        logger.info(
            "Deleted ticket %s with %d comment(s) and %d activit(ies)",
            ticket_id,
            len(comments) - len(kept_comments),
            len(activities) - len(kept_activities),
        )
        return True

    # =========================================================================
    # Comments
    # =========================================================================

    def list_comments(self) -> List[Comment]:
        return self._load(Slot.COMMENTS, Comment)

    def add_comment(self, fields: Dict[str, Any]) -> Comment:
        """
        Append a comment. The referenced ticket is not checked.
        """
        data = _normalize(Comment, fields)
        data.pop("updated_at", None)
        comment = Comment.model_validate({
            **data,
            "id": new_id(),
            "created_at": self.clock(),
        })

        comments = self.list_comments()
        comments.append(comment)
        self._save(Slot.COMMENTS, comments)

        logger.info("Added comment %s on ticket %s", comment.id, comment.ticket_id)
        return comment

    def get_comments_for_ticket(self, ticket_id: str) -> List[Comment]:
        """Comments of a ticket in insertion order."""
        return [c for c in self.list_comments() if c.ticket_id == ticket_id]

    # =========================================================================
    # Activities
    # =========================================================================

    def list_activities(self) -> List[Activity]:
        return self._load(Slot.ACTIVITIES, Activity)

    def add_activity(self, fields: Dict[str, Any]) -> Activity:
        """
        Append a log entry.

        Mutations do not call this on their own; whoever wants an audit
        trail appends explicitly.
        """
        activity = Activity.model_validate({
            **_normalize(Activity, fields),
            "id": new_id(),
            "created_at": self.clock(),
        })

        activities = self.list_activities()
        activities.append(activity)
        self._save(Slot.ACTIVITIES, activities)

        logger.info("Logged activity %r on ticket %s", activity.action, activity.ticket_id)
        return activity

    def get_activities_for_ticket(self, ticket_id: str) -> List[Activity]:
        return [a for a in self.list_activities() if a.ticket_id == ticket_id]

    # =========================================================================
    # Users (read-only, weak references)
    # =========================================================================

    def find_user_by_id(self, user_id: Optional[str]) -> Optional[User]:
        if user_id is None:
            return None
        for raw in self.kv_store.get(Slot.USERS, []):
            user = User.model_validate(raw)
            if user.id == user_id:
                return user
        return None

    # =========================================================================
    # Recovery
    # =========================================================================

    def reconcile_orphans(self) -> int:
        """
        Drop comments/activities whose ticket no longer exists.

        Run on startup: snapshots written by other clients may have been
        interrupted between the three writes of a delete.
        """
        ticket_ids = {t.id for t in self.list_tickets()}
        removed = 0

        comments = self.list_comments()
        kept_comments = [c for c in comments if c.ticket_id in ticket_ids]
        if len(kept_comments) != len(comments):
            self._save(Slot.COMMENTS, kept_comments)
            removed += len(comments) - len(kept_comments)

        activities = self.list_activities()
        kept_activities = [a for a in activities if a.ticket_id in ticket_ids]
        if len(kept_activities) != len(activities):
            self._save(Slot.ACTIVITIES, kept_activities)
            removed += len(activities) - len(kept_activities)

        if removed:
            logger.warning("Removed %d orphaned comment(s)/activit(ies)", removed)
        return removed


def _normalize(model: Type[TrackerModel], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase aliases onto attribute names."""
    return {model.field_name(key): value for key, value in fields.items()}
