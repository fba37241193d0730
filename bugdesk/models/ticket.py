"""
bugdesk Ticket Model

Core principles:
1. Ticket = unit of tracked work (bug, feature, enhancement, task)
2. Any status is reachable from any status (no transition graph)
3. Comments and Activities are OWNED by their ticket (cascade delete)
4. Users are only REFERENCED (weak references, may dangle)
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import Field, model_validator

from .base import TrackerModel, new_id, utcnow


# =============================================================================
# ENUMS
# =============================================================================

class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    TESTING = "testing"
    CLOSED = "closed"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketType(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    ENHANCEMENT = "enhancement"
    TASK = "task"


# =============================================================================
# CORE MODELS
# =============================================================================

class Ticket(TrackerModel):
    """
    The core ticket entity.

    assignee_id / reporter_id point into the user roster but are not
    checked against it; a deleted user leaves them dangling.
    """
    id: str = Field(default_factory=new_id)

    title: str = Field(..., min_length=1)
    description: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: Priority = Priority.MEDIUM
    type: TicketType = TicketType.BUG

    # Associations
    assignee_id: Optional[str] = None
    reporter_id: str

    tags: List[str] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    due_date: Optional[datetime] = None

    # Effort
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_updated_not_before_created(self) -> "Ticket":
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not precede createdAt")
        return self


class Comment(TrackerModel):
    """
    A comment on a ticket.

    parent_id models reply threading; nothing aggregates over it.
    """
    id: str = Field(default_factory=new_id)
    ticket_id: str
    user_id: str  # Author

    content: str

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    parent_id: Optional[str] = None


class Activity(TrackerModel):
    """Append-only log entry on a ticket."""
    id: str = Field(default_factory=new_id)
    ticket_id: str
    user_id: str  # Actor

    action: str
    details: str = ""

    created_at: datetime = Field(default_factory=utcnow)
