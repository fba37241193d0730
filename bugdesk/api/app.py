"""
bugdesk API

FastAPI application exposing the tracker core to the UI:
- Ticket CRUD, each mutation gated by the permission table
- Comments and activity log per ticket
- Roster management and current-user switching
- Analytics and dashboard summaries over the live snapshot

Handlers are plain `def`: the core is synchronous and runs to completion.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from .. import __version__
from ..config import Settings
from ..errors import PermissionDenied
from ..logging_setup import configure_logging
from ..models import (
    Activity,
    AnalyticsData,
    Comment,
    DashboardSummary,
    Priority,
    Resource,
    Action,
    Role,
    Ticket,
    TicketStatus,
    TicketType,
    TrackerModel,
    User,
    utcnow,
)
from ..services.analytics import AnalyticsAggregator
from ..services.identity import IdentityContext
from ..services.permissions import permission_summary, require_permission
from ..services.store import EntityStore
from ..storage import KeyValueStore, create_store


logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateTicketRequest(TrackerModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: Priority = Priority.MEDIUM
    type: TicketType = TicketType.BUG
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None  # Defaults to the current user
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)


class UpdateTicketRequest(TrackerModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    type: Optional[TicketType] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    tags: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)


class ChangeStatusRequest(TrackerModel):
    status: TicketStatus


class ChangeAssigneeRequest(TrackerModel):
    assignee_id: Optional[str] = None  # None / "" = unassign


class AddCommentRequest(TrackerModel):
    content: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class AddActivityRequest(TrackerModel):
    action: str = Field(..., min_length=1)
    details: str = ""


class CreateUserRequest(TrackerModel):
    name: str = Field(..., min_length=1)
    email: str
    role: Role = Role.VIEWER
    organization_role: Optional[Role] = None  # Defaults to role
    is_active: bool = True
    avatar: Optional[str] = None


class UpdateUserRequest(TrackerModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    role: Optional[Role] = None
    organization_role: Optional[Role] = None
    is_active: Optional[bool] = None
    avatar: Optional[str] = None


class SwitchUserRequest(TrackerModel):
    user_id: str


# An explicit null clears these; for any other field null means "leave as is"
NULLABLE_TICKET_FIELDS = {"assignee_id", "due_date", "estimated_hours", "actual_hours"}
NULLABLE_USER_FIELDS = {"avatar"}


def _drop_nulls(patch: dict, nullable: set) -> dict:
    return {k: v for k, v in patch.items() if v is not None or k in nullable}


# =============================================================================
# WIRING
# =============================================================================

@dataclass
class TrackerServices:
    settings: Settings
    identity: IdentityContext
    store: EntityStore
    analytics: AnalyticsAggregator


def get_services(request: Request) -> TrackerServices:
    return request.app.state.services


def get_current_user(services: TrackerServices = Depends(get_services)) -> Optional[User]:
    return services.identity.current_user


def requires(resource: Resource, action: Action, message: Optional[str] = None) -> Callable:
    """Dependency: the current user, or PermissionDenied (-> 403)."""

    def dependency(user: Optional[User] = Depends(get_current_user)) -> User:
        require_permission(user, resource, action, message)
        return user

    return dependency


async def permission_denied_handler(request: Request, exc: PermissionDenied) -> JSONResponse:
    logger.info("Denied %s:%s - %s", exc.resource, exc.action, exc.message)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": exc.message, "resource": exc.resource, "action": exc.action},
    )


def create_app(
    settings: Optional[Settings] = None,
    kv_store: Optional[KeyValueStore] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """
    Build the app and its services.

    On startup the roster is seeded if empty and orphaned
    comments/activities are swept.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    kv_store = kv_store or create_store(settings.store_path, key_prefix=settings.key_prefix)
    services = TrackerServices(
        settings=settings,
        identity=IdentityContext(kv_store, clock=clock),
        store=EntityStore(kv_store, clock=clock),
        analytics=AnalyticsAggregator(clock=clock),
    )
    services.store.reconcile_orphans()

    app = FastAPI(
        title="bugdesk",
        description="Issue tracker core: permissions, tickets, analytics",
        version=__version__,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PermissionDenied, permission_denied_handler)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": "bugdesk",
            "version": __version__,
        }

    # =========================================================================
    # SESSION
    # =========================================================================

    @app.get("/session/user", response_model=Optional[User])
    def get_session_user(user: Optional[User] = Depends(get_current_user)):
        return user

    @app.put("/session/user", response_model=User)
    def switch_session_user(
        request: SwitchUserRequest,
        services: TrackerServices = Depends(get_services),
    ):
        user = services.identity.switch_user(request.user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @app.get("/session/permissions")
    def get_session_permissions(user: Optional[User] = Depends(get_current_user)) -> Dict[str, bool]:
        return permission_summary(user)

    # =========================================================================
    # USERS
    # =========================================================================

    @app.get("/users", response_model=List[User])
    def list_users(services: TrackerServices = Depends(get_services)):
        return services.identity.list_users()

    @app.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
    def create_user(
        request: CreateUserRequest,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.USERS, Action.CREATE)),
    ):
        fields = request.model_dump()
        fields["organization_role"] = request.organization_role or request.role
        return services.identity.add_user(fields)

    @app.patch("/users/{user_id}", response_model=Optional[User])
    def update_user(
        user_id: str,
        request: UpdateUserRequest,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.USERS, Action.UPDATE)),
    ):
        patch = _drop_nulls(request.model_dump(exclude_unset=True), NULLABLE_USER_FIELDS)
        return services.identity.update_user(user_id, patch)

    @app.delete("/users/{user_id}")
    def delete_user(
        user_id: str,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.USERS, Action.DELETE)),
    ):
        return {"deleted": services.identity.delete_user(user_id)}

    # =========================================================================
    # TICKETS
    # =========================================================================

    @app.get("/tickets", response_model=List[Ticket])
    def list_tickets(
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.TICKETS, Action.READ)),
    ):
        return services.store.list_tickets()

    @app.post("/tickets", response_model=Ticket, status_code=status.HTTP_201_CREATED)
    def create_ticket(
        request: CreateTicketRequest,
        services: TrackerServices = Depends(get_services),
        user: User = Depends(requires(Resource.TICKETS, Action.CREATE)),
    ):
        """
        Create a ticket. Setting an assignee up front needs tickets:assign.
        """
        if request.assignee_id:
            require_permission(user, Resource.TICKETS, Action.ASSIGN)
        fields = request.model_dump()
        fields["reporter_id"] = request.reporter_id or user.id
        return services.store.create_ticket(fields)

    @app.get("/tickets/{ticket_id}", response_model=Ticket)
    def get_ticket(
        ticket_id: str,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.TICKETS, Action.READ)),
    ):
        ticket = services.store.get_ticket(ticket_id)
        if ticket is None:
            raise HTTPException(status_code=404, detail="Ticket not found")
        return ticket

    @app.patch("/tickets/{ticket_id}", response_model=Optional[Ticket])
    def update_ticket(
        ticket_id: str,
        request: UpdateTicketRequest,
        services: TrackerServices = Depends(get_services),
        user: User = Depends(requires(Resource.TICKETS, Action.UPDATE)),
    ):
        """
        Partial update. Unknown ticket: nothing happens, null is returned.

        A patch touching assigneeId (including clearing it) also needs
        tickets:assign, same as the assignee endpoint.
        """
        patch = _drop_nulls(request.model_dump(exclude_unset=True), NULLABLE_TICKET_FIELDS)
        if "assignee_id" in patch:
            require_permission(user, Resource.TICKETS, Action.ASSIGN)
        return services.store.update_ticket(ticket_id, patch)

    @app.put("/tickets/{ticket_id}/status", response_model=Optional[Ticket])
    def change_ticket_status(
        ticket_id: str,
        request: ChangeStatusRequest,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(
            Resource.TICKETS, Action.UPDATE,
            "You do not have permission to change ticket status.",
        )),
    ):
        return services.store.update_ticket(ticket_id, {"status": request.status})

    @app.put("/tickets/{ticket_id}/assignee", response_model=Optional[Ticket])
    def change_ticket_assignee(
        ticket_id: str,
        request: ChangeAssigneeRequest,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.TICKETS, Action.ASSIGN)),
    ):
        assignee_id = request.assignee_id or None
        return services.store.update_ticket(ticket_id, {"assignee_id": assignee_id})

    @app.delete("/tickets/{ticket_id}")
    def delete_ticket(
        ticket_id: str,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.TICKETS, Action.DELETE)),
    ):
        """
        Delete a ticket with its comments and activity log.
        """
        return {"deleted": services.store.delete_ticket(ticket_id)}

    # =========================================================================
    # COMMENTS & ACTIVITY
    # =========================================================================

    @app.get("/tickets/{ticket_id}/comments", response_model=List[Comment])
    def list_comments(
        ticket_id: str,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.TICKETS, Action.READ)),
    ):
        return services.store.get_comments_for_ticket(ticket_id)

    @app.post(
        "/tickets/{ticket_id}/comments",
        response_model=Comment,
        status_code=status.HTTP_201_CREATED,
    )
    def add_comment(
        ticket_id: str,
        request: AddCommentRequest,
        services: TrackerServices = Depends(get_services),
        user: User = Depends(requires(Resource.TICKETS, Action.READ)),
    ):
        return services.store.add_comment({
            "ticket_id": ticket_id,
            "user_id": user.id,
            "content": request.content,
            "parent_id": request.parent_id,
        })

    @app.get("/tickets/{ticket_id}/activities", response_model=List[Activity])
    def list_activities(
        ticket_id: str,
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.TICKETS, Action.READ)),
    ):
        return services.store.get_activities_for_ticket(ticket_id)

    @app.post(
        "/tickets/{ticket_id}/activities",
        response_model=Activity,
        status_code=status.HTTP_201_CREATED,
    )
    def add_activity(
        ticket_id: str,
        request: AddActivityRequest,
        services: TrackerServices = Depends(get_services),
        user: User = Depends(requires(Resource.TICKETS, Action.UPDATE)),
    ):
        return services.store.add_activity({
            "ticket_id": ticket_id,
            "user_id": user.id,
            "action": request.action,
            "details": request.details,
        })

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    @app.get("/analytics", response_model=AnalyticsData)
    def get_analytics(
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.ANALYTICS, Action.READ)),
    ):
        """
        Recomputed from the live snapshot on every call.
        """
        return services.analytics.generate(
            services.store.list_tickets(),
            services.identity.list_users(),
        )

    @app.get("/analytics/dashboard", response_model=DashboardSummary)
    def get_dashboard(
        services: TrackerServices = Depends(get_services),
        _: User = Depends(requires(Resource.ANALYTICS, Action.READ)),
    ):
        return services.analytics.dashboard_summary(
            services.store.list_tickets(),
            services.identity.list_users(),
            recent_limit=services.settings.recent_tickets,
        )


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
