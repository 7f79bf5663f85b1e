"""
User Manager FastAPI Application.

This module implements the user management API: self-service registration and
login, admin CRUD on user accounts, and a read-only audit trail of every
mutation.

Endpoints:
    POST /api/auth/register, POST /api/auth/login, GET /api/auth/me,
    PUT /api/auth/profile, PUT /api/auth/password
    GET/POST /api/users, GET/PUT/DELETE /api/users/{user_id},
    GET /api/users/search, POST /api/users/seed
    GET /api/audit, GET /api/audit/entity/{entity_id}
    GET /api/health

The application is built by ``create_app`` from an explicit ``Settings`` object;
run it with ``python -m user_manager``.
"""
from datetime import datetime, timezone
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from . import __version__, models, schemas
from .auth import PasswordHasher, TokenService, get_current_user, require
from .config import Settings
from .database import build_engine, build_session_factory, get_db, init_db, ping
from .errors import register_exception_handlers
from .policy import Action
from .service import UserService

logger = logging.getLogger(__name__)


def get_service(request: Request) -> UserService:
    return request.app.state.user_service


def _user_out(user: models.User) -> schemas.UserOut:
    return schemas.UserOut.model_validate(user)


def _audit_out(entry: models.AuditLog) -> schemas.AuditLogOut:
    return schemas.AuditLogOut.model_validate(entry)


# --- /api/auth -----------------------------------------------------------------

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: schemas.UserRegister,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_service),
):
    """
    Register a new user account.

    The new account always gets the ``user`` role.

    Raises:
        DuplicateEmail: 400 if email already exists
    """
    user, token = service.register(db, data)
    return schemas.AuthResponse(message="User registered successfully", data=_user_out(user), token=token)


@auth_router.post("/login", response_model=schemas.AuthResponse)
def login(
    credentials: schemas.UserLogin,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_service),
):
    """
    Authenticate and login a user.

    Raises:
        InvalidCredentials: 401, same message for unknown email and wrong password
        AccountInactive: 401 if the account is inactive
    """
    user, token = service.login(db, credentials.email, credentials.password)
    return schemas.AuthResponse(message="Login successful", data=_user_out(user), token=token)


@auth_router.get("/me", response_model=schemas.UserResponse)
def me(current_user: models.User = Depends(get_current_user)):
    """Get current authenticated user information."""
    return schemas.UserResponse(data=_user_out(current_user))


@auth_router.put("/profile", response_model=schemas.UserResponse)
def update_profile(
    data: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: UserService = Depends(get_service),
):
    """Update the caller's name and contact fields. Email, role and status are ignored."""
    user = service.update_profile(db, current_user, data)
    return schemas.UserResponse(message="Profile updated successfully", data=_user_out(user))


@auth_router.put("/password", response_model=schemas.TokenResponse)
def change_password(
    data: schemas.PasswordChange,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: UserService = Depends(get_service),
):
    """Change the caller's password and return a fresh token."""
    token = service.change_password(db, current_user, data.current_password, data.new_password)
    return schemas.TokenResponse(message="Password changed successfully", token=token)


# --- /api/users ----------------------------------------------------------------

users_router = APIRouter(prefix="/api/users", tags=["users"])


@users_router.get("", response_model=schemas.UserListResponse)
def list_users(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require(Action.LIST_USERS)),
    service: UserService = Depends(get_service),
):
    """
    List users newest first with offset/limit pagination (admin only).

    Args:
        page: 1-based page number (default: 1, also used for unusable values)
        limit: Page size (default: 10, also used for unusable values)
    """
    result = service.list_users(db, current_user, page=page, limit=limit)
    return schemas.UserListResponse(
        count=len(result.users),
        data=[_user_out(user) for user in result.users],
        pagination=schemas.Pagination(
            current_page=result.current_page,
            total_pages=result.total_pages,
            total_users=result.total_users,
            limit=result.limit,
            has_next_page=result.has_next_page,
            has_prev_page=result.has_prev_page,
        ),
    )


@users_router.get("/search", response_model=schemas.UserSearchResponse)
def search_users(
    name: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: UserService = Depends(get_service),
):
    """Search users whose first or last name contains ``name``, ignoring case."""
    users = service.search_users(db, current_user, name)
    return schemas.UserSearchResponse(count=len(users), data=[_user_out(user) for user in users])


@users_router.post("/seed", response_model=schemas.SeedResponse, status_code=status.HTTP_201_CREATED)
def seed_users(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require(Action.SEED_USERS)),
    service: UserService = Depends(get_service),
):
    """Replace all non-admin users with the sample dataset (admin only)."""
    users, admins_preserved = service.seed(db, current_user)
    return schemas.SeedResponse(
        count=len(users),
        admins_preserved=admins_preserved,
        message="Database seeded successfully",
        data=[_user_out(user) for user in users],
    )


@users_router.post("", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require(Action.CREATE_USER)),
    service: UserService = Depends(get_service),
):
    """Create a new user with any role (admin only)."""
    user = service.create_user(db, current_user, data)
    return schemas.UserResponse(message="User created successfully", data=_user_out(user))


@users_router.get("/{user_id}", response_model=schemas.UserResponse)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: UserService = Depends(get_service),
):
    """
    Get a single user by ID (authenticated users only).

    Raises:
        NotFound: 404 if the user does not exist or the id is malformed
    """
    return schemas.UserResponse(data=_user_out(service.get_user(db, current_user, user_id)))


@users_router.put("/{user_id}", response_model=schemas.UserResponse)
def update_user(
    user_id: str,
    data: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require(Action.UPDATE_USER)),
    service: UserService = Depends(get_service),
):
    """Update any field of a user except the password (admin only)."""
    user = service.update_user(db, current_user, user_id, data)
    return schemas.UserResponse(message="User updated successfully", data=_user_out(user))


@users_router.delete("/{user_id}", response_model=schemas.MessageResponse)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require(Action.DELETE_USER)),
    service: UserService = Depends(get_service),
):
    """
    Delete a user (admin only).

    Raises:
        SelfDeletionForbidden: 403 when deleting one's own account
        LastAdminForbidden: 403 when deleting the only admin
        NotFound: 404 if the user does not exist
    """
    service.delete_user(db, current_user, user_id)
    return schemas.MessageResponse(message="User deleted successfully", data={})


# --- /api/audit ----------------------------------------------------------------

audit_router = APIRouter(prefix="/api/audit", tags=["audit"])


@audit_router.get("", response_model=schemas.AuditLogListResponse)
def list_audit_logs(
    limit: Optional[str] = None,
    action: Optional[models.AuditAction] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: UserService = Depends(get_service),
):
    """Most recent audit entries first, optionally filtered by action."""
    logs = service.list_audit_logs(db, current_user, limit=limit, action=action)
    return schemas.AuditLogListResponse(count=len(logs), data=[_audit_out(log) for log in logs])


@audit_router.get("/entity/{entity_id}", response_model=schemas.AuditLogListResponse)
def entity_audit_logs(
    entity_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    service: UserService = Depends(get_service),
):
    """All audit entries for one entity, most recent first."""
    logs = service.entity_audit_logs(db, current_user, entity_id)
    return schemas.AuditLogListResponse(count=len(logs), data=[_audit_out(log) for log in logs])


# --- system --------------------------------------------------------------------

system_router = APIRouter(tags=["system"])


@system_router.get("/api/health")
def health(request: Request):
    """
    Health check endpoint for the service.

    Returns 200 with ``database: connected`` when the database answers a
    trivial query, otherwise 503 with ``status: error``.
    """
    body = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - request.app.state.started_at,
        "database": "connected" if ping(request.app.state.engine) else "disconnected",
    }
    if body["database"] == "disconnected":
        body.update(status="error", message="Database connection failed")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


@system_router.get("/")
def root():
    return {
        "message": "Welcome to User Manager API",
        "version": __version__,
        "endpoints": {
            "health": "/api/health",
            "auth": "/api/auth",
            "users": "/api/users",
            "userById": "/api/users/{user_id}",
            "searchUsers": "/api/users/search?name=",
            "seed": "/api/users/seed",
            "audit": "/api/audit",
        },
    }


def create_app(settings: Settings, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the application for ``settings``.

    Args:
        settings: Validated process configuration
        engine: Optional pre-built engine (tests pass an in-memory SQLite one)
    """
    engine = engine or build_engine(settings.database_url)
    init_db(engine)

    app = FastAPI(title="user-manager", version=__version__)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.token_service = TokenService(settings)
    app.state.user_service = UserService(app.state.password_hasher, app.state.token_service)
    app.state.started_at = time.monotonic()

    if settings.cors_origin:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[origin.strip() for origin in settings.cors_origin.split(",")],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if settings.is_development:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            logger.info(f"{request.method} {request.url.path} - Origin: {request.headers.get('origin', 'N/A')}")
            return await call_next(request)

    register_exception_handlers(app)
    for router in (system_router, auth_router, users_router, audit_router):
        app.include_router(router)
    return app
