"""
Authorization policy for user management.

``decide`` is a pure function: it looks only at its arguments and never touches
the database. Callers gather whatever facts a rule needs (the target record,
the number of admins) before asking.
"""
import enum
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type

from .errors import (
    AppError,
    LastAdminForbidden,
    NotAuthorized,
    SelfDeletionForbidden,
    TokenMissing,
)
from .models import Role, User


class Action(str, enum.Enum):
    LIST_USERS = "list-users"
    VIEW_USER = "view-user"
    SEARCH_USERS = "search-users"
    CREATE_USER = "create-user"
    UPDATE_USER = "update-user"
    UPDATE_OWN_PROFILE = "update-own-profile"
    CHANGE_OWN_PASSWORD = "change-own-password"
    DELETE_USER = "delete-user"
    SEED_USERS = "seed-users"
    VIEW_AUDIT = "view-audit"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    error: Optional[Type[AppError]] = None

    def enforce(self) -> None:
        """Raise the error attached to a denial; no-op when allowed."""
        if not self.allowed:
            raise self.error(self.reason)


ALLOW = Decision(allowed=True)


def deny(error: Type[AppError], reason: Optional[str] = None) -> Decision:
    return Decision(allowed=False, reason=reason or error.message, error=error)


def _role_denied(actor: User) -> Decision:
    return deny(NotAuthorized, f"User role '{actor.role.value}' is not authorized to access this route")


def _any_authenticated(actor, target, admin_count):
    return ALLOW


def _admin_only(actor, target, admin_count):
    if actor.role == Role.ADMIN:
        return ALLOW
    return _role_denied(actor)


def _own_record(actor, target, admin_count):
    if target is None or target.id == actor.id:
        return ALLOW
    return deny(NotAuthorized, "Not authorized to modify another user's account")


def _delete_user(actor, target, admin_count):
    decision = _admin_only(actor, target, admin_count)
    if not decision.allowed:
        return decision
    if target is None:
        return ALLOW
    if target.id == actor.id:
        return deny(SelfDeletionForbidden)
    if target.role == Role.ADMIN and (admin_count or 0) <= 1:
        return deny(LastAdminForbidden)
    return ALLOW


Rule = Callable[[User, Optional[User], Optional[int]], Decision]

_RULES: Dict[Action, Rule] = {
    Action.LIST_USERS: _admin_only,
    Action.VIEW_USER: _any_authenticated,
    Action.SEARCH_USERS: _any_authenticated,
    Action.CREATE_USER: _admin_only,
    Action.UPDATE_USER: _admin_only,
    Action.UPDATE_OWN_PROFILE: _own_record,
    Action.CHANGE_OWN_PASSWORD: _own_record,
    Action.DELETE_USER: _delete_user,
    Action.SEED_USERS: _admin_only,
    Action.VIEW_AUDIT: _any_authenticated,
}

# Adding an Action without a rule is a programming error caught at import time.
_missing_rules = set(Action) - set(_RULES)
if _missing_rules:
    raise RuntimeError(f"No authorization rule for: {sorted(a.value for a in _missing_rules)}")


def decide(
    actor: Optional[User],
    action: Action,
    target: Optional[User] = None,
    admin_count: Optional[int] = None,
) -> Decision:
    """
    Decide whether ``actor`` may perform ``action`` on ``target``.

    Args:
        actor: The authenticated user, or None for anonymous requests
        action: What the actor wants to do
        target: The affected user, when the action has one
        admin_count: Number of admin accounts, required for DELETE_USER on an admin

    Returns:
        ``ALLOW`` or a denial carrying the reason and the error type to raise
    """
    if actor is None:
        return deny(TokenMissing)
    return _RULES[action](actor, target, admin_count)


def authorize(
    actor: Optional[User],
    action: Action,
    target: Optional[User] = None,
    admin_count: Optional[int] = None,
) -> None:
    """``decide`` and raise on denial."""
    decide(actor, action, target, admin_count).enforce()
