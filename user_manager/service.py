"""
User management operations.

Every operation validates its input, asks the authorization policy, stages the
repository change and its audit entry on one session, and commits once. A
failure anywhere before the commit leaves neither the change nor an audit
entry behind.
"""
from contextlib import contextmanager
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import audit, crud, models, schemas
from .auth import PasswordHasher, TokenService
from .errors import (
    AccountInactive,
    DuplicateEmail,
    InvalidCredentials,
    NotFound,
    PasswordTooLong,
    PasswordTooShort,
    ServerError,
    ValidationError,
)
from .policy import Action, authorize
from .seed_data import DUMMY_USERS

logger = logging.getLogger(__name__)

REGISTER_DUPLICATE_MESSAGE = "User with this email already exists"
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


@dataclass
class Page:
    users: List[models.User]
    current_page: int
    total_pages: int
    total_users: int
    limit: int

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1


def positive_int(raw, default: int) -> int:
    """Parse a paging parameter; missing, non-numeric and out-of-range values give ``default``."""
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if 0 < value <= crud.MAX_ID else default


def build_sample_user(entry: dict, hasher: PasswordHasher) -> models.User:
    """Turn one ``DUMMY_USERS`` entry into an unsaved ``User`` with a fresh hash."""
    fields = {key: value for key, value in entry.items() if key != "password"}
    fields["role"] = models.Role(fields["role"])
    fields["status"] = models.Status(fields["status"])
    return models.User(**fields, password_hash=hasher.hash(entry["password"]))


@contextmanager
def transaction(db: Session, duplicate_message: str = DuplicateEmail.message):
    """
    Commit everything staged inside the block, or roll all of it back.

    A unique-constraint violation is reported as ``DuplicateEmail``; this is
    what settles two concurrent writers of the same email.
    """
    try:
        yield
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if "unique" in str(exc.orig).lower() or "duplicate" in str(exc.orig).lower():
            raise DuplicateEmail(duplicate_message) from exc
        logger.error(f"Integrity error: {exc.orig}")
        raise ServerError() from exc
    except Exception:
        db.rollback()
        raise


class UserService:
    """Orchestrates validation, authorization, persistence and auditing."""

    def __init__(self, hasher: PasswordHasher, tokens: TokenService):
        self.hasher = hasher
        self.tokens = tokens

    # Self-service

    def register(self, db: Session, data: schemas.UserRegister) -> Tuple[models.User, str]:
        """
        Create a ``user``-role account and sign it in.

        Raises:
            DuplicateEmail: the email is already registered
        """
        if crud.get_user_by_email(db, data.email):
            raise DuplicateEmail(REGISTER_DUPLICATE_MESSAGE)

        fields = data.model_dump(exclude={"password"})
        user = models.User(
            **fields,
            password_hash=self.hasher.hash(data.password),
            role=models.Role.USER,
            status=models.Status.ACTIVE,
        )
        with transaction(db, REGISTER_DUPLICATE_MESSAGE):
            crud.add_user(db, user)
            audit.record(db, models.AuditAction.CREATE, user.id, actor=user, details={
                "firstName": user.first_name,
                "lastName": user.last_name,
                "email": user.email,
            })
        logger.info(f"Registered user {user.id} <{user.email}>")
        return user, self.tokens.issue(user)

    def login(self, db: Session, email: Optional[str], password: Optional[str]) -> Tuple[models.User, str]:
        """
        Authenticate by email and password.

        Unknown email and wrong password raise the same ``InvalidCredentials``.
        """
        if not email or not password:
            raise ValidationError("Please provide email and password")

        user = crud.get_user_by_email(db, email)
        if user is None or not self.hasher.verify(password, user.password_hash):
            logger.warning(f"Failed login attempt for {email.strip().lower()}")
            raise InvalidCredentials()
        if user.status == models.Status.INACTIVE:
            raise AccountInactive()
        return user, self.tokens.issue(user)

    def update_profile(self, db: Session, actor: models.User, data: schemas.ProfileUpdate) -> models.User:
        """Change the actor's own name and contact fields; other fields are never touched."""
        authorize(actor, Action.UPDATE_OWN_PROFILE, target=actor)

        changes = data.model_dump(exclude_unset=True)
        with transaction(db):
            crud.apply_changes(db, actor, changes)
            audit.record(db, models.AuditAction.UPDATE, actor.id, actor=actor,
                         details=data.model_dump(exclude_unset=True, by_alias=True))
        logger.info(f"User {actor.id} updated profile fields {sorted(changes)}")
        return actor

    def change_password(
        self,
        db: Session,
        actor: models.User,
        current_password: Optional[str],
        new_password: Optional[str],
    ) -> str:
        """
        Replace the actor's password and return a fresh token.

        Raises:
            ValidationError: a field is missing
            PasswordTooShort: the new password has fewer than 6 characters
            PasswordTooLong: the new password has more than 128 characters
            InvalidCredentials: the current password does not verify
        """
        authorize(actor, Action.CHANGE_OWN_PASSWORD, target=actor)
        if not current_password or not new_password:
            raise ValidationError("Please provide current password and new password")
        if len(new_password) < schemas.MIN_PASSWORD_LENGTH:
            raise PasswordTooShort()
        if len(new_password) > schemas.MAX_PASSWORD_LENGTH:
            raise PasswordTooLong()
        if not self.hasher.verify(current_password, actor.password_hash):
            raise InvalidCredentials("Current password is incorrect")

        with transaction(db):
            crud.apply_changes(db, actor, {"password_hash": self.hasher.hash(new_password)})
            audit.record(db, models.AuditAction.UPDATE, actor.id, actor=actor,
                         details={"passwordChanged": True})
        logger.info(f"User {actor.id} changed password")
        return self.tokens.issue(actor)

    # Reads

    def get_user(self, db: Session, actor: models.User, raw_id) -> models.User:
        authorize(actor, Action.VIEW_USER)
        user = crud.get_user(db, crud.parse_user_id(raw_id))
        if user is None:
            raise NotFound()
        return user

    def list_users(self, db: Session, actor: models.User, page=DEFAULT_PAGE, limit=DEFAULT_PAGE_SIZE) -> Page:
        authorize(actor, Action.LIST_USERS)
        page = positive_int(page, DEFAULT_PAGE)
        limit = positive_int(limit, DEFAULT_PAGE_SIZE)

        total = crud.count_users(db)
        users = crud.get_users(db, skip=(page - 1) * limit, limit=limit)
        return Page(
            users=users,
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_users=total,
            limit=limit,
        )

    def search_users(self, db: Session, actor: models.User, name: Optional[str]) -> List[models.User]:
        authorize(actor, Action.SEARCH_USERS)
        if not name or not name.strip():
            raise ValidationError("Name query parameter is required")
        return crud.search_users(db, name.strip())

    # Administration

    def create_user(self, db: Session, actor: models.User, data: schemas.UserCreate) -> models.User:
        """Create a user with a chosen role; the audit entry never holds the password."""
        authorize(actor, Action.CREATE_USER)
        if crud.get_user_by_email(db, data.email):
            raise DuplicateEmail()

        fields = data.model_dump(exclude={"password"})
        user = models.User(**fields, password_hash=self.hasher.hash(data.password))
        with transaction(db):
            crud.add_user(db, user)
            audit.record(db, models.AuditAction.CREATE, user.id, actor=actor,
                         details=audit.user_snapshot(user))
        logger.info(f"Admin {actor.id} created user {user.id} <{user.email}> as {user.role.value}")
        return user

    def update_user(self, db: Session, actor: models.User, raw_id, data: schemas.UserUpdate) -> models.User:
        """
        Apply an admin edit to any user.

        Raises:
            NotFound: no user with that id
            DuplicateEmail: the new email belongs to another user
        """
        authorize(actor, Action.UPDATE_USER)
        target = crud.get_user(db, crud.parse_user_id(raw_id))
        if target is None:
            raise NotFound()
        authorize(actor, Action.UPDATE_USER, target=target)

        changes = data.model_dump(exclude_unset=True)
        new_email = changes.get("email")
        if new_email and new_email != target.email:
            other = crud.get_user_by_email(db, new_email)
            if other is not None and other.id != target.id:
                raise DuplicateEmail()

        with transaction(db):
            crud.apply_changes(db, target, changes)
            audit.record(db, models.AuditAction.UPDATE, target.id, actor=actor, details={
                "updatedFields": data.model_dump(exclude_unset=True, by_alias=True, mode="json"),
                "currentData": audit.user_snapshot(target),
            })
        logger.info(f"Admin {actor.id} updated user {target.id} fields {sorted(changes)}")
        return target

    def delete_user(self, db: Session, actor: models.User, raw_id) -> None:
        """
        Delete a user after the self-deletion and last-admin guards.

        Raises:
            NotFound: no user with that id
            SelfDeletionForbidden: the actor targeted their own account
            LastAdminForbidden: the target is the only remaining admin
        """
        authorize(actor, Action.DELETE_USER)
        target = crud.get_user(db, crud.parse_user_id(raw_id))
        if target is None:
            raise NotFound()
        authorize(actor, Action.DELETE_USER, target=target, admin_count=crud.count_admins(db))

        target_id = target.id
        snapshot = audit.user_snapshot(target, include_role=True)
        with transaction(db):
            crud.delete_user(db, target)
            audit.record(db, models.AuditAction.DELETE, target_id, actor=actor,
                         details={"deletedUser": snapshot})
        logger.info(f"Admin {actor.id} deleted user {target_id} <{snapshot['email']}>")

    def seed(self, db: Session, actor: models.User) -> Tuple[List[models.User], int]:
        """
        Replace every non-admin account with the sample dataset.

        Existing admins are kept and any sample entry sharing an admin's email
        is skipped. Each removal and insertion is audited.

        Returns:
            (inserted users, number of admins preserved)
        """
        authorize(actor, Action.SEED_USERS)
        admins = crud.get_admins(db)
        admin_emails = {admin.email for admin in admins}

        inserted = []
        with transaction(db):
            removed = crud.get_non_admins(db)
            for user in removed:
                audit.record(db, models.AuditAction.DELETE, user.id, actor=actor,
                             details={"deletedUser": audit.user_snapshot(user, include_role=True), "seed": True})
            crud.delete_users(db, removed)

            for entry in DUMMY_USERS:
                if entry["email"] in admin_emails:
                    continue
                user = crud.add_user(db, build_sample_user(entry, self.hasher))
                audit.record(db, models.AuditAction.CREATE, user.id, actor=actor,
                             details={**audit.user_snapshot(user, include_role=True), "seed": True})
                inserted.append(user)
        logger.info(f"Admin {actor.id} seeded {len(inserted)} users, preserved {len(admins)} admins")
        return inserted, len(admins)

    # Audit trail

    def list_audit_logs(
        self,
        db: Session,
        actor: models.User,
        limit=audit.DEFAULT_LIMIT,
        action: Optional[models.AuditAction] = None,
    ) -> List[models.AuditLog]:
        authorize(actor, Action.VIEW_AUDIT)
        return audit.get_logs(db, limit=positive_int(limit, audit.DEFAULT_LIMIT), action=action)

    def entity_audit_logs(self, db: Session, actor: models.User, raw_id) -> List[models.AuditLog]:
        authorize(actor, Action.VIEW_AUDIT)
        entity_id = crud.parse_user_id(raw_id)
        if entity_id is None:
            raise NotFound("Resource not found")
        return audit.get_logs_for_entity(db, entity_id)
