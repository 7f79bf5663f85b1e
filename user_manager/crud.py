"""
Database operations for user records.

Functions here stage changes on the session (``add`` / ``flush``) but never
commit; the service layer commits a mutation together with its audit entry.
"""
from typing import Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from . import models


MAX_ID = 2**31 - 1


def parse_user_id(raw) -> Optional[int]:
    """Return ``raw`` as a positive integer id, or None when it is malformed or out of range."""
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if 0 < value <= MAX_ID else None


def get_user(db: Session, user_id: Optional[int]) -> Optional[models.User]:
    """
    Retrieve a single user by ID.

    Returns:
        User object or None if not found
    """
    if user_id is None:
        return None
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    """Retrieve a user by email address, ignoring case."""
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def count_users(db: Session) -> int:
    return db.query(func.count(models.User.id)).scalar()


def count_admins(db: Session) -> int:
    return db.query(func.count(models.User.id)).filter(models.User.role == models.Role.ADMIN).scalar()


def _newest_first(query):
    return query.order_by(models.User.created_at.desc(), models.User.id.desc())


def get_users(db: Session, skip: int = 0, limit: int = 10) -> List[models.User]:
    """
    Retrieve a page of users, newest first.

    Args:
        skip: Number of records to skip (offset)
        limit: Maximum number of records to return
    """
    return _newest_first(db.query(models.User)).offset(skip).limit(limit).all()


def search_users(db: Session, name: str) -> List[models.User]:
    """Case-insensitive substring match on first OR last name, newest first."""
    escaped = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    query = db.query(models.User).filter(
        or_(
            models.User.first_name.ilike(pattern, escape="\\"),
            models.User.last_name.ilike(pattern, escape="\\"),
        )
    )
    return _newest_first(query).all()


def get_admins(db: Session) -> List[models.User]:
    return db.query(models.User).filter(models.User.role == models.Role.ADMIN).all()


def get_non_admins(db: Session) -> List[models.User]:
    return db.query(models.User).filter(models.User.role != models.Role.ADMIN).all()


def add_user(db: Session, user: models.User) -> models.User:
    """Stage a new user and flush so its id is assigned."""
    db.add(user)
    db.flush()
    return user


def apply_changes(db: Session, user: models.User, changes: dict) -> models.User:
    """Set each attribute in ``changes`` on ``user`` and flush."""
    for key, value in changes.items():
        setattr(user, key, value)
    db.flush()
    return user


def delete_user(db: Session, user: models.User) -> None:
    db.delete(user)
    db.flush()


def delete_users(db: Session, users: Iterable[models.User]) -> int:
    count = 0
    for user in users:
        db.delete(user)
        count += 1
    db.flush()
    return count
