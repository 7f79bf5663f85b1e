"""
SQLAlchemy ORM models for the User Manager service.

Defines the ``users`` and ``audit_logs`` tables and the closed enumerations
used for roles, account status and audit actions.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, Integer, String

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class Status(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    """
    User model representing an account in the system.

    Attributes:
        id (int): Primary key, auto-incremented user ID
        first_name (str): Given name
        last_name (str): Family name
        email (str): Lowercased email address (unique)
        password_hash (str): bcrypt hash, never serialized
        role (Role): ``user`` or ``admin``
        status (Status): ``active`` or ``inactive``
        phone, address, city, state, zip_code (str): Optional contact details
        join_date (datetime): Set at creation, never changed
        created_at / updated_at (datetime): Maintained by the ORM
    """
    __tablename__ = "users"
    # SQLite would otherwise hand a deleted user's id to the next insert
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(Role, values_callable=_values, native_enum=False), default=Role.USER, nullable=False)
    status = Column(Enum(Status, values_callable=_values, native_enum=False), default=Status.ACTIVE, nullable=False)
    phone = Column(String(100), nullable=True)
    address = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(100), nullable=True)
    join_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class AuditLog(Base):
    """
    Append-only record of a mutation on an entity.

    ``entity_id`` is nullable for mutations that never produced an id.
    ``user_email`` / ``user_name`` identify the actor, not the affected user.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(Enum(AuditAction, values_callable=_values, native_enum=False), nullable=False, index=True)
    entity_type = Column(String(50), default="USER", nullable=False)
    entity_id = Column(Integer, nullable=True, index=True)
    details = Column(JSON, nullable=True)
    user_email = Column(String(255), nullable=True)
    user_name = Column(String(120), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
