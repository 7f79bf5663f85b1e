"""
Pydantic schemas for request/response validation in the User Manager service.

JSON bodies use camelCase keys (``firstName``, ``zipCode``); the Python side
uses snake_case attribute names.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import AuditAction, Role, Status

NameField = Field(..., min_length=1, max_length=50)
OptionalName = Field(default=None, min_length=1, max_length=50)
ContactField = Field(default=None, max_length=100)

MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes and passlib refuses secrets over 4096
MAX_PASSWORD_LENGTH = 128


class CamelModel(BaseModel):
    """Base schema that reads and writes camelCase JSON keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# Emails are compared and stored lowercased.
NormalizedEmail = Annotated[EmailStr, AfterValidator(str.lower)]


class ContactFields(CamelModel):
    """Optional free-text contact details shared by several request bodies."""
    phone: Optional[str] = ContactField
    address: Optional[str] = ContactField
    city: Optional[str] = ContactField
    state: Optional[str] = ContactField
    zip_code: Optional[str] = ContactField


class UserRegister(ContactFields):
    """Schema for self-service registration. The role is always ``user``."""
    first_name: str = NameField
    last_name: str = NameField
    email: NormalizedEmail
    password: str = Field(
        ...,
        min_length=MIN_PASSWORD_LENGTH,
        max_length=MAX_PASSWORD_LENGTH,
        description="Password must be 6 to 128 characters",
    )


class UserCreate(UserRegister):
    """Schema for creating a user by an admin; role and status are selectable."""
    role: Role = Role.USER
    status: Status = Status.ACTIVE


class UserLogin(CamelModel):
    """Schema for login. Presence is checked by the service to keep its message."""
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(ContactFields):
    """Fields a user may change on their own record. Email, role and status are ignored."""
    first_name: Optional[str] = OptionalName
    last_name: Optional[str] = OptionalName

    @field_validator("first_name", "last_name")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class PasswordChange(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class UserUpdate(ContactFields):
    """Schema for admin updates. All fields are optional; password is not accepted here."""
    first_name: Optional[str] = OptionalName
    last_name: Optional[str] = OptionalName
    email: Optional[NormalizedEmail] = None
    role: Optional[Role] = None
    status: Optional[Status] = None

    @field_validator("first_name", "last_name", "email", "role", "status")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class UserOut(CamelModel):
    """
    Sanitized user returned by every endpoint. There is no password field.
    """
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    first_name: str
    last_name: str
    email: str
    role: Role
    status: Status
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    join_date: datetime
    created_at: datetime
    updated_at: datetime


class UserResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: UserOut


class AuthResponse(UserResponse):
    token: str


class TokenResponse(CamelModel):
    success: bool = True
    message: str
    token: str


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_users: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class UserListResponse(CamelModel):
    success: bool = True
    count: int
    data: List[UserOut]
    pagination: Pagination


class UserSearchResponse(CamelModel):
    success: bool = True
    count: int
    data: List[UserOut]


class MessageResponse(CamelModel):
    success: bool = True
    message: str
    data: Dict[str, Any] = {}


class SeedResponse(CamelModel):
    success: bool = True
    count: int
    admins_preserved: int
    message: str
    data: List[UserOut]


class AuditLogOut(CamelModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    action: AuditAction
    entity_type: str
    entity_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    timestamp: datetime
    created_at: datetime
    updated_at: datetime


class AuditLogListResponse(CamelModel):
    success: bool = True
    count: int
    data: List[AuditLogOut]


class TokenData(BaseModel):
    """Schema for data stored in JWT token."""
    user_id: int
    email: Optional[str] = None
    role: Optional[str] = None
