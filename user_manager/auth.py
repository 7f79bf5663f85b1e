"""
Authentication utilities.

Provides password hashing, JWT token creation/validation, and FastAPI dependencies
that resolve the bearer token of a request to the acting user.
"""
from datetime import datetime, timezone
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .config import ALGORITHM, Settings
from .database import get_db
from .errors import AccountInactive, TokenExpired, TokenInvalid, TokenMissing
from .policy import Action, authorize

logger = logging.getLogger(__name__)

# Security scheme for JWT bearer tokens. Missing headers are reported by
# get_current_user so the response keeps the API's error envelope.
security = HTTPBearer(auto_error=False)


class PasswordHasher:
    """Salted bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: int = 10):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        """
        Hash a password for secure storage.

        Args:
            password: The plain text password to hash

        Returns:
            The hashed password, including its random salt
        """
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a plain password against a hashed password.

        Returns:
            True if the password matches, False otherwise (including malformed hashes)
        """
        try:
            return self._context.verify(plain_password, hashed_password)
        except ValueError:
            return False


class TokenService:
    """Issues and verifies signed, time-limited session tokens."""

    def __init__(self, settings: Settings):
        self._secret = settings.jwt_secret
        self._lifetime = settings.jwt_expire

    def issue(self, user: models.User) -> str:
        """
        Create a JWT access token for ``user``.

        The ``sub`` claim carries the user id; ``email`` and ``role`` are
        informational only, authorization always reads the stored record.
        """
        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "iat": now,
            "exp": now + self._lifetime,
        }
        return jwt.encode(to_encode, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> schemas.TokenData:
        """
        Decode ``token`` and return its claims.

        Raises:
            TokenExpired: the token is past its expiration
            TokenInvalid: bad signature, malformed token or missing/invalid ``sub``
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise TokenInvalid()

        user_id_str = payload.get("sub")
        try:
            user_id = int(user_id_str)
        except (TypeError, ValueError):
            logger.warning("Token has no usable 'sub' claim")
            raise TokenInvalid()
        return schemas.TokenData(user_id=user_id, email=payload.get("email"), role=payload.get("role"))


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> models.User:
    """
    FastAPI dependency to get the current authenticated user from JWT token.

    Raises:
        TokenMissing: no bearer token was sent
        TokenExpired / TokenInvalid: the token failed verification
        TokenInvalid: with message "User not found" when the user was deleted
        AccountInactive: the user has been deactivated
    """
    if credentials is None or not credentials.credentials:
        raise TokenMissing()

    token_data = tokens.verify(credentials.credentials)

    user = crud.get_user(db, token_data.user_id)
    if user is None:
        raise TokenInvalid("User not found")
    if user.status == models.Status.INACTIVE:
        raise AccountInactive()
    return user


def require(action: Action):
    """
    Build a dependency that rejects the request unless the policy allows ``action``.

    Runs before body validation, so a user without the right role gets 403
    whatever they sent.
    """

    def dependency(current_user: models.User = Depends(get_current_user)) -> models.User:
        authorize(current_user, action)
        return current_user

    return dependency
