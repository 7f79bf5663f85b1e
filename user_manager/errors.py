"""
Error taxonomy for the User Manager service and its HTTP translation.

Service code raises subclasses of ``AppError``; ``register_exception_handlers``
turns them into the uniform ``{"success": false, "message": ...}`` envelope.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for every failure the API reports to clients."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server Error"

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class DuplicateEmail(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Email already exists"


class PasswordTooShort(ValidationError):
    message = "New password must be at least 6 characters"


class PasswordTooLong(ValidationError):
    message = "New password must be at most 128 characters"


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid credentials"


class AccountInactive(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "User account is inactive"


class TokenMissing(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authorized, no token provided"


class TokenExpired(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Token expired"


class TokenInvalid(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authorized, invalid token"


class NotAuthorized(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Not authorized"


class SelfDeletionForbidden(NotAuthorized):
    message = "You cannot delete your own account"


class LastAdminForbidden(NotAuthorized):
    message = "Cannot delete the last administrator"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "User not found"


class ServerError(AppError):
    pass


def _error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def _format_validation_error(error: dict) -> str:
    field = error.get("loc", ())[-1] if error.get("loc") else None
    # malformed JSON reports a byte offset, not a field name
    if isinstance(field, int):
        field = None
    message = error.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    if error.get("type") == "missing" and field is not None:
        return f"{field} is required"
    if field is not None and not message.startswith(str(field)):
        return f"{field}: {message}"
    return message


def register_exception_handlers(app: FastAPI) -> None:
    """Install the boundary translator for every error the API can produce."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        headers = None
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        return _error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        messages = [_format_validation_error(error) for error in exc.errors()]
        return _error_response(status.HTTP_400_BAD_REQUEST, ", ".join(messages) or "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return _error_response(exc.status_code, "Route not found")
        return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ServerError.message)
