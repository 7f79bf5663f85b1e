"""
Configuration for the User Manager service.

Settings are read from the environment once at process start and passed to
``create_app``. Nothing else in the package reads ``os.environ`` directly.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)

REQUIRED_ENV_VARS = ["DATABASE_URL", "JWT_SECRET", "PORT", "CORS_ORIGIN"]

WEAK_SECRETS = {
    "your-super-secret-jwt-key-CHANGE-THIS-IN-PRODUCTION",
    "your-secret-key-change-this-in-production",
    "change-me",
    "secret",
    "password",
}

MIN_SECRET_LENGTH = 32

ALGORITHM = "HS256"

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


class ConfigurationError(RuntimeError):
    """Raised when the environment cannot produce a usable configuration."""


def parse_duration(value: str) -> timedelta:
    """
    Parse a token lifetime such as ``7d``, ``12h``, ``30m``, ``45s`` or ``3600``.

    Raises:
        ConfigurationError: if the value is not a positive duration
    """
    match = _DURATION_PATTERN.match(value or "")
    if not match:
        raise ConfigurationError(f"Invalid duration {value!r} for JWT_EXPIRE")
    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        raise ConfigurationError("JWT_EXPIRE must be greater than zero")
    return timedelta(**{_DURATION_UNITS[unit]: amount})


@dataclass(frozen=True)
class Settings:
    """
    Process-wide settings.

    Attributes:
        database_url: SQLAlchemy connection string for the user store
        jwt_secret: HMAC key used to sign session tokens
        jwt_expire: lifetime of issued tokens
        port: TCP port the HTTP server binds to
        cors_origin: origin allowed to call the API from a browser
        environment: ``development``, ``production`` or ``test``
        bcrypt_rounds: work factor for password hashing
        log_level: root log level name
    """
    database_url: Optional[str]
    jwt_secret: Optional[str]
    jwt_expire: timedelta = timedelta(days=7)
    port: Optional[int] = None
    cors_origin: Optional[str] = None
    environment: str = "development"
    bcrypt_rounds: int = 10
    log_level: str = "INFO"
    missing: List[str] = field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build a ``Settings`` object from environment variables.

    Missing required variables are recorded on ``Settings.missing`` rather than
    raised here so that ``validate_settings`` can report all of them at once.
    """
    env = os.environ if environ is None else environ
    missing = [name for name in REQUIRED_ENV_VARS if not env.get(name)]

    port = env.get("PORT")
    try:
        port_value = int(port) if port else None
    except ValueError as exc:
        raise ConfigurationError(f"PORT must be an integer, got {port!r}") from exc

    rounds = env.get("BCRYPT_ROUNDS", "10")
    try:
        rounds_value = int(rounds)
    except ValueError as exc:
        raise ConfigurationError(f"BCRYPT_ROUNDS must be an integer, got {rounds!r}") from exc

    return Settings(
        database_url=env.get("DATABASE_URL"),
        jwt_secret=env.get("JWT_SECRET"),
        jwt_expire=parse_duration(env.get("JWT_EXPIRE", "7d")),
        port=port_value,
        cors_origin=env.get("CORS_ORIGIN"),
        environment=env.get("ENVIRONMENT", "development").strip().lower(),
        bcrypt_rounds=rounds_value,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        missing=missing,
    )


def validate_settings(settings: Settings) -> Settings:
    """
    Fail fast on unusable configuration.

    Missing variables are always fatal. A weak or short ``JWT_SECRET`` is fatal
    in production and only logged as a warning in other environments.

    Raises:
        ConfigurationError: if the settings must not be used
    """
    if settings.missing:
        raise ConfigurationError(
            "Missing required environment variables: " + ", ".join(settings.missing)
        )

    problems = []
    if settings.jwt_secret in WEAK_SECRETS:
        problems.append("JWT_SECRET is using a default or weak value")
    if len(settings.jwt_secret) < MIN_SECRET_LENGTH:
        problems.append(f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters long")

    if not 4 <= settings.bcrypt_rounds <= 31:
        raise ConfigurationError("BCRYPT_ROUNDS must be between 4 and 31")

    for problem in problems:
        if settings.is_production:
            raise ConfigurationError(problem)
        logger.warning(f"{problem}. This is NOT safe for production!")

    logger.info("Environment variables validated successfully")
    return settings


def configure_logging(level: str = "INFO") -> None:
    """Install the service-wide log format on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
