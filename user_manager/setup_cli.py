"""
Initial setup command: create the default admin and load the sample users.

Usage:
    user-manager-setup [--email admin@example.com] [--password ...] [--skip-seed]

Only ``DATABASE_URL`` is required. Running it twice changes nothing.
"""
import argparse
import logging
import os
import sys
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from . import audit, crud, models
from .auth import PasswordHasher
from .config import configure_logging
from .database import build_engine, build_session_factory, init_db
from .schemas import MAX_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH
from .seed_data import DEFAULT_ADMIN, DUMMY_USERS
from .service import build_sample_user, transaction

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the User Manager admin account and sample users")
    parser.add_argument("--email", default=DEFAULT_ADMIN["email"], help="Admin email address")
    parser.add_argument("--password", default=DEFAULT_ADMIN["password"], help="Admin password")
    parser.add_argument("--first-name", default=DEFAULT_ADMIN["first_name"])
    parser.add_argument("--last-name", default=DEFAULT_ADMIN["last_name"])
    parser.add_argument("--skip-seed", action="store_true", help="Do not insert the sample users")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL (defaults to DATABASE_URL)",
    )
    return parser.parse_args(argv)


def create_admin_user(
    db: Session,
    hasher: PasswordHasher,
    email: str,
    password: str,
    first_name: str = "Admin",
    last_name: str = "User",
) -> Tuple[models.User, bool]:
    """
    Create an active admin unless the email is already taken.

    Returns:
        (user, created) where ``created`` is False for an existing account
    """
    existing = crud.get_user_by_email(db, email)
    if existing is not None:
        return existing, False

    admin = models.User(
        first_name=first_name,
        last_name=last_name,
        email=email.strip().lower(),
        password_hash=hasher.hash(password),
        role=models.Role.ADMIN,
        status=models.Status.ACTIVE,
    )
    with transaction(db):
        crud.add_user(db, admin)
        audit.record(db, models.AuditAction.CREATE, admin.id, actor=admin, details={
            **audit.user_snapshot(admin, include_role=True),
            "note": "Admin user created via setup script",
        })
    return admin, True


def seed_missing_users(db: Session, hasher: PasswordHasher, actor: Optional[models.User]) -> Tuple[int, int]:
    """
    Insert every sample user whose email is not present yet.

    Returns:
        (created, skipped)
    """
    created = skipped = 0
    with transaction(db):
        for entry in DUMMY_USERS:
            if crud.get_user_by_email(db, entry["email"]) is not None:
                skipped += 1
                continue
            user = crud.add_user(db, build_sample_user(entry, hasher))
            audit.record(db, models.AuditAction.CREATE, user.id, actor=actor,
                         details={**audit.user_snapshot(user, include_role=True), "seed": True})
            created += 1
    return created, skipped


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())

    database_url = args.database_url or os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL is not set and --database-url was not given")
        return 1
    if not MIN_PASSWORD_LENGTH <= len(args.password) <= MAX_PASSWORD_LENGTH:
        logger.error(f"Admin password must be {MIN_PASSWORD_LENGTH} to {MAX_PASSWORD_LENGTH} characters")
        return 1

    engine = build_engine(database_url)
    init_db(engine)
    hasher = PasswordHasher(rounds=int(os.getenv("BCRYPT_ROUNDS", "10")))

    db = build_session_factory(engine)()
    try:
        admin, created = create_admin_user(
            db, hasher, args.email, args.password, args.first_name, args.last_name
        )
        if created:
            logger.info(f"Admin user created: {admin.email} (id {admin.id})")
        else:
            logger.warning(f"User with email {admin.email} already exists, skipping admin creation")

        if not args.skip_seed:
            inserted, skipped = seed_missing_users(db, hasher, admin)
            logger.info(f"Created {inserted} dummy users ({skipped} already existed)")
    finally:
        db.close()

    logger.info("Setup completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
