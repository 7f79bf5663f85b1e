from dataclasses import replace
from datetime import timedelta

import pytest
from jose import jwt

from user_manager.auth import PasswordHasher, TokenService
from user_manager.config import ALGORITHM
from user_manager.errors import TokenExpired, TokenInvalid
from user_manager.models import Role, User


@pytest.fixture()
def user():
    return User(id=7, email="seven@example.com", role=Role.ADMIN, first_name="Seven", last_name="Of")


def test_hash_is_salted_and_verifiable():
    hasher = PasswordHasher(rounds=4)

    first = hasher.hash("supersecret")
    second = hasher.hash("supersecret")

    assert first != "supersecret"
    assert first != second
    assert first.startswith("$2b$04$")
    assert hasher.verify("supersecret", first)
    assert not hasher.verify("incorrect", first)


def test_verify_rejects_malformed_hash():
    assert PasswordHasher(rounds=4).verify("whatever", "not-a-hash") is False


def test_token_round_trip(settings, user):
    tokens = TokenService(settings)

    data = tokens.verify(tokens.issue(user))

    assert data.user_id == 7
    assert data.email == "seven@example.com"
    assert data.role == "admin"


def test_token_carries_expiry_from_settings(settings, user):
    token = TokenService(replace(settings, jwt_expire=timedelta(hours=2))).issue(user)

    claims = jwt.get_unverified_claims(token)

    assert claims["exp"] - claims["iat"] == 2 * 3600


def test_expired_token(settings, user):
    tokens = TokenService(replace(settings, jwt_expire=timedelta(seconds=-30)))

    with pytest.raises(TokenExpired):
        tokens.verify(tokens.issue(user))


def test_token_signed_with_other_secret_is_invalid(settings, user):
    forged = TokenService(replace(settings, jwt_secret="x" * 40)).issue(user)

    with pytest.raises(TokenInvalid):
        TokenService(settings).verify(forged)


@pytest.mark.parametrize("sub", [None, "abc"])
def test_token_without_usable_subject_is_invalid(settings, sub):
    claims = {"email": "a@example.com"}
    if sub is not None:
        claims["sub"] = sub
    token = jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)

    with pytest.raises(TokenInvalid):
        TokenService(settings).verify(token)


def test_expired_token_rejected_by_api(client, settings, regular_id, open_session):
    from user_manager import models

    with open_session() as db:
        token = TokenService(replace(settings, jwt_expire=timedelta(seconds=-30))).issue(db.get(models.User, regular_id))

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Token expired"}
