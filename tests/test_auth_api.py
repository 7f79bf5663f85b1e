from user_manager import models

REGISTER_BODY = {
    "firstName": "John",
    "lastName": "Doe",
    "email": "John.Doe@Example.com",
    "password": "password123",
    "phone": "555-1234",
    "city": "Springfield",
}


def _audit_entries(open_session, entity_id):
    with open_session() as db:
        return [
            (entry.action, entry.details, entry.user_email)
            for entry in db.query(models.AuditLog).filter(models.AuditLog.entity_id == entity_id)
        ]


def test_register_creates_user_role_and_hides_password(client, open_session):
    response = client.post("/api/auth/register", json={**REGISTER_BODY, "role": "admin"})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["data"]["email"] == "john.doe@example.com"
    assert body["data"]["firstName"] == "John"
    assert body["data"]["role"] == "user"
    assert body["data"]["status"] == "active"
    assert "password" not in body["data"]
    assert "passwordHash" not in body["data"]

    with open_session() as db:
        stored = db.get(models.User, body["data"]["id"])
        assert stored.password_hash != REGISTER_BODY["password"]
        assert stored.role == models.Role.USER


def test_register_writes_one_create_audit_entry(client, open_session):
    user_id = client.post("/api/auth/register", json=REGISTER_BODY).json()["data"]["id"]

    entries = _audit_entries(open_session, user_id)
    assert len(entries) == 1
    action, details, actor_email = entries[0]
    assert action == models.AuditAction.CREATE
    assert details == {"firstName": "John", "lastName": "Doe", "email": "john.doe@example.com"}
    assert actor_email == "john.doe@example.com"


def test_register_duplicate_email_is_case_insensitive(client):
    client.post("/api/auth/register", json=REGISTER_BODY)
    response = client.post("/api/auth/register", json={**REGISTER_BODY, "email": "JOHN.DOE@example.com"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["message"] == "User with this email already exists"


def test_register_validation_errors(client):
    missing = client.post("/api/auth/register", json={"email": "a@example.com", "password": "password123"})
    assert missing.status_code == 400
    assert missing.json()["success"] is False
    assert "firstName is required" in missing.json()["message"]
    assert "lastName is required" in missing.json()["message"]

    bad_email = client.post("/api/auth/register", json={**REGISTER_BODY, "email": "not-an-email"})
    assert bad_email.status_code == 400

    short_password = client.post("/api/auth/register", json={**REGISTER_BODY, "password": "12345"})
    assert short_password.status_code == 400
    assert "password" in short_password.json()["message"]


def test_login_success(client, make_user):
    make_user(email="login@example.com")

    response = client.post("/api/auth/login", json={"email": "LOGIN@example.com", "password": "password123"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["data"]["email"] == "login@example.com"
    assert "password" not in body["data"]


def test_login_wrong_password_and_unknown_email_look_identical(client, make_user):
    make_user(email="login@example.com")

    wrong_password = client.post("/api/auth/login", json={"email": "login@example.com", "password": "nope-nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "password123"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["message"] == unknown_email.json()["message"] == "Invalid credentials"


def test_login_missing_fields(client):
    for body in ({"password": "password123"}, {"email": "a@example.com"}, {}):
        response = client.post("/api/auth/login", json=body)
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide email and password"


def test_login_inactive_account(client, make_user):
    make_user(email="inactive@example.com", status=models.Status.INACTIVE)

    response = client.post("/api/auth/login", json={"email": "inactive@example.com", "password": "password123"})

    assert response.status_code == 401
    assert "inactive" in response.json()["message"]


def test_me_requires_valid_token(client, regular_id, auth_headers):
    ok = client.get("/api/auth/me", headers=auth_headers(regular_id))
    assert ok.status_code == 200
    assert ok.json()["data"]["email"] == "regular@example.com"
    assert "password" not in ok.json()["data"]

    missing = client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json()["message"] == "Not authorized, no token provided"

    invalid = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert invalid.status_code == 401
    assert invalid.json()["message"] == "Not authorized, invalid token"


def test_me_rejects_token_of_deleted_or_inactive_user(client, regular_id, auth_headers, open_session):
    headers = auth_headers(regular_id)
    with open_session() as db:
        db.get(models.User, regular_id).status = models.Status.INACTIVE
        db.commit()

    assert client.get("/api/auth/me", headers=headers).json()["message"] == "User account is inactive"

    with open_session() as db:
        db.delete(db.get(models.User, regular_id))
        db.commit()

    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["message"] == "User not found"


def test_update_profile_only_touches_profile_fields(client, regular_id, auth_headers, open_session):
    response = client.put(
        "/api/auth/profile",
        headers=auth_headers(regular_id),
        json={
            "firstName": "Renamed",
            "city": "Portland",
            "email": "hijack@example.com",
            "role": "admin",
            "status": "inactive",
        },
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["firstName"] == "Renamed"
    assert data["lastName"] == "User"
    assert data["city"] == "Portland"
    assert data["email"] == "regular@example.com"
    assert data["role"] == "user"
    assert data["status"] == "active"

    entries = _audit_entries(open_session, regular_id)
    assert entries == [(models.AuditAction.UPDATE, {"firstName": "Renamed", "city": "Portland"}, "regular@example.com")]


def test_update_profile_requires_token(client):
    assert client.put("/api/auth/profile", json={"firstName": "X"}).status_code == 401


def test_change_password_issues_new_token_and_audits(client, make_user, auth_headers, open_session):
    user_id = make_user(email="pw@example.com")

    response = client.put(
        "/api/auth/password",
        headers=auth_headers(user_id),
        json={"currentPassword": "password123", "newPassword": "new-secret"},
    )

    assert response.status_code == 200
    assert response.json()["token"]
    login = client.post("/api/auth/login", json={"email": "pw@example.com", "password": "new-secret"})
    assert login.status_code == 200

    entries = _audit_entries(open_session, user_id)
    assert entries == [(models.AuditAction.UPDATE, {"passwordChanged": True}, "pw@example.com")]


def test_change_password_too_short_keeps_hash(client, make_user, auth_headers, open_session):
    user_id = make_user(email="pw@example.com")
    with open_session() as db:
        before = db.get(models.User, user_id).password_hash

    response = client.put(
        "/api/auth/password",
        headers=auth_headers(user_id),
        json={"currentPassword": "password123", "newPassword": "12345"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "New password must be at least 6 characters"
    with open_session() as db:
        assert db.get(models.User, user_id).password_hash == before
    assert _audit_entries(open_session, user_id) == []


def test_change_password_wrong_current_password(client, make_user, auth_headers):
    user_id = make_user(email="pw@example.com")

    response = client.put(
        "/api/auth/password",
        headers=auth_headers(user_id),
        json={"currentPassword": "wrong-password", "newPassword": "new-secret"},
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Current password is incorrect"


def test_change_password_missing_fields(client, regular_id, auth_headers):
    response = client.put("/api/auth/password", headers=auth_headers(regular_id), json={"newPassword": "abcdefg"})

    assert response.status_code == 400
    assert response.json()["message"] == "Please provide current password and new password"


def test_register_rejects_oversized_password(client, open_session):
    response = client.post("/api/auth/register", json={**REGISTER_BODY, "password": "x" * 5000})

    assert response.status_code == 400
    assert "password" in response.json()["message"]
    with open_session() as db:
        assert db.query(models.User).count() == 0


def test_login_with_oversized_password_is_invalid_credentials(client, make_user):
    make_user(email="login@example.com")

    response = client.post("/api/auth/login", json={"email": "login@example.com", "password": "x" * 5000})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_change_password_rejects_oversized_password(client, make_user, auth_headers, open_session):
    user_id = make_user(email="pw@example.com")

    response = client.put(
        "/api/auth/password",
        headers=auth_headers(user_id),
        json={"currentPassword": "password123", "newPassword": "x" * 5000},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "New password must be at most 128 characters"
    assert _audit_entries(open_session, user_id) == []


def test_malformed_json_body_reports_decode_error(client):
    response = client.post(
        "/api/auth/login",
        content='{"email": "a@example.com",',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    message = response.json()["message"]
    assert message.startswith("JSON decode error")
    assert not message[0].isdigit()
