import pytest

from user_manager import crud, models, schemas
from user_manager.service import positive_int
from user_manager.errors import DuplicateEmail, NotFound

REGISTRATION = schemas.UserRegister(
    first_name="Race",
    last_name="Condition",
    email="race@example.com",
    password="password123",
)


def test_storage_constraint_settles_duplicate_registration(service, open_session, monkeypatch):
    with open_session() as db:
        service.register(db, REGISTRATION)

    # simulate a concurrent request whose pre-check ran before the first insert committed
    monkeypatch.setattr(crud, "get_user_by_email", lambda db, email: None)
    with open_session() as db:
        with pytest.raises(DuplicateEmail) as excinfo:
            service.register(db, REGISTRATION)
    assert excinfo.value.message == "User with this email already exists"

    with open_session() as db:
        assert db.query(models.User).count() == 1
        assert db.query(models.AuditLog).count() == 1


def test_failed_audit_write_rolls_back_the_mutation(service, open_session, monkeypatch):
    def broken_record(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr("user_manager.audit.record", broken_record)

    with open_session() as db:
        with pytest.raises(RuntimeError):
            service.register(db, REGISTRATION)

    with open_session() as db:
        assert db.query(models.User).count() == 0
        assert db.query(models.AuditLog).count() == 0


def test_failed_delete_leaves_no_audit_entry(service, open_session, admin_id):
    with open_session() as db:
        actor = db.get(models.User, admin_id)
        with pytest.raises(NotFound):
            service.delete_user(db, actor, "12345")

    with open_session() as db:
        assert db.query(models.AuditLog).count() == 0


def test_every_mutation_writes_exactly_one_matching_entry(service, open_session, admin_id):
    with open_session() as db:
        actor = db.get(models.User, admin_id)
        created = service.create_user(db, actor, schemas.UserCreate(
            first_name="Audit", last_name="Me", email="audit@example.com", password="password123",
        ))
        created_id = created.id
        service.update_user(db, actor, str(created_id), schemas.UserUpdate(city="Austin"))
        service.delete_user(db, actor, str(created_id))

    with open_session() as db:
        entries = (
            db.query(models.AuditLog)
            .filter(models.AuditLog.entity_id == created_id)
            .order_by(models.AuditLog.id)
            .all()
        )
        assert [entry.action for entry in entries] == [
            models.AuditAction.CREATE,
            models.AuditAction.UPDATE,
            models.AuditAction.DELETE,
        ]
        assert {entry.user_email for entry in entries} == {"admin@example.com"}
        assert all("password" not in str(entry.details).lower() for entry in entries)


def test_seed_twice_keeps_admins_and_skips_admin_emails(service, open_session, admin_id):
    with open_session() as db:
        actor = db.get(models.User, admin_id)
        first, preserved = service.seed(db, actor)
        first_count = len(first)
    assert preserved == 1

    with open_session() as db:
        actor = db.get(models.User, admin_id)
        second, preserved_again = service.seed(db, actor)
        second_count = len(second)

    # the sample admin inserted by the first run is preserved by the second
    assert preserved_again == 2
    assert second_count == first_count - 1

    with open_session() as db:
        emails = [user.email for user in db.query(models.User)]
        assert len(emails) == len(set(emails))


@pytest.mark.parametrize("raw, expected", [
    ("42", 42),
    (" 7 ", 7),
    ("0", None),
    ("-1", None),
    ("abc", None),
    (None, None),
    (str(2**31 - 1), 2**31 - 1),
    (str(2**31), None),
    ("99999999999999999999", None),
])
def test_parse_user_id(raw, expected):
    assert crud.parse_user_id(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("3", 3),
    (25, 25),
    (None, 10),
    ("", 10),
    ("0", 10),
    ("-4", 10),
    ("ten", 10),
    ("99999999999999999999", 10),
])
def test_positive_int_falls_back_to_default(raw, expected):
    assert positive_int(raw, 10) == expected
