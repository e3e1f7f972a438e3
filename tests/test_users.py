"""Tests for admin user management."""
from datetime import date, datetime
from decimal import Decimal

import pytest

from app.fintrack import create_app
from app.fintrack.db import session_scope
from app.fintrack.models import Base, User
from app.fintrack.modules.movements.models import Movement

CSRF = "test-csrf"
HEADERS = {"X-CSRF-Token": CSRF}


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        admin = User(
            name="Admin User",
            email="admin@example.com",
            role="ADMIN",
            phone="+57 300 123 4567",
            created_at=datetime(2024, 1, 1),
        )
        ana = User(name="Ana Pérez", email="ana@example.com", role="USER", created_at=datetime(2024, 2, 1))
        luis = User(name="Luis Gómez", email="luis@example.com", role="USER", created_at=datetime(2024, 3, 1))
        s.add_all([admin, ana, luis])
        s.flush()
        for i in range(3):
            s.add(
                Movement(
                    concept=f"Movimiento {i}",
                    amount=Decimal("1000"),
                    date=date(2024, 1, i + 1),
                    type="INCOME",
                    user_id=admin.id,
                )
            )

    return app.test_client()


def _login(client, email="admin@example.com"):
    with session_scope(client.application) as s:
        user_id = s.query(User).filter(User.email == email).one().id
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["csrf_token"] = CSRF
    return user_id


def _user_id(client, email):
    with session_scope(client.application) as s:
        return s.query(User).filter(User.email == email).one().id


def test_users_requires_admin(client):
    assert client.get("/api/users").status_code == 401
    _login(client, "ana@example.com")
    assert client.get("/api/users").status_code == 403


def test_users_list_with_statistics(client):
    _login(client)
    r = client.get("/api/users")
    assert r.status_code == 200
    emails = [u["email"] for u in r.json["users"]]
    # newest registrations first
    assert emails == ["luis@example.com", "ana@example.com", "admin@example.com"]
    assert r.json["statistics"] == {"total_users": 3, "admin_count": 1, "user_count": 2}
    counts = {u["email"]: u["movement_count"] for u in r.json["users"]}
    assert counts == {"luis@example.com": 0, "ana@example.com": 0, "admin@example.com": 3}
    assert r.json["pagination"]["total"] == 3


def test_users_filter_and_search(client):
    _login(client)
    r = client.get("/api/users?role=user")
    assert {u["role"] for u in r.json["users"]} == {"USER"}
    assert r.json["statistics"]["total_users"] == 2
    # role breakdown is global
    assert r.json["statistics"]["admin_count"] == 1

    r = client.get("/api/users?search=luis")
    assert [u["email"] for u in r.json["users"]] == ["luis@example.com"]


def test_users_search_treats_like_wildcards_literally(client):
    _login(client)
    with session_scope(client.application) as s:
        s.add(User(name="Socio 50%", email="socio_50@example.com", role="USER"))

    r = client.get("/api/users?search=%25")
    assert [u["email"] for u in r.json["users"]] == ["socio_50@example.com"]

    r = client.get("/api/users?search=_")
    assert r.json["statistics"]["total_users"] == 1

    r = client.get("/api/users?search=o_5")
    assert r.json["statistics"]["total_users"] == 1

    r = client.get("/api/users?search=a_a")
    assert r.json["statistics"]["total_users"] == 0


def test_users_pagination(client):
    _login(client)
    r = client.get("/api/users?limit=2&page=2")
    assert len(r.json["users"]) == 1
    assert r.json["pagination"]["total_pages"] == 2
    assert r.json["pagination"]["has_prev"] is True


def test_user_detail(client):
    _login(client)
    admin_id = _user_id(client, "admin@example.com")
    r = client.get(f"/api/users/{admin_id}")
    assert r.status_code == 200
    assert r.json["user"]["movement_count"] == 3
    assert r.json["user"]["phone"] == "+57 300 123 4567"

    r = client.get("/api/users/99999")
    assert r.status_code == 404
    assert r.json["error"] == "User not found."


def test_update_user(client):
    _login(client)
    ana_id = _user_id(client, "ana@example.com")
    r = client.put(
        f"/api/users/{ana_id}",
        json={"name": "Ana María Pérez", "role": "ADMIN", "phone": "(300) 555-1234"},
        headers=HEADERS,
    )
    assert r.status_code == 200
    assert r.json["user"]["name"] == "Ana María Pérez"
    assert r.json["user"]["role"] == "ADMIN"
    assert r.json["user"]["phone"] == "(300) 555-1234"

    r = client.get("/api/users")
    assert r.json["statistics"]["admin_count"] == 2


def test_update_user_clears_phone(client):
    _login(client)
    admin_id = _user_id(client, "admin@example.com")
    r = client.put(f"/api/users/{admin_id}", json={"phone": ""}, headers=HEADERS)
    assert r.status_code == 200
    assert r.json["user"]["phone"] == ""


@pytest.mark.parametrize(
    "payload,message",
    [
        ({}, "No fields to update. Allowed: name, role, phone"),
        ({"email": "new@example.com"}, "No fields to update. Allowed: name, role, phone"),
        ({"name": "  "}, "Name cannot be empty."),
        ({"role": "SUPERUSER"}, "Role must be one of: ADMIN, USER"),
        ({"phone": "call me"}, "Invalid phone format."),
    ],
)
def test_update_user_validation(client, payload, message):
    _login(client)
    ana_id = _user_id(client, "ana@example.com")
    r = client.put(f"/api/users/{ana_id}", json=payload, headers=HEADERS)
    assert r.status_code == 400
    assert message in r.json["details"]


def test_admin_cannot_demote_self(client):
    admin_id = _login(client)
    r = client.put(f"/api/users/{admin_id}", json={"role": "USER"}, headers=HEADERS)
    assert r.status_code == 400
    assert "You cannot remove your own administrator role." in r.json["details"]

    # other fields on self are fine
    r = client.put(f"/api/users/{admin_id}", json={"name": "Root"}, headers=HEADERS)
    assert r.status_code == 200


def test_update_user_requires_admin(client):
    _login(client, "ana@example.com")
    luis_id = _user_id(client, "luis@example.com")
    r = client.put(f"/api/users/{luis_id}", json={"name": "X"}, headers=HEADERS)
    assert r.status_code == 403


def test_update_missing_user(client):
    _login(client)
    r = client.put("/api/users/99999", json={"name": "X"}, headers=HEADERS)
    assert r.status_code == 404
