"""Tests for GitHub sign-in and identity-provider user provisioning."""
import pytest
from authlib.integrations.base_client import OAuthError
from flask import redirect

from app.fintrack import auth as auth_module
from app.fintrack import create_app
from app.fintrack.auth import fetch_github_identity, provision_oauth_user
from app.fintrack.db import session_scope
from app.fintrack.errors import ValidationError
from app.fintrack.models import Base, OAuthAccount, User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(name="Existing", email="existing@example.com", role="USER", phone="3101234567"))

    return app


def test_new_user_gets_default_role(app):
    with session_scope(app) as s:
        user, created = provision_oauth_user(
            s, provider="github", provider_account_id="42", email="New@Example.com", name="New Person"
        )
        assert created is True
        assert user.email == "new@example.com"
        assert user.role == "ADMIN"
        assert user.email_verified is True

    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "new@example.com").one()
        assert [(a.provider, a.provider_account_id) for a in user.accounts] == [("github", "42")]


def test_default_role_can_be_user(app):
    with session_scope(app) as s:
        user, _created = provision_oauth_user(
            s, provider="github", provider_account_id="7", email="x@example.com", name=None, default_role="USER"
        )
        assert user.role == "USER"
        assert user.name == "x@example.com"


def test_repeat_login_reuses_account(app):
    with session_scope(app) as s:
        first, _ = provision_oauth_user(s, provider="github", provider_account_id="42", email="a@example.com", name="A")
        first_id = first.id
    with session_scope(app) as s:
        second, created = provision_oauth_user(
            s, provider="github", provider_account_id="42", email="changed@example.com", name="A"
        )
        assert created is False
        assert second.id == first_id
        assert s.query(OAuthAccount).count() == 1


def test_existing_email_is_linked_not_modified(app):
    with session_scope(app) as s:
        user, created = provision_oauth_user(
            s, provider="github", provider_account_id="99", email="EXISTING@example.com", name="Other Name"
        )
        assert created is False
        assert user.name == "Existing"
        assert user.role == "USER"
        assert user.phone == "3101234567"
        assert len(user.accounts) == 1


def test_missing_email_rejected(app):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            provision_oauth_user(s, provider="github", provider_account_id="1", email="", name="No Email")


def test_malformed_email_rejected(app):
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            provision_oauth_user(s, provider="github", provider_account_id="2", email="not-an-email", name="Bad")


class _FakeResponse:
    def __init__(self, data):
        self._data = data

    def raise_for_status(self):
        return None

    def json(self):
        return self._data


class _FakeGitHub:
    def __init__(self, profile, emails=None):
        self.responses = {"user": profile, "user/emails": emails or []}
        self.calls = []

    def get(self, path, token=None):
        self.calls.append(path)
        return _FakeResponse(self.responses[path])


def test_fetch_identity_public_email():
    client = _FakeGitHub({"id": 5, "login": "octo", "name": None, "email": "octo@example.com", "avatar_url": "http://img"})
    identity = fetch_github_identity(client, {"access_token": "t"})
    assert identity == {
        "provider_account_id": "5",
        "email": "octo@example.com",
        "name": "octo",
        "image": "http://img",
    }
    assert client.calls == ["user"]


def test_fetch_identity_private_email_uses_primary_verified():
    client = _FakeGitHub(
        {"id": 6, "login": "cat", "name": "Cat", "email": None},
        emails=[
            {"email": "unverified@example.com", "verified": False, "primary": True},
            {"email": "secondary@example.com", "verified": True, "primary": False},
            {"email": "primary@example.com", "verified": True, "primary": True},
        ],
    )
    identity = fetch_github_identity(client, {"access_token": "t"})
    assert identity["email"] == "primary@example.com"
    assert client.calls == ["user", "user/emails"]


class _FakeOAuthClient(_FakeGitHub):
    """Stands in for the registered Authlib GitHub client."""

    def __init__(self, profile, emails=None, fail=False):
        super().__init__(profile, emails)
        self.fail = fail

    def authorize_redirect(self, redirect_uri):
        return redirect(f"https://github.com/login/oauth/authorize?redirect_uri={redirect_uri}")

    def authorize_access_token(self):
        if self.fail:
            raise OAuthError(error="bad_verification_code", description="The code passed is incorrect or expired.")
        return {"access_token": "t"}


def _sign_in(client, monkeypatch, fake, next_path=None):
    monkeypatch.setattr(auth_module, "_github", lambda: fake)
    login_url = "/auth/login" + (f"?next={next_path}" if next_path else "")
    r = client.get(login_url, follow_redirects=False)
    assert r.status_code == 302
    return client.get("/auth/callback?code=abc&state=xyz", follow_redirects=False)


def test_callback_signs_in_and_honours_next(app, monkeypatch):
    client = app.test_client()
    fake = _FakeOAuthClient({"id": 77, "login": "newbie", "name": "New Bie", "email": "newbie@example.com"})
    r = _sign_in(client, monkeypatch, fake, next_path="/api/movements")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/api/movements")

    with session_scope(app) as s:
        user = s.query(User).filter(User.email == "newbie@example.com").one()
        assert user.role == "ADMIN"
        user_id = user.id
    with client.session_transaction() as sess:
        assert sess["user_id"] == user_id
        assert sess.get("login_next") is None
        assert sess["csrf_token"]

    r = client.get("/api/auth/session")
    assert r.status_code == 200
    assert r.json["user"]["email"] == "newbie@example.com"


def test_callback_without_next_goes_home(app, monkeypatch):
    client = app.test_client()
    fake = _FakeOAuthClient({"id": 78, "login": "home", "name": "Home", "email": "home@example.com"})
    r = _sign_in(client, monkeypatch, fake)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/")
    assert not r.headers["Location"].endswith("/api/movements")


def test_callback_ignores_external_next(app, monkeypatch):
    client = app.test_client()
    fake = _FakeOAuthClient({"id": 79, "login": "ext", "name": "Ext", "email": "ext@example.com"})
    r = _sign_in(client, monkeypatch, fake, next_path="//evil.example.com/")
    assert r.status_code == 302
    assert "evil.example.com" not in r.headers["Location"]


def test_callback_links_existing_user(app, monkeypatch):
    client = app.test_client()
    fake = _FakeOAuthClient({"id": 80, "login": "existing", "name": "Someone", "email": "existing@example.com"})
    r = _sign_in(client, monkeypatch, fake)
    assert r.status_code == 302

    r = client.get("/api/auth/session")
    assert r.json["user"]["name"] == "Existing"
    assert r.json["user"]["role"] == "USER"


def test_callback_oauth_error_is_401(app, monkeypatch):
    client = app.test_client()
    fake = _FakeOAuthClient({"id": 81, "login": "x", "email": "x@example.com"}, fail=True)
    r = _sign_in(client, monkeypatch, fake)
    assert r.status_code == 401
    assert r.json["error"] == "GitHub sign-in failed."
    with client.session_transaction() as sess:
        assert "user_id" not in sess
