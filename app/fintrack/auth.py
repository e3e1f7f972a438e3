from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import requests
from authlib.integrations.base_client import OAuthError
from authlib.integrations.flask_client import OAuth
from flask import Blueprint, Flask, abort, current_app, g, jsonify, redirect, request, session, url_for
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.fintrack.constants import VALID_ROLES
from app.fintrack.db import db_session
from app.fintrack.errors import ValidationError
from app.fintrack.models import OAuthAccount, User
from app.fintrack.rbac import require_login
from app.fintrack.security import ensure_csrf_token
from app.fintrack.utils import validate_email

bp = Blueprint("auth", __name__)

GITHUB_PROVIDER = "github"


def init_oauth(app: Flask) -> OAuth:
    oauth = OAuth(app)
    oauth.register(
        name=GITHUB_PROVIDER,
        client_id=app.config.get("GITHUB_CLIENT_ID") or None,
        client_secret=app.config.get("GITHUB_CLIENT_SECRET") or None,
        access_token_url="https://github.com/login/oauth/access_token",
        authorize_url="https://github.com/login/oauth/authorize",
        api_base_url="https://api.github.com/",
        client_kwargs={"scope": "read:user user:email"},
    )
    app.extensions["oauth"] = oauth
    return oauth


def _github():
    return current_app.extensions["oauth"].create_client(GITHUB_PROVIDER)


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


def fetch_github_identity(client, token: dict[str, Any]) -> dict[str, Any]:
    """Read the GitHub profile; private emails are resolved through /user/emails."""
    resp = client.get("user", token=token)
    resp.raise_for_status()
    profile = resp.json()

    email = (profile.get("email") or "").strip()
    if not email:
        emails_resp = client.get("user/emails", token=token)
        emails_resp.raise_for_status()
        candidates = [e for e in emails_resp.json() or [] if e.get("verified")]
        primary = next((e for e in candidates if e.get("primary")), None) or (candidates[0] if candidates else None)
        email = (primary or {}).get("email") or ""

    return {
        "provider_account_id": str(profile.get("id") or ""),
        "email": email,
        "name": profile.get("name") or profile.get("login") or email,
        "image": profile.get("avatar_url"),
    }


def provision_oauth_user(
    s: Session,
    *,
    provider: str,
    provider_account_id: str,
    email: str,
    name: str | None,
    image: str | None = None,
    default_role: str = "ADMIN",
) -> tuple[User, bool]:
    """
    Find or create the local user for an identity-provider login.
    Returns (user, created). Existing users keep their data; only the account link is added.
    """
    email = (email or "").strip().lower()
    if not provider_account_id:
        raise ValidationError("Identity provider did not return an account id.")
    if not email or not validate_email(email):
        raise ValidationError("Identity provider account has no verified email.")

    account = (
        s.query(OAuthAccount)
        .filter(OAuthAccount.provider == provider, OAuthAccount.provider_account_id == provider_account_id)
        .one_or_none()
    )
    if account:
        return account.user, False

    user = s.query(User).filter(func.lower(User.email) == email).one_or_none()
    created = False
    if not user:
        role = default_role if default_role in VALID_ROLES else "USER"
        now = datetime.utcnow()
        user = User(
            name=(name or email).strip(),
            email=email,
            email_verified=True,
            image=image,
            role=role,
            phone="",
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        s.add(user)
        created = True

    user.accounts.append(OAuthAccount(provider=provider, provider_account_id=provider_account_id))
    s.flush()
    return user, created


def _safe_next(nxt: str | None) -> str | None:
    nxt = (nxt or "").strip()
    # Only allow local paths to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


@bp.get("/auth/login")
def login():
    nxt = _safe_next(request.args.get("next"))
    if nxt:
        session["login_next"] = nxt
    else:
        session.pop("login_next", None)
    redirect_uri = url_for("auth.callback", _external=True)
    return _github().authorize_redirect(redirect_uri)


@bp.get("/auth/callback")
def callback():
    client = _github()
    try:
        token = client.authorize_access_token()
        identity = fetch_github_identity(client, token)
    except (OAuthError, requests.RequestException):
        current_app.logger.exception("GitHub sign-in failed (request_id=%s)", getattr(g, "request_id", None))
        abort(401, description="GitHub sign-in failed.")

    s = db_session()
    user, created = provision_oauth_user(
        s,
        provider=GITHUB_PROVIDER,
        provider_account_id=identity["provider_account_id"],
        email=identity["email"],
        name=identity["name"],
        image=identity["image"],
        default_role=current_app.config.get("DEFAULT_USER_ROLE", "ADMIN"),
    )
    s.commit()
    if created:
        current_app.logger.info("New user registered via GitHub: %s (role=%s)", user.email, user.role)
    else:
        current_app.logger.info("User signed in via GitHub: %s", user.email)

    nxt = _safe_next(session.pop("login_next", None))
    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    ensure_csrf_token()
    return redirect(nxt or url_for("routes.index"))


@bp.route("/auth/logout", methods=["GET", "POST"])
def logout():
    user = getattr(g, "current_user", None)
    if user:
        current_app.logger.info("User signed out: %s", user.email)
    session.clear()
    return redirect(url_for("routes.index"))


@bp.get("/api/auth/session")
@require_login
def session_info():
    user: User = g.current_user
    expires_at = datetime.utcnow() + current_app.permanent_session_lifetime
    return jsonify(
        {
            "message": "Active session.",
            "user": user.to_dict(),
            "session": {"expires_at": expires_at.isoformat()},
            "csrf_token": ensure_csrf_token(),
        }
    )
