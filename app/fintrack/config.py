import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    base_url: str

    github_client_id: str
    github_client_secret: str

    default_user_role: str
    session_days: int
    csrf_enabled: bool


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///fintrack.db"),
        base_url=_getenv("BASE_URL", "http://localhost:5000"),
        github_client_id=_getenv("GITHUB_CLIENT_ID", ""),
        github_client_secret=_getenv("GITHUB_CLIENT_SECRET", ""),
        default_user_role=_getenv("DEFAULT_USER_ROLE", "ADMIN").upper(),
        session_days=_getenv_int("SESSION_DAYS", 7),
        csrf_enabled=_getenv("CSRF_ENABLED", "1") not in ("0", "false", "no"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "BASE_URL": s.base_url,
        "GITHUB_CLIENT_ID": s.github_client_id,
        "GITHUB_CLIENT_SECRET": s.github_client_secret,
        "DEFAULT_USER_ROLE": s.default_user_role,
        "SESSION_DAYS": s.session_days,
        "CSRF_ENABLED": s.csrf_enabled,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
    }


def check_production_config(config: dict) -> None:
    """Raise RuntimeError when a production deploy is missing something it cannot run without."""
    env = str(config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    db_url = str(config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(config.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if not config.get("GITHUB_CLIENT_ID") or not config.get("GITHUB_CLIENT_SECRET"):
        raise RuntimeError("GITHUB_CLIENT_ID and GITHUB_CLIENT_SECRET are required in production.")
