from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.fintrack.constants import ROLE_ADMIN
from app.fintrack.models import User


def user_is_admin(user: User | None) -> bool:
    return bool(user and user.is_active and user.role == ROLE_ADMIN)


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            abort(401, description="Unauthorized - you must sign in first.")
        return fn(*args, **kwargs)

    return wrapped


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        # Unauthenticated → 401, authenticated but not an admin → 403
        if not user or not user.is_active:
            abort(401, description="Unauthorized - you must sign in first.")
        if not user_is_admin(user):
            abort(403, description="Access denied - administrator role required.")
        return fn(*args, **kwargs)

    return wrapped
