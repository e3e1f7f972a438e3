from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.fintrack.constants import ROLE_ADMIN, ROLE_USER, VALID_ROLES
from app.fintrack.models import User
from app.fintrack.modules.movements.models import Movement
from app.fintrack.utils import validate_phone

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Session


UPDATABLE_FIELDS = ("name", "role", "phone")


def parse_user_filters(args: "Mapping[str, Any]") -> dict[str, str]:
    role = (args.get("role") or "").strip().upper()
    return {
        "search": (args.get("search") or "").strip(),
        "role": role if role in VALID_ROLES else "",
    }


def list_users(s: "Session", filters: dict[str, str], *, page: int, limit: int) -> tuple[list[User], int]:
    q = s.query(User)
    if filters.get("search"):
        search = filters["search"]
        q = q.filter(or_(User.name.icontains(search, autoescape=True), User.email.icontains(search, autoescape=True)))
    if filters.get("role"):
        q = q.filter(User.role == filters["role"])

    total = q.count()
    users = q.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return users, total


def movement_counts(s: "Session", user_ids: list[int]) -> dict[int, int]:
    if not user_ids:
        return {}
    rows = (
        s.query(Movement.user_id, func.count(Movement.id))
        .filter(Movement.user_id.in_(user_ids))
        .group_by(Movement.user_id)
        .all()
    )
    return {user_id: int(n) for user_id, n in rows}


def role_statistics(s: "Session") -> dict[str, int]:
    rows = s.query(User.role, func.count(User.id)).group_by(User.role).all()
    by_role = {role: int(n) for role, n in rows}
    return {"admin_count": by_role.get(ROLE_ADMIN, 0), "user_count": by_role.get(ROLE_USER, 0)}


def serialize_user(user: User, *, movement_count: int | None = None) -> dict[str, Any]:
    data = user.to_dict()
    if movement_count is not None:
        data["movement_count"] = movement_count
    return data


def validate_user_update(payload: Any, *, target: User, actor: User) -> list[str]:
    """Validate an admin edit of a user. Returns list of errors."""
    if not isinstance(payload, dict):
        return ["Request body must be a JSON object."]

    errors: list[str] = []
    if not any(field in payload for field in UPDATABLE_FIELDS):
        return [f"No fields to update. Allowed: {', '.join(UPDATABLE_FIELDS)}"]

    if "name" in payload:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append("Name cannot be empty.")

    if "role" in payload:
        role = payload.get("role")
        if role not in VALID_ROLES:
            errors.append(f"Role must be one of: {', '.join(VALID_ROLES)}")
        elif target.id == actor.id and target.role == ROLE_ADMIN and role == ROLE_USER:
            errors.append("You cannot remove your own administrator role.")

    if "phone" in payload:
        phone = payload.get("phone")
        if phone is not None and not isinstance(phone, str):
            errors.append("Phone must be a string.")
        elif not validate_phone(phone):
            errors.append("Invalid phone format.")

    return errors


def update_user(s: "Session", user: User, payload: dict) -> dict[str, dict[str, Any]]:
    """Apply a validated admin edit. Returns the changed fields as {field: {old, new}}."""
    changes: dict[str, dict[str, Any]] = {}

    new_values: dict[str, Any] = {}
    if "name" in payload:
        new_values["name"] = payload["name"].strip()
    if "role" in payload:
        new_values["role"] = payload["role"]
    if "phone" in payload:
        new_values["phone"] = (payload.get("phone") or "").strip()

    for field, new in new_values.items():
        old = getattr(user, field)
        if old != new:
            changes[field] = {"old": old, "new": new}
            setattr(user, field, new)

    user.updated_at = datetime.utcnow()
    s.flush()
    return changes
