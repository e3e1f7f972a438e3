from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request

from app.fintrack.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.fintrack.db import db_session
from app.fintrack.errors import ValidationError
from app.fintrack.models import User
from app.fintrack.modules.users.service import (
    list_users,
    movement_counts,
    parse_user_filters,
    role_statistics,
    serialize_user,
    update_user,
    validate_user_update,
)
from app.fintrack.rbac import require_admin
from app.fintrack.utils import pagination_info, parse_positive_int

bp = Blueprint("users", __name__)


def _get_user_or_404(user_id: int) -> User:
    s = db_session()
    user = s.get(User, user_id)
    if not user:
        abort(404, description="User not found.")
    return user


@bp.get("/users")
@require_admin
def users_list():
    s = db_session()
    page = parse_positive_int(request.args.get("page"), 1)
    limit = parse_positive_int(request.args.get("limit"), DEFAULT_PAGE_SIZE, maximum=MAX_PAGE_SIZE)
    filters = parse_user_filters(request.args)

    users, total = list_users(s, filters, page=page, limit=limit)
    counts = movement_counts(s, [u.id for u in users])
    stats = role_statistics(s)
    return jsonify(
        {
            "users": [serialize_user(u, movement_count=counts.get(u.id, 0)) for u in users],
            "pagination": pagination_info(page, limit, total),
            "statistics": {"total_users": total, **stats},
        }
    )


@bp.get("/users/<int:user_id>")
@require_admin
def user_detail(user_id: int):
    s = db_session()
    user = _get_user_or_404(user_id)
    count = movement_counts(s, [user.id]).get(user.id, 0)
    return jsonify({"success": True, "user": serialize_user(user, movement_count=count)})


@bp.put("/users/<int:user_id>")
@require_admin
def user_update(user_id: int):
    s = db_session()
    actor: User = g.current_user
    user = _get_user_or_404(user_id)
    payload = request.get_json(silent=True)

    errors = validate_user_update(payload, target=user, actor=actor)
    if errors:
        raise ValidationError(errors)

    changes = update_user(s, user, payload)
    s.commit()
    if "role" in changes:
        current_app.logger.info(
            "User role changed user_id=%s %s -> %s by user_id=%s",
            user.id,
            changes["role"]["old"],
            changes["role"]["new"],
            actor.id,
        )
    return jsonify({"success": True, "message": "User updated.", "user": serialize_user(user)})
