from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request

from app.fintrack.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.fintrack.db import db_session
from app.fintrack.errors import ValidationError
from app.fintrack.models import User
from app.fintrack.modules.movements.models import Movement
from app.fintrack.modules.movements.service import (
    create_movement,
    delete_movement,
    list_movements,
    parse_movement_filters,
    summarize_movements,
    update_movement,
    validate_movement_payload,
)
from app.fintrack.rbac import require_admin, require_login
from app.fintrack.utils import pagination_info, parse_positive_int

bp = Blueprint("movements", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _get_movement_or_404(movement_id: int) -> Movement:
    s = db_session()
    movement = s.get(Movement, movement_id)
    if not movement:
        abort(404, description="Movement not found.")
    return movement


# ---------- List ----------
@bp.get("/movements")
@require_login
def movements_list():
    s = db_session()
    page = parse_positive_int(request.args.get("page"), 1)
    limit = parse_positive_int(request.args.get("limit"), DEFAULT_PAGE_SIZE, maximum=MAX_PAGE_SIZE)
    filters = parse_movement_filters(request.args)

    movements, total = list_movements(s, filters, page=page, limit=limit)
    return jsonify(
        {
            "success": True,
            "movements": [m.to_dict() for m in movements],
            "pagination": pagination_info(page, limit, total),
            "summary": summarize_movements(s, filters),
        }
    )


# ---------- Create ----------
@bp.post("/movements")
@require_admin
def movements_create():
    s = db_session()
    u = _current_user()
    payload = request.get_json(silent=True)

    errors = validate_movement_payload(payload)
    if errors:
        raise ValidationError(errors)

    movement = create_movement(s, payload, u)
    s.commit()
    current_app.logger.info("Movement created id=%s by user_id=%s", movement.id, u.id)
    return jsonify({"success": True, "message": "Movement created.", "movement": movement.to_dict()}), 201


# ---------- Detail ----------
@bp.get("/movements/<int:movement_id>")
@require_login
def movement_detail(movement_id: int):
    movement = _get_movement_or_404(movement_id)
    return jsonify({"success": True, "movement": movement.to_dict()})


# ---------- Update ----------
@bp.put("/movements/<int:movement_id>")
@require_admin
def movement_update(movement_id: int):
    s = db_session()
    u = _current_user()
    movement = _get_movement_or_404(movement_id)
    payload = request.get_json(silent=True)

    errors = validate_movement_payload(payload, partial=True)
    if errors:
        raise ValidationError(errors)

    changes = update_movement(s, movement, payload)
    s.commit()
    current_app.logger.info("Movement updated id=%s by user_id=%s fields=%s", movement.id, u.id, sorted(changes))
    return jsonify({"success": True, "message": "Movement updated.", "movement": movement.to_dict()})


# ---------- Delete ----------
@bp.delete("/movements/<int:movement_id>")
@require_admin
def movement_delete(movement_id: int):
    s = db_session()
    u = _current_user()
    movement = _get_movement_or_404(movement_id)

    deleted = delete_movement(s, movement)
    s.commit()
    current_app.logger.info("Movement deleted id=%s by user_id=%s", movement_id, u.id)
    return jsonify({"success": True, "message": "Movement deleted.", "deleted_movement": deleted})
