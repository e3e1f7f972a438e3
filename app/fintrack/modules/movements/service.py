from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, contains_eager

from app.fintrack.constants import (
    EXPENSE_SEARCH_WORDS,
    INCOME_SEARCH_WORDS,
    MOVEMENT_EXPENSE,
    MOVEMENT_INCOME,
    MOVEMENT_TYPES,
)
from app.fintrack.errors import ValidationError
from app.fintrack.models import User
from app.fintrack.modules.movements.models import Movement
from app.fintrack.utils import calculate_balance, parse_date, to_number

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Session


REQUIRED_FIELDS = ("concept", "amount", "date", "type")
MAX_AMOUNT = Decimal("999999999999.99")
CONCEPT_MAX_LEN = 255
CATEGORY_MAX_LEN = 128


def parse_movement_filters(args: "Mapping[str, Any]") -> dict[str, Any]:
    """Build the filter dict from query-string arguments."""
    errors = []
    try:
        date_from = parse_date(args.get("date_from"))
    except ValueError:
        date_from = None
        errors.append("date_from must be YYYY-MM-DD")
    try:
        date_to = parse_date(args.get("date_to"))
    except ValueError:
        date_to = None
        errors.append("date_to must be YYYY-MM-DD")
    if errors:
        raise ValidationError(errors)

    type_filter = (args.get("type") or "").strip().upper()
    return {
        "search": (args.get("search") or "").strip(),
        "type": type_filter if type_filter in MOVEMENT_TYPES else "",
        "date_from": date_from,
        "date_to": date_to,
    }


def search_clause(search: str):
    """
    Case-insensitive literal substring match over concept, description and owner name/email
    (% and _ are not wildcards).
    Words like "income"/"ingreso" or "expense"/"egreso"/"gasto" also match by type.
    """
    clauses = [
        column.icontains(search, autoescape=True)
        for column in (Movement.concept, Movement.description, User.name, User.email)
    ]
    lowered = search.lower()
    if any(word in lowered for word in INCOME_SEARCH_WORDS):
        clauses.append(Movement.type == MOVEMENT_INCOME)
    if any(word in lowered for word in EXPENSE_SEARCH_WORDS):
        clauses.append(Movement.type == MOVEMENT_EXPENSE)
    return or_(*clauses)


def apply_movement_filters(q: Query, filters: dict[str, Any]) -> Query:
    """Apply search/type/date filters. The query must already be joined to User."""
    search = filters.get("search")
    if search:
        q = q.filter(search_clause(search))
    if filters.get("type") in MOVEMENT_TYPES:
        q = q.filter(Movement.type == filters["type"])
    if filters.get("date_from"):
        q = q.filter(Movement.date >= filters["date_from"])
    if filters.get("date_to"):
        # inclusive end-date
        q = q.filter(Movement.date <= filters["date_to"])
    return q


def query_movements(s: "Session", filters: dict[str, Any]) -> Query:
    q = s.query(Movement).join(User, Movement.user_id == User.id).options(contains_eager(Movement.user))
    return apply_movement_filters(q, filters)


def list_movements(s: "Session", filters: dict[str, Any], *, page: int, limit: int) -> tuple[list[Movement], int]:
    """Return one page of movements (newest first) plus the filtered total."""
    total_q = s.query(func.count(Movement.id)).select_from(Movement).join(User, Movement.user_id == User.id)
    total = int(apply_movement_filters(total_q, filters).scalar() or 0)

    movements = (
        query_movements(s, filters)
        .order_by(Movement.date.desc(), Movement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return movements, total


def summarize_movements(s: "Session", filters: dict[str, Any]) -> dict[str, Any]:
    """Totals over the whole filtered set, not just the current page."""
    q = (
        s.query(Movement.type, func.coalesce(func.sum(Movement.amount), 0), func.count(Movement.id))
        .select_from(Movement)
        .join(User, Movement.user_id == User.id)
    )
    rows = apply_movement_filters(q, filters).group_by(Movement.type).all()

    sums = {MOVEMENT_INCOME: Decimal("0"), MOVEMENT_EXPENSE: Decimal("0")}
    count = 0
    for movement_type, total_amount, n in rows:
        sums[movement_type] = Decimal(str(total_amount or 0))
        count += int(n or 0)

    income = sums[MOVEMENT_INCOME]
    expense = sums[MOVEMENT_EXPENSE]
    return {
        "total_amount": to_number(income + expense),
        "total_movements": count,
        "income": to_number(income),
        "expense": to_number(expense),
        "balance": to_number(calculate_balance({"type": t, "amount": v} for t, v in sums.items())),
    }


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, Decimal)):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _parse_amount(value: Any) -> Decimal | None:
    if not _is_number(value):
        return None
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None
    return amount


def validate_movement_payload(payload: Any, *, partial: bool = False) -> list[str]:
    """
    Validate a movement create/update payload. Returns list of errors.
    With partial=True only the fields present are checked (PUT semantics).
    """
    if not isinstance(payload, dict):
        return ["Request body must be a JSON object."]

    errors: list[str] = []
    if not partial:
        missing = [f for f in REQUIRED_FIELDS if payload.get(f) is None or payload.get(f) == ""]
        if missing:
            errors.append(f"All fields are required: {', '.join(REQUIRED_FIELDS)} (missing: {', '.join(missing)})")
            return errors

    if "concept" in payload:
        concept = payload.get("concept")
        if not isinstance(concept, str) or not concept.strip():
            errors.append("Concept cannot be empty.")
        elif len(concept.strip()) > CONCEPT_MAX_LEN:
            errors.append(f"Concept must be at most {CONCEPT_MAX_LEN} characters.")

    if "amount" in payload:
        amount = _parse_amount(payload.get("amount"))
        if amount is None or amount <= 0:
            errors.append("Amount must be a positive number.")
        elif amount > MAX_AMOUNT:
            errors.append("Amount is too large.")

    if "date" in payload:
        try:
            if parse_date(payload.get("date")) is None:
                errors.append("Invalid date.")
        except (TypeError, ValueError):
            errors.append("Invalid date.")

    if "type" in payload and payload.get("type") not in MOVEMENT_TYPES:
        errors.append(f"Type must be one of: {', '.join(MOVEMENT_TYPES)}")

    for field in ("description", "category"):
        value = payload.get(field)
        if value is not None and not isinstance(value, str):
            errors.append(f"{field.capitalize()} must be a string.")
    category = payload.get("category")
    if isinstance(category, str) and len(category.strip()) > CATEGORY_MAX_LEN:
        errors.append(f"Category must be at most {CATEGORY_MAX_LEN} characters.")

    return errors


def _optional_text(value: Any) -> str | None:
    return (value or "").strip() or None


def create_movement(s: "Session", payload: dict, user: User) -> Movement:
    """Create a movement owned by the acting user. Payload must be validated."""
    now = datetime.utcnow()
    movement = Movement(
        concept=payload["concept"].strip(),
        amount=_parse_amount(payload["amount"]),
        date=parse_date(payload["date"]),
        type=payload["type"],
        description=_optional_text(payload.get("description")),
        category=_optional_text(payload.get("category")),
        user_id=user.id,
        created_at=now,
        updated_at=now,
    )
    movement.user = user
    s.add(movement)
    s.flush()
    return movement


def update_movement(s: "Session", movement: Movement, payload: dict) -> dict[str, dict[str, Any]]:
    """Apply a validated partial update. Returns the changed fields as {field: {old, new}}."""
    changes: dict[str, dict[str, Any]] = {}

    def _set(field: str, new: Any) -> None:
        old = getattr(movement, field)
        if old != new:
            changes[field] = {"old": _plain(old), "new": _plain(new)}
            setattr(movement, field, new)

    if "concept" in payload:
        _set("concept", payload["concept"].strip())
    if "amount" in payload:
        _set("amount", _parse_amount(payload["amount"]))
    if "date" in payload:
        _set("date", parse_date(payload["date"]))
    if "type" in payload:
        _set("type", payload["type"])
    if "description" in payload:
        _set("description", _optional_text(payload.get("description")))
    if "category" in payload:
        _set("category", _optional_text(payload.get("category")))

    movement.updated_at = datetime.utcnow()
    s.flush()
    return changes


def delete_movement(s: "Session", movement: Movement) -> dict[str, Any]:
    """Hard-delete a movement, returning its last serialized state."""
    snapshot = movement.to_dict()
    s.delete(movement)
    s.flush()
    return snapshot


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return to_number(value)
    if isinstance(value, date):
        return value.isoformat()
    return value
