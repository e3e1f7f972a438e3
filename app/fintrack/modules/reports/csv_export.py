from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.fintrack.constants import (
    MOVEMENT_TYPE_LABELS,
    MOVEMENT_TYPE_PLURAL_LABELS,
    MOVEMENT_TYPES,
    SUMMARY_CONCEPTS_LIMIT,
)
from app.fintrack.models import User
from app.fintrack.modules.movements.models import Movement
from app.fintrack.modules.reports.service import apply_window, monthly_buckets, totals_by_type
from app.fintrack.utils import generate_csv, to_number

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

Headers = list[tuple[str, str]]
Rows = list[dict[str, Any]]

MOVEMENT_HEADERS: Headers = [
    ("id", "ID"),
    ("concept", "Concept"),
    ("amount", "Amount"),
    ("type", "Type"),
    ("date", "Date"),
    ("created_at", "Created At"),
]
MOVEMENT_USER_HEADERS: Headers = [
    ("user_id", "User ID"),
    ("user_name", "User Name"),
    ("user_email", "User Email"),
]
SUMMARY_HEADERS: Headers = [
    ("section", "Section"),
    ("concept", "Concept"),
    ("type", "Type"),
    ("amount", "Amount"),
    ("count", "Count"),
    ("average", "Average"),
]
USER_HEADERS: Headers = [
    ("id", "ID"),
    ("name", "Name"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("role", "Role"),
    ("email_verified", "Email Verified"),
    ("registered", "Registered"),
    ("last_updated", "Last Updated"),
    ("total_movements", "Total Movements"),
    ("total_amount", "Total Amount"),
]


def _avg(total: Decimal, count: int) -> str:
    return f"{(total / count) if count else Decimal('0'):.2f}"


def movement_rows(s: "Session", window: dict[str, Any], *, include_user: bool = True) -> tuple[Rows, Headers]:
    movements = (
        apply_window(s.query(Movement), window)
        .order_by(Movement.date.desc(), Movement.id.desc())
        .all()
    )
    rows: Rows = []
    for m in movements:
        row = {
            "id": m.id,
            "concept": m.concept,
            "amount": to_number(m.amount),
            "type": MOVEMENT_TYPE_LABELS.get(m.type, m.type),
            "date": m.date.isoformat(),
            "created_at": m.created_at.isoformat() if m.created_at else "",
        }
        if include_user and m.user:
            row.update({"user_id": m.user.id, "user_name": m.user.name, "user_email": m.user.email})
        rows.append(row)
    headers = MOVEMENT_HEADERS + (MOVEMENT_USER_HEADERS if include_user else [])
    return rows, headers


def _section(title: str) -> dict[str, Any]:
    return {"section": title}


def summary_rows(s: "Session", window: dict[str, Any]) -> tuple[Rows, Headers]:
    """
    Three sections separated by blank rows:
    GENERAL SUMMARY (per type), BY CONCEPT (top concepts by amount), BY MONTH (per month and type).
    """
    rows: Rows = [_section("GENERAL SUMMARY")]
    totals = totals_by_type(s, window)
    for movement_type in MOVEMENT_TYPES:
        t = totals[movement_type]
        if not t["count"]:
            continue
        rows.append(
            {
                "concept": "Total",
                "type": MOVEMENT_TYPE_PLURAL_LABELS[movement_type],
                "amount": to_number(t["sum"]),
                "count": t["count"],
                "average": _avg(t["sum"], t["count"]),
            }
        )

    rows.append({})
    rows.append(_section("BY CONCEPT"))
    total = func.sum(Movement.amount).label("total")
    q = s.query(Movement.concept, Movement.type, total, func.count(Movement.id))
    concept_rows = (
        apply_window(q, window)
        .group_by(Movement.concept, Movement.type)
        .order_by(total.desc(), Movement.concept.asc())
        .limit(SUMMARY_CONCEPTS_LIMIT)
        .all()
    )
    for concept, movement_type, amount, n in concept_rows:
        rows.append(
            {
                "concept": concept,
                "type": MOVEMENT_TYPE_LABELS.get(movement_type, movement_type),
                "amount": to_number(amount),
                "count": int(n),
            }
        )

    rows.append({})
    rows.append(_section("BY MONTH"))
    q = apply_window(
        s.query(Movement.date, Movement.type, func.sum(Movement.amount), func.count(Movement.id)), window
    )
    buckets = monthly_buckets(q)
    # newest month first, types in a stable order
    for month, movement_type in sorted(buckets, key=lambda k: (_neg_month(k[0]), k[1])):
        bucket = buckets[(month, movement_type)]
        rows.append(
            {
                "concept": month,
                "type": MOVEMENT_TYPE_PLURAL_LABELS.get(movement_type, movement_type),
                "amount": to_number(bucket["sum"]),
                "count": bucket["count"],
                "average": _avg(bucket["sum"], bucket["count"]),
            }
        )
    return rows, SUMMARY_HEADERS


def _neg_month(month: str) -> int:
    year, mon = month.split("-")
    return -(int(year) * 12 + int(mon))


def user_rows(s: "Session") -> tuple[Rows, Headers]:
    users = s.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    stats = {
        user_id: (int(n), total)
        for user_id, n, total in s.query(Movement.user_id, func.count(Movement.id), func.sum(Movement.amount))
        .group_by(Movement.user_id)
        .all()
    }
    rows: Rows = []
    for u in users:
        count, total = stats.get(u.id, (0, 0))
        rows.append(
            {
                "id": u.id,
                "name": u.name,
                "email": u.email,
                "phone": u.phone or "Not specified",
                "role": u.role,
                "email_verified": "Yes" if u.email_verified else "No",
                "registered": u.created_at.date().isoformat() if u.created_at else "",
                "last_updated": u.updated_at.date().isoformat() if u.updated_at else "",
                "total_movements": count,
                "total_amount": to_number(total),
            }
        )
    return rows, USER_HEADERS


def build_csv_report(s: "Session", report_type: str, window: dict[str, Any], *, include_user: bool = True) -> tuple[str, int]:
    """Render the requested report. Returns (csv_text, data_row_count)."""
    if report_type == "movements":
        rows, headers = movement_rows(s, window, include_user=include_user)
    elif report_type == "summary":
        rows, headers = summary_rows(s, window)
    elif report_type == "users":
        rows, headers = user_rows(s)
    else:
        raise ValueError(f"Unknown report type: {report_type}")
    return generate_csv(rows, headers), len(rows)
