"""
Aggregations behind the financial report endpoint.

Grouping is done by (date, type) in SQL and bucketed into days/months in Python so the
same code runs on SQLite and Postgres (no DATE_TRUNC dependency).
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.fintrack.constants import (
    DAILY_CHART_DAYS,
    MONTHLY_CHART_MONTHS,
    MOVEMENT_EXPENSE,
    MOVEMENT_INCOME,
    REPORT_PERIODS,
    TOP_CONCEPTS_LIMIT,
    TOP_USERS_LIMIT,
)
from app.fintrack.errors import ValidationError
from app.fintrack.models import User
from app.fintrack.modules.movements.models import Movement
from app.fintrack.utils import calculate_balance, parse_date, to_number

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Query, Session


def resolve_date_window(
    *,
    period: str | None,
    start_date: date | None,
    end_date: date | None,
    today: date | None = None,
) -> tuple[date | None, date | None]:
    """
    An explicit start/end pair wins; otherwise the period picks the window start.
    week = last 7 days, month = since the 1st, year = since January 1st, else all time.
    """
    if start_date and end_date:
        return start_date, end_date
    today = today or date.today()
    if period == "week":
        return today - timedelta(days=7), None
    if period == "month":
        return today.replace(day=1), None
    if period == "year":
        return date(today.year, 1, 1), None
    return None, None


def parse_report_window(args: "Mapping[str, Any]", *, today: date | None = None) -> dict[str, Any]:
    errors = []
    try:
        start_date = parse_date(args.get("start_date"))
    except ValueError:
        start_date = None
        errors.append("start_date must be YYYY-MM-DD")
    try:
        end_date = parse_date(args.get("end_date"))
    except ValueError:
        end_date = None
        errors.append("end_date must be YYYY-MM-DD")
    if start_date and end_date and start_date > end_date:
        errors.append("start_date must be on or before end_date")
    if errors:
        raise ValidationError(errors)

    period = (args.get("period") or "").strip().lower()
    window_start, window_end = resolve_date_window(
        period=period, start_date=start_date, end_date=end_date, today=today
    )
    return {
        "period": period if period in REPORT_PERIODS else "all",
        "start_date": start_date,
        "end_date": end_date,
        "window_start": window_start,
        "window_end": window_end,
    }


def apply_window(q: "Query", window: dict[str, Any]) -> "Query":
    if window.get("window_start"):
        q = q.filter(Movement.date >= window["window_start"])
    if window.get("window_end"):
        q = q.filter(Movement.date <= window["window_end"])
    return q


def totals_by_type(s: "Session", window: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """{type: {"sum": Decimal, "count": int, "avg": Decimal}} for both movement types."""
    q = s.query(
        Movement.type,
        func.coalesce(func.sum(Movement.amount), 0),
        func.count(Movement.id),
    )
    rows = apply_window(q, window).group_by(Movement.type).all()
    out = {t: {"sum": Decimal("0"), "count": 0, "avg": Decimal("0")} for t in (MOVEMENT_INCOME, MOVEMENT_EXPENSE)}
    for movement_type, total, n in rows:
        total = Decimal(str(total or 0))
        n = int(n or 0)
        out[movement_type] = {"sum": total, "count": n, "avg": (total / n) if n else Decimal("0")}
    return out


def first_of_month_back(today: date, months: int) -> date:
    """First day of the month `months` months before today's month."""
    index = today.year * 12 + (today.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


def daily_series(s: "Session", *, since: date) -> list[dict[str, Any]]:
    """Per-day income/expense totals, ascending by date."""
    rows = (
        s.query(Movement.date, Movement.type, func.sum(Movement.amount))
        .filter(Movement.date >= since)
        .group_by(Movement.date, Movement.type)
        .all()
    )

    buckets: dict[str, dict[str, Any]] = {}
    for day, movement_type, total in rows:
        key = day.isoformat()
        bucket = buckets.setdefault(key, {"date": key, "income": Decimal("0"), "expense": Decimal("0")})
        bucket["income" if movement_type == MOVEMENT_INCOME else "expense"] += Decimal(str(total or 0))
    return [
        {"date": b["date"], "income": to_number(b["income"]), "expense": to_number(b["expense"])}
        for b in sorted(buckets.values(), key=lambda b: b["date"])
    ]


def monthly_buckets(q: "Query") -> dict[tuple[str, str], dict[str, Any]]:
    """
    Collapse a (date, type, sum, count) grouped query into {(YYYY-MM, type): {"sum", "count"}}.
    """
    buckets: dict[tuple[str, str], dict[str, Any]] = {}
    for day, movement_type, total, n in q.group_by(Movement.date, Movement.type).all():
        key = (day.strftime("%Y-%m"), movement_type)
        bucket = buckets.setdefault(key, {"sum": Decimal("0"), "count": 0})
        bucket["sum"] += Decimal(str(total or 0))
        bucket["count"] += int(n or 0)
    return buckets


def monthly_series(s: "Session", *, since: date) -> list[dict[str, Any]]:
    """Per-month income/expense totals, ascending by month."""
    q = s.query(Movement.date, Movement.type, func.sum(Movement.amount), func.count(Movement.id)).filter(
        Movement.date >= since
    )
    months: dict[str, dict[str, Any]] = {}
    for (month, movement_type), bucket in monthly_buckets(q).items():
        row = months.setdefault(month, {"month": month, "income": 0, "expense": 0})
        row["income" if movement_type == MOVEMENT_INCOME else "expense"] = to_number(bucket["sum"])
    return [months[m] for m in sorted(months)]


def top_concepts(s: "Session", window: dict[str, Any], movement_type: str, *, limit: int = TOP_CONCEPTS_LIMIT) -> list[dict[str, Any]]:
    total = func.sum(Movement.amount).label("total")
    q = s.query(Movement.concept, total, func.count(Movement.id)).filter(Movement.type == movement_type)
    rows = (
        apply_window(q, window)
        .group_by(Movement.concept)
        .order_by(total.desc(), Movement.concept.asc())
        .limit(limit)
        .all()
    )
    return [{"concept": concept, "amount": to_number(amount), "count": int(n)} for concept, amount, n in rows]


def active_users(s: "Session", window: dict[str, Any], *, limit: int = TOP_USERS_LIMIT) -> list[dict[str, Any]]:
    """Users with the most movements in the window, with their summed amount."""
    n = func.count(Movement.id).label("n")
    q = s.query(Movement.user_id, n, func.sum(Movement.amount))
    rows = apply_window(q, window).group_by(Movement.user_id).order_by(n.desc(), Movement.user_id.asc()).limit(limit).all()

    user_ids = [user_id for user_id, _n, _total in rows]
    users = {u.id: u for u in s.query(User).filter(User.id.in_(user_ids)).all()} if user_ids else {}
    return [
        {
            "user_id": user_id,
            "count": int(count),
            "amount": to_number(total),
            "user": users[user_id].to_summary() if user_id in users else None,
        }
        for user_id, count, total in rows
    ]


def build_financial_report(s: "Session", window: dict[str, Any], *, today: date | None = None) -> dict[str, Any]:
    today = today or date.today()
    totals = totals_by_type(s, window)
    income = totals[MOVEMENT_INCOME]
    expense = totals[MOVEMENT_EXPENSE]

    top_expenses = top_concepts(s, window, MOVEMENT_EXPENSE)
    top_incomes = top_concepts(s, window, MOVEMENT_INCOME)

    return {
        "summary": {
            "total_income": to_number(income["sum"]),
            "total_expense": to_number(expense["sum"]),
            "balance": to_number(calculate_balance({"type": t, "amount": v["sum"]} for t, v in totals.items())),
            "total_movements": income["count"] + expense["count"],
            "income_count": income["count"],
            "expense_count": expense["count"],
        },
        "chart_data": {
            "daily": daily_series(s, since=today - timedelta(days=DAILY_CHART_DAYS)),
            "monthly": monthly_series(s, since=first_of_month_back(today, MONTHLY_CHART_MONTHS)),
            "expense_pie": [{"name": c["concept"], "value": c["amount"], "count": c["count"]} for c in top_expenses],
            "income_pie": [{"name": c["concept"], "value": c["amount"], "count": c["count"]} for c in top_incomes],
        },
        "top_expenses": top_expenses,
        "top_incomes": top_incomes,
        "active_users": active_users(s, window),
        "period": window["period"],
        "date_range": {
            "start": window["start_date"].isoformat() if window.get("start_date") else None,
            "end": window["end_date"].isoformat() if window.get("end_date") else None,
        },
    }
