from __future__ import annotations

import csv
import io
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from app.fintrack.constants import MOVEMENT_INCOME

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")


def parse_date(s: str | None) -> date | None:
    """Parse a YYYY-MM-DD string (a full ISO timestamp is accepted and truncated).

    Returns None for blank input; raises ValueError for malformed input.
    """
    if s is None:
        return None
    s = str(s).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()


def parse_positive_int(raw: str | None, default: int, *, maximum: int | None = None) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        value = default
    if value < 1:
        value = default
    if maximum is not None and value > maximum:
        value = maximum
    return value


def pagination_info(page: int, limit: int, total: int) -> dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def to_number(value: Decimal | int | float | None) -> int | float:
    """JSON-friendly number for aggregate results (SUM over no rows is None)."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    f = float(value)
    return int(f) if f.is_integer() else f


def calculate_balance(movements: Iterable[Mapping[str, Any]]) -> Decimal | int | float:
    balance: Decimal | int | float = 0
    for m in movements:
        if m["type"] == MOVEMENT_INCOME:
            balance += m["amount"]
        else:
            balance -= m["amount"]
    return balance


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def validate_phone(phone: str | None) -> bool:
    """Optional phone: digits, spaces, dashes and parentheses with an optional leading '+'. Blank is valid."""
    phone = (phone or "").strip()
    return not phone or bool(_PHONE_RE.match(phone))


def generate_csv(rows: Sequence[Mapping[str, Any]], headers: Sequence[tuple[str, str]]) -> str:
    """
    Render rows as CSV text using (key, label) header pairs.
    Values containing commas, quotes or newlines are quoted; rows are joined with '\\n'.
    """
    if not headers:
        return ""
    out = io.StringIO()
    w = csv.writer(out, lineterminator="\n")
    w.writerow([label for _key, label in headers])
    for row in rows:
        w.writerow([row.get(key) for key, _label in headers])
    return out.getvalue().rstrip("\n")
