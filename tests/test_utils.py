from datetime import date
from decimal import Decimal

import pytest

from app.fintrack.utils import (
    calculate_balance,
    generate_csv,
    pagination_info,
    parse_date,
    parse_positive_int,
    to_number,
    validate_email,
    validate_phone,
)


def test_calculate_balance():
    movements = [
        {"type": "INCOME", "amount": 1000},
        {"type": "EXPENSE", "amount": 500},
        {"type": "INCOME", "amount": 200},
    ]
    assert calculate_balance(movements) == 700
    assert calculate_balance([{"type": "EXPENSE", "amount": 300}, {"type": "EXPENSE", "amount": 200}]) == -500
    assert calculate_balance([]) == 0


def test_validate_email():
    for email in ("user@example.com", "test.email+123@domain.co", "admin@company.org"):
        assert validate_email(email) is True
    for email in ("invalid-email", "missing@domain", "@domain.com", "user@", ""):
        assert validate_email(email) is False


def test_validate_phone():
    for phone in ("3101234567", "+57 300 123 4567", "310-123-4567", "(300) 555-1234", "", "   ", None):
        assert validate_phone(phone) is True, phone
    for phone in ("call me", "+57 300 abc", "57+300", "300.555.1234"):
        assert validate_phone(phone) is False, phone


@pytest.mark.parametrize(
    "page,total,has_next,has_prev,total_pages",
    [
        (1, 25, True, False, 3),
        (2, 25, True, True, 3),
        (3, 25, False, True, 3),
        (1, 5, False, False, 1),
        (1, 0, False, False, 0),
    ],
)
def test_pagination_info(page, total, has_next, has_prev, total_pages):
    assert pagination_info(page, 10, total) == {
        "page": page,
        "limit": 10,
        "total": total,
        "total_pages": total_pages,
        "has_next": has_next,
        "has_prev": has_prev,
    }


def test_parse_positive_int():
    assert parse_positive_int(None, 10) == 10
    assert parse_positive_int("3", 10) == 3
    assert parse_positive_int("abc", 10) == 10
    assert parse_positive_int("0", 10) == 10
    assert parse_positive_int("500", 10, maximum=100) == 100


def test_parse_date():
    assert parse_date("2024-01-15") == date(2024, 1, 15)
    assert parse_date("2024-01-15T10:30:00") == date(2024, 1, 15)
    assert parse_date("2024-01-15T10:30:00Z") == date(2024, 1, 15)
    assert parse_date("") is None
    assert parse_date(None) is None
    with pytest.raises(ValueError):
        parse_date("invalid-date")


def test_to_number():
    assert to_number(None) == 0
    assert to_number(Decimal("1500.00")) == 1500
    assert isinstance(to_number(Decimal("1500.00")), int)
    assert to_number(Decimal("1500.50")) == 1500.5


def test_generate_csv():
    rows = [
        {"name": "John Doe", "age": 30, "email": "john@example.com"},
        {"name": "Jane Smith", "age": 25, "email": "jane@example.com"},
    ]
    headers = [("name", "Name"), ("age", "Age"), ("email", "Email")]
    assert generate_csv(rows, headers) == (
        "Name,Age,Email\nJohn Doe,30,john@example.com\nJane Smith,25,jane@example.com"
    )


def test_generate_csv_escapes_commas_and_quotes():
    rows = [{"name": "Doe, John", "description": 'Software "Developer"'}]
    headers = [("name", "Name"), ("description", "Description")]
    assert generate_csv(rows, headers) == 'Name,Description\n"Doe, John","Software ""Developer"""'


def test_generate_csv_empty():
    assert generate_csv([], []) == ""
    assert generate_csv([], [("name", "Name")]) == "Name"
