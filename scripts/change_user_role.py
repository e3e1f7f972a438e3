#!/usr/bin/env python3
"""Change a user's role (idempotent).

Usage:
  python scripts/change_user_role.py --email admin@test.com --role USER
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fintrack.constants import VALID_ROLES
from app.fintrack.models import User
from scripts._db_utils import resolve_db_url, script_session


def change_role(email: str, role: str, *, database_url: str | None = None) -> bool:
    role = role.strip().upper()
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role: {role}. Use one of: {', '.join(VALID_ROLES)}")

    with script_session(resolve_db_url(database_url)) as s:
        user = s.query(User).filter(User.email.ilike(email.strip())).one_or_none()
        if not user:
            print(f"User not found: {email}")
            return False
        if user.role == role:
            print(f"User already has role {role}: {user.email}")
            return True
        previous = user.role
        user.role = role

    print(f"Role changed for {email}: {previous} -> {role}")
    return True


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--role", required=True, choices=VALID_ROLES, type=str.upper, help="New role")
    args = parser.parse_args()

    if not change_role(args.email, args.role):
        sys.exit(1)


if __name__ == "__main__":
    main()
