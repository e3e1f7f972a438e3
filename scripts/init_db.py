"""
Seed sample users and movements (idempotent).

Usage:
  python scripts/init_db.py
  python scripts/init_db.py --create-tables   # sqlite/dev without running alembic
"""
import argparse
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fintrack.db import create_db_engine
from app.fintrack.models import Base, User
from app.fintrack.modules.movements.models import Movement
from scripts._db_utils import resolve_db_url, script_session

SAMPLE_USERS = (
    {"name": "Admin User", "email": "admin@test.com", "role": "ADMIN", "phone": "+57 300 123 4567"},
    {"name": "Regular User", "email": "user@test.com", "role": "USER", "phone": "+57 300 765 4321"},
)

SAMPLE_MOVEMENTS = (
    ("Venta de producto A", "500000", date(2024, 1, 15), "INCOME", "ventas", "Venta inicial del mes de enero"),
    ("Compra de suministros", "150000", date(2024, 1, 10), "EXPENSE", "suministros", "Materiales para producción"),
    ("Servicios profesionales", "1200000", date(2024, 1, 20), "INCOME", "servicios", "Consultoría de sistemas"),
    ("Pago de arriendo oficina", "800000", date(2024, 1, 5), "EXPENSE", "arriendo", "Arriendo mensual de oficina"),
    ("Venta de licencia software", "2500000", date(2024, 1, 25), "INCOME", "software", "Licencia anual de software empresarial"),
    ("Egresos de marketing", "350000", date(2024, 1, 12), "EXPENSE", "marketing", "Campaña publicitaria en redes sociales"),
)


def seed_only(*, database_url: str | None = None) -> None:
    """
    Upsert the sample admin/user accounts and the sample movements.
    Existing users are left untouched (role and phone are not overwritten).
    """
    db_url = resolve_db_url(database_url)

    with script_session(db_url) as s:
        users: dict[str, User] = {}
        for sample in SAMPLE_USERS:
            user = s.query(User).filter(User.email == sample["email"]).one_or_none()
            if not user:
                user = User(email_verified=True, **sample)
                s.add(user)
            users[sample["role"]] = user
        s.flush()

        admin = users["ADMIN"]
        created = 0
        for concept, amount, day, movement_type, category, description in SAMPLE_MOVEMENTS:
            exists = (
                s.query(Movement.id)
                .filter(Movement.concept == concept, Movement.date == day, Movement.user_id == admin.id)
                .first()
            )
            if exists:
                continue
            s.add(
                Movement(
                    concept=concept,
                    amount=Decimal(amount),
                    date=day,
                    type=movement_type,
                    category=category,
                    description=description,
                    user_id=admin.id,
                )
            )
            created += 1
        s.flush()

        user_count = s.query(User).count()
        movement_count = s.query(Movement).count()

    print("Initialized database (seed_only).")
    print(f"Created {created} sample movements")
    print(f"Database now has {user_count} users and {movement_count} movements")


def create_tables(*, database_url: str | None = None) -> None:
    engine = create_db_engine(resolve_db_url(database_url))
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed sample users and movements.")
    parser.add_argument("--create-tables", action="store_true", help="Create tables from the models before seeding")
    args = parser.parse_args()

    if args.create_tables:
        create_tables()
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
