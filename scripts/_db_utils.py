from __future__ import annotations

import os
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.fintrack.db import create_db_engine, make_sessionmaker

DEFAULT_DB_URL = "sqlite:///fintrack.db"


def resolve_db_url(db_url: str | None = None) -> str:
    return (db_url or os.environ.get("DATABASE_URL") or DEFAULT_DB_URL).strip()


@contextmanager
def script_session(db_url: str):
    """Standalone session for CLI scripts (no Flask app); the engine is disposed on exit."""
    engine = create_db_engine(db_url)
    s: Session = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
