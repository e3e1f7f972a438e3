from __future__ import annotations

import os
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def engine_options(db_url: str) -> dict[str, object]:
    options: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        options.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    return options


def create_db_engine(db_url: str) -> Engine:
    """Engine shared by the app and the scripts; SQLite connections get foreign keys enabled."""
    engine = create_engine(db_url, **engine_options(db_url))
    if db_url.startswith("sqlite"):
        # ON DELETE CASCADE (users -> movements, oauth_accounts) is a no-op otherwise
        @event.listens_for(engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(app: Flask) -> None:
    engine = create_db_engine(app.config["DATABASE_URL"])

    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):
            app.logger.debug("DB connection checkout from pool")

    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session, created lazily on first use and closed on teardown.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        return s
    if app is None:
        from flask import current_app

        app = current_app
    g.db_session = app.extensions["sqlalchemy_sessionmaker"]()  # type: ignore[assignment]
    return g.db_session


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        return
    if exc is not None:
        s.rollback()
    s.close()
    g.db_session = None


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Session outside a request (tests, CLI helpers). Commits on success, rolls back on error.
    """
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def dispose_engine_after_fork(app: Flask) -> None:
    """Pre-forking servers (gunicorn --preload) must not share pooled connections with the parent."""
    if not hasattr(os, "register_at_fork"):
        return

    def _after_fork_child():
        engine = app.extensions.get("sqlalchemy_engine")
        if engine:
            engine.dispose()
            app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

    os.register_at_fork(after_in_child=_after_fork_child)
