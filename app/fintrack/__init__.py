import logging
from datetime import timedelta

from flask import Flask, g, jsonify, request, session
from dotenv import load_dotenv

from app.fintrack.config import check_production_config, load_config
from app.fintrack.db import dispose_engine_after_fork, init_db, teardown_db_session
from app.fintrack.models import Base  # noqa: F401  (registers all tables)
from app.fintrack.errors import register_error_handlers
from app.fintrack.routes import bp as routes_bp
from app.fintrack.auth import bp as auth_bp, init_oauth, load_current_user
from app.fintrack.modules.movements.api import bp as movements_bp
from app.fintrack.modules.users.api import bp as users_bp
from app.fintrack.modules.reports.api import bp as reports_bp
from app.fintrack.security import ensure_csrf_token, validate_csrf

logger = logging.getLogger(__name__)

# No session, user lookup or CSRF work for health checks and static files
_UNTRACKED_PATHS = ("/static/", "/health", "/healthz")
_MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=app.config["SESSION_DAYS"])
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False

    check_production_config(app.config)
    if not app.config.get("GITHUB_CLIENT_ID"):
        logger.warning("GITHUB_CLIENT_ID not set; /auth/login will not work until it is configured.")

    init_db(app)
    dispose_engine_after_fork(app)
    init_oauth(app)

    @app.before_request
    def _load_user():
        if request.path.startswith(_UNTRACKED_PATHS):
            g.current_user = None
            return None
        session.permanent = True
        return load_current_user()

    @app.before_request
    def _csrf_guard():
        if not app.config.get("CSRF_ENABLED", True) or request.path.startswith(_UNTRACKED_PATHS):
            return None
        ensure_csrf_token()
        # Anonymous requests fall through to the auth gate (401).
        if getattr(g, "current_user", None) is None or request.method not in _MUTATING_METHODS:
            return None
        # login/logout carry no token
        if (request.endpoint or "").startswith("auth."):
            return None
        if validate_csrf(request):
            return None
        app.logger.warning(
            "CSRF rejected: %s %s request_id=%s", request.method, request.path, getattr(g, "request_id", None)
        )
        return jsonify({"error": "CSRF token missing or invalid."}), 400

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp)
    for api_bp in (movements_bp, users_bp, reports_bp):
        app.register_blueprint(api_bp, url_prefix="/api")

    register_error_handlers(app)
    app.teardown_appcontext(teardown_db_session)

    logger.info("create_app() complete; app ready to serve")
    return app
