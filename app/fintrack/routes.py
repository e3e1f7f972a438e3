from flask import Blueprint, g, jsonify, url_for

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    """Entry point: tells a client whether it is signed in and where the API lives."""
    user = getattr(g, "current_user", None)
    return jsonify(
        {
            "app": "fintrack",
            "authenticated": bool(user),
            "user": user.to_summary() if user else None,
            "login_url": url_for("auth.login"),
            "api": {
                "movements": url_for("movements.movements_list"),
                "users": url_for("users.users_list"),
                "financial_report": url_for("reports.financial_report"),
                "csv_report": url_for("reports.csv_report"),
            },
        }
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check for containers. No DB access, minimal overhead.
    """
    return "ok", 200
