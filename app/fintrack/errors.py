from __future__ import annotations

from flask import Flask, g, jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException, MethodNotAllowed


class ValidationError(ValueError):
    """Request payload failed validation; rendered as a 400 with all messages."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = errors
        super().__init__(errors[0] if errors else "Invalid data.")


def error_response(message: str, status: int, **extra):
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def _err_validation(e: ValidationError):
        return error_response(str(e), 400, details=e.errors)

    @app.errorhandler(IntegrityError)
    def _err_integrity(e: IntegrityError):
        app.logger.warning("Integrity conflict (request_id=%s): %s", getattr(g, "request_id", None), e.orig)
        return error_response("Conflict - the resource already exists.", 409)

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        if e.code == 403:
            user = getattr(g, "current_user", None)
            app.logger.warning(
                "Forbidden: path=%s user_id=%s request_id=%s",
                request.path,
                getattr(user, "id", None),
                getattr(g, "request_id", None),
            )
        extra = {}
        if e.code == 401:
            extra["hint"] = "Sign in at /auth/login"
        resp, status = error_response(e.description or e.name, e.code or 500, **extra)
        if isinstance(e, MethodNotAllowed) and e.valid_methods:
            resp.headers["Allow"] = ", ".join(e.valid_methods)
        return resp, status

    @app.errorhandler(Exception)
    def _err_500(e: Exception):
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return error_response("Internal server error.", 500)
