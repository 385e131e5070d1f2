"""Application factory for the UK payroll HTTP wrapper."""

import os
from importlib import util as importlib_util
from typing import TYPE_CHECKING, Callable, cast
from warnings import warn

from flask import Flask, Response, jsonify, request
from flask.typing import ResponseReturnValue
from werkzeug.exceptions import HTTPException

from .http import problem_response

if TYPE_CHECKING:  # pragma: no cover - only for static type checkers
    from .services.records import PayrollRecordStore

CORS: Callable[..., None] | None

if importlib_util.find_spec("flask_cors") is not None:
    from flask_cors import CORS as _cors

    CORS = cast(Callable[..., None], _cors)
else:  # pragma: no cover - executed only when optional dependency missing
    CORS = None

ALLOWED_ORIGINS_ENV = "UKPAYROLL_ALLOWED_ORIGINS"
API_METHODS = ("GET", "OPTIONS", "POST")

# Werkzeug exception codes mapped onto the problem codes used by the API.
_HTTP_PROBLEMS = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    415: "bad_request",
}


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert a comma-separated origin list into a set."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def _cors_headers(origin: str | None, allowed_origins: set[str]) -> dict[str, str]:
    """Return the CORS headers granted to ``origin``, empty when it is not allowed."""

    if not origin or origin not in allowed_origins:
        return {}

    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": request.headers.get(
            "Access-Control-Request-Headers", "Content-Type"
        ),
        "Access-Control-Allow-Methods": request.headers.get(
            "Access-Control-Request-Method", request.method
        ),
    }


def _install_fallback_cors(app: Flask, allowed_origins: set[str]) -> None:
    """Serve preflights and attach headers on ``/api`` routes without Flask-Cors."""

    warn(
        "Flask-Cors is not installed; falling back to a minimal CORS implementation.",
        stacklevel=2,
    )

    @app.before_request
    def _answer_preflight() -> ResponseReturnValue | None:
        if request.method != "OPTIONS" or not request.path.startswith("/api/"):
            return None
        origin = request.headers.get("Origin")
        if origin and origin not in allowed_origins:
            return app.make_response(("", 403))
        return app.make_default_options_response()

    @app.after_request
    def _attach_headers(response: Response) -> Response:
        if request.path.startswith("/api/"):
            headers = _cors_headers(request.headers.get("Origin"), allowed_origins)
            if headers:
                response.headers.update(headers)
                response.headers.add("Vary", "Origin")
        return response


def _configure_cors(app: Flask) -> None:
    allowed_origins = _parse_allowed_origins(os.getenv(ALLOWED_ORIGINS_ENV))

    if CORS is None:
        _install_fallback_cors(app, allowed_origins)
        return

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=list(API_METHODS),
        allow_headers=["Content-Type"],
    )


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        """Render routing and parsing errors as JSON problem payloads."""

        status = error.code or 500
        problem = _HTTP_PROBLEMS.get(status, "calculation_failed")
        return problem_response(
            problem, status=status, message=error.description or error.name
        ).to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Surface domain validation errors that escape the route handlers."""

        return problem_response("validation_error", message=str(error)).to_response()


def create_app(store: "PayrollRecordStore | None" = None) -> Flask:
    """Create the Flask application, backed by ``store`` or a fresh in-memory store."""

    from .routes import register_routes
    from .routes.config import get_configuration_metadata
    from .routes.payroll import RECORD_STORE_EXTENSION
    from .services.records import InMemoryRecordStore

    app = Flask(__name__)
    app.extensions[RECORD_STORE_EXTENSION] = (
        store if store is not None else InMemoryRecordStore()
    )

    _configure_cors(app)
    register_routes(app)
    _register_error_handlers(app)

    @app.get("/health")
    def health_check():
        """Report liveness together with the configured tax years."""

        return jsonify({"status": "ok", **get_configuration_metadata()})

    return app
