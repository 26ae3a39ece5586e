"""
app/__init__.py: Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, so:
           - the test suite can build its own isolated app instance
           - app creation stays separate from app startup
           - alembic can import the models without starting a server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging (LOG_LEVEL)
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)

Every error handler rolls back db.session before responding. Services only
flush, so a request that fails half-way through a bulk call leaves no rows
behind.

Note on model imports:
  All model modules are imported inside create_app() so that SQLAlchemy's
  metadata is populated before db.create_all() or alembic inspects it.
"""

from __future__ import annotations

import traceback

from flask import Flask, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from circlecare.app.log_config import configure_logging
from circlecare.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".
    """
    app = Flask(__name__)
    app.json.sort_keys = False

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from circlecare.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from circlecare.app.models import (  # noqa: F401
            circle,
            expense,
            ledger,
            member,
            pairwise_balance,
            settlement,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    app.logger.info("CircleCare API created with %s config", config_name)
    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    circles_bp, balances_bp and settlements_bp share /api/v1/circles; each
    route file only declares paths relative to a circle id.
    """
    from circlecare.app.routes.admin import admin_bp
    from circlecare.app.routes.balances import balances_bp
    from circlecare.app.routes.circles import circles_bp
    from circlecare.app.routes.expenses import expenses_bp
    from circlecare.app.routes.settlements import settlements_bp
    from circlecare.app.routes.users import users_bp

    app.register_blueprint(circles_bp,     url_prefix="/api/v1/circles")
    app.register_blueprint(balances_bp,    url_prefix="/api/v1/circles")
    app.register_blueprint(settlements_bp, url_prefix="/api/v1/circles")
    # expenses_bp owns both /circles/<id>/expenses and /expenses/<id>.
    app.register_blueprint(expenses_bp,    url_prefix="/api/v1")
    app.register_blueprint(users_bp,       url_prefix="/api/v1/users")
    app.register_blueprint(admin_bp,       url_prefix="/api/v1/admin")


def _first_error(messages) -> tuple[str | None, str]:
    """
    Walks marshmallow's nested messages to the first leaf.

    Returns (dotted field path, message). Nested list entries are keyed by
    index, e.g. {"members": {1: {"address": ["..."]}}} → ("members.1.address", "...").
    """
    path: list[str] = []
    node = messages

    while True:
        if isinstance(node, dict) and node:
            key, node = next(iter(node.items()))
            if key != "_schema":
                path.append(str(key))
        elif isinstance(node, list) and node:
            node = node[0]
        else:
            break

    message = node if isinstance(node, str) and node else "Invalid input."
    return (".".join(path) or None), message


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct status
      ValidationError → first marshmallow field error as MISSING_FIELD /
                        INVALID_FIELD (400)
      HTTPException   → routing and request-parsing errors (404, 405, bad JSON)
      Exception       → generic INTERNAL_ERROR (500); traceback logged

    Stack traces never leave the server.
    """
    from circlecare.app.errors import AppError, ErrorCode
    from circlecare.app.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.

        Routes never catch AppError; they let it propagate here.
        """
        db.session.rollback()
        if error.http_status >= 500:
            app.logger.error("%r on %s %s", error, request.method, request.path)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST field error only: one error, not many.
        """
        db.session.rollback()
        field, message = _first_error(error.messages)

        if message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD

        return jsonify(AppError(code, message, 400, field=field).to_dict()), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        db.session.rollback()
        status = error.code or 500
        code = {
            400: ErrorCode.BAD_REQUEST,
            404: ErrorCode.ROUTE_NOT_FOUND,
            405: ErrorCode.METHOD_NOT_ALLOWED,
        }.get(status, ErrorCode.INTERNAL_ERROR if status >= 500 else ErrorCode.BAD_REQUEST)
        return jsonify(AppError(code, error.description or error.name, status).to_dict()), status

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        The full traceback goes to the application logger only.
        """
        db.session.rollback()
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify(AppError(
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred. Please try again later.",
            500,
        ).to_dict()), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a wallet frontend served from
    another local port can call the API with Authorization and X-Block-Height
    headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = (
                "Authorization, Content-Type, X-Block-Height"
            )

        return response
