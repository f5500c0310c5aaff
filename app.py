"""Application factory."""

import logging
import os
import re
import time
import traceback
import uuid

from flask import Flask, g, jsonify, render_template, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException, NotFound, TooManyRequests

from config import Config
from models import db
from routes.auth import auth_bp
from routes.reviews import reviews_bp
from routes.tours import tours_bp
from routes.users import users_bp
from routes.views import views_bp
from utils.errors import DuplicateKey, InternalError, ValidationError, status_for

API_PREFIX = "/api/v1"
TOO_MANY_REQUESTS_MESSAGE = "Too many requests from this IP, please try again in an hour!"

# sqlite: "UNIQUE constraint failed: users.email"; postgres: "Key (email)=(...)"
_UNIQUE_FIELD_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: (?:\w+\.)?(?P<field>\w+)"),
    re.compile(r"Key \((?P<field>[^)]+)\)=\("),
)

migrate = Migrate()
jwt = JWTManager()


def _outside_api() -> bool:
    return not request.path.startswith("/api/")


def create_app(config_class: type[Config] = Config) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.json.sort_keys = False
    app.logger.setLevel(logging.DEBUG if _is_development(app) else logging.INFO)

    # Core subsystems
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # CORS
    CORS(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Rate limiting, API surface only
    key_prefix = app.config.get("RATELIMIT_KEY_PREFIX") or str(uuid.uuid4())
    limiter = Limiter(
        get_remote_address,
        default_limits=[lambda: app.config.get("RATE_LIMIT", "100 per hour")],
        default_limits_exempt_when=_outside_api,
        storage_uri=app.config.get("RATELIMIT_STORAGE_URI", "memory://"),
        headers_enabled=app.config.get("RATELIMIT_HEADERS_ENABLED", True),
        key_prefix=key_prefix,
    )
    limiter.init_app(app)
    app.config["RATELIMIT_KEY_PREFIX"] = key_prefix

    # Blueprints
    app.register_blueprint(views_bp)
    app.register_blueprint(tours_bp, url_prefix=f"{API_PREFIX}/tours")
    app.register_blueprint(auth_bp, url_prefix=f"{API_PREFIX}/users")
    app.register_blueprint(users_bp, url_prefix=f"{API_PREFIX}/users")
    app.register_blueprint(reviews_bp, url_prefix=f"{API_PREFIX}/reviews")

    # Health
    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "ok"})

    _register_request_hooks(app)
    _register_error_handlers(app)

    return app


def _is_development(app: Flask) -> bool:
    return app.config.get("APP_ENV") == "development"


def _register_request_hooks(app: Flask) -> None:
    """Request IDs on every response; request logging in development."""

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        g.request_started = time.perf_counter()

    @app.after_request
    def _add_request_id_header(response):
        request_id = g.get("request_id")
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)
        if _is_development(app) and g.get("request_started") is not None:
            elapsed_ms = (time.perf_counter() - g.request_started) * 1000
            app.logger.debug(
                "%s %s %s %.1fms", request.method, request.path, response.status_code, elapsed_ms
            )
        return response


def _register_error_handlers(app: Flask) -> None:
    """Format every failure as JSON (API) or an error page (rendered views)."""

    def _respond(error: HTTPException, message: str, stack: str | None = None):
        request_id = g.get("request_id") or str(uuid.uuid4())
        code = error.code or 500

        if request.blueprint == views_bp.name:
            response = app.make_response(
                (render_template("error.html", title="Something went wrong!", message=message), code)
            )
        else:
            payload = {"status": status_for(code), "message": message, "request_id": request_id}
            if _is_development(app):
                payload["error"] = {"name": type(error).__name__, "code": code}
                payload["stack"] = stack
            response = jsonify(payload)
            response.status_code = code
        response.headers.setdefault("X-Request-ID", request_id)
        return response

    @app.errorhandler(HTTPException)
    def _handle_http_exception(error: HTTPException):
        message = error.description
        if type(error) is NotFound and request.url_rule is None:
            message = f"Can't find {request.path} on this server!"
        if error.code is not None and error.code >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, message)
        return _respond(error, message)

    @app.errorhandler(TooManyRequests)
    def _handle_rate_limited(error: TooManyRequests):
        app.logger.warning("Rate limit hit by %s on %s", get_remote_address(), request.path)
        return _respond(error, TOO_MANY_REQUESTS_MESSAGE)

    @app.errorhandler(IntegrityError)
    def _handle_integrity_error(error: IntegrityError):
        db.session.rollback()
        detail = str(error.orig)
        for pattern in _UNIQUE_FIELD_PATTERNS:
            match = pattern.search(detail)
            if match:
                field = match.group("field")
                return _respond(
                    DuplicateKey(),
                    f"Duplicate field value: {field}. Please use another value!",
                )
        app.logger.warning("Integrity error on %s: %s", request.path, detail)
        return _respond(ValidationError(), "Invalid input data.")

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled application error", exc_info=error)
        if _is_development(app):
            message = str(error) or InternalError.description
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        else:
            message, stack = InternalError.description, None
        return _respond(InternalError(), message, stack)


if __name__ == "__main__":
    application = create_app()
    application.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
