"""Application factory for the Flowdeck backend."""
from __future__ import annotations

import time

from flask import Flask, g
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from .config import Config, engine_options_for
from .extensions import cors, db, limiter
from .store import WorkflowStore, init_store
from .utils.responses import ErrorCode, error_response


def create_app(config_class: type[Config] = Config) -> Flask:
    """Create and configure the Flask application instance."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS", engine_options_for(app.config["SQLALCHEMY_DATABASE_URI"])
    )
    db.init_app(app)

    allowed_origins = [
        origin.strip()
        for origin in (app.config.get("CORS_ALLOWED_ORIGINS") or "").split(",")
        if origin.strip()
    ]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": allowed_origins}},
        allow_headers=["Content-Type", "Authorization"],
    )

    limiter.init_app(app)
    store = init_store(app, db)
    _register_store_lock(app, store)

    from .api.auth import bp as auth_bp
    from .api.executions import bp as executions_bp
    from .api.health import bp as health_bp
    from .api.profile import bp as profile_bp
    from .api.workflow import bp as workflow_bp

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(workflow_bp, url_prefix="/api")
    app.register_blueprint(executions_bp, url_prefix="/api")
    app.register_blueprint(profile_bp, url_prefix="/api")

    _register_error_handlers(app)

    with app.app_context():
        # Import models to ensure they are registered with SQLAlchemy before creating tables.
        from .models import auth, execution, workflow  # noqa: F401

        _initialize_database(app)

        if app.config.get("SEED_SAMPLE_DATA", True) and store.is_empty():
            from .sample_data import load_sample_data

            user = load_sample_data(store)
            app.logger.info("Loaded sample data for %s", user.email)

    return app


def _register_store_lock(app: Flask, store: WorkflowStore) -> None:
    """Run requests that touch the store one at a time.

    The default in-memory database hands every thread the same connection, so
    a commit or rollback in one request would otherwise land in another
    request's half-finished transaction.
    """

    @app.before_request
    def _acquire_store() -> None:
        store.lock.acquire()
        g._store_locked = True

    @app.teardown_request
    def _release_store(exc: BaseException | None) -> None:
        if not g.pop("_store_locked", False):
            return
        try:
            # Return the connection before another request can pick it up.
            db.session.rollback()
        finally:
            store.lock.release()


def _register_error_handlers(app: Flask) -> None:
    """Render framework-level HTTP errors with the JSON error envelope."""

    codes = {
        404: ErrorCode.NOT_FOUND,
        405: ErrorCode.METHOD_NOT_ALLOWED,
        429: ErrorCode.RATE_LIMITED,
    }

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException) -> tuple[object, int]:
        status = exc.code or 500
        code = codes.get(status, ErrorCode.INTERNAL_ERROR)
        return error_response(exc.description or exc.name, code, status)

    @app.errorhandler(Exception)
    def _unhandled_error(exc: Exception) -> tuple[object, int]:
        app.logger.exception("Unhandled error: %s", exc)
        db.session.rollback()
        return error_response("Internal server error", ErrorCode.INTERNAL_ERROR, 500)


def _initialize_database(app: Flask) -> None:
    """Initialize the database with retry logic to handle delayed availability."""

    max_retries = int(app.config.get("DB_INIT_MAX_RETRIES", 30))
    retry_delay = float(app.config.get("DB_INIT_RETRY_DELAY", 2))

    for attempt in range(1, max_retries + 1):
        try:
            db.create_all()
            return
        except OperationalError as exc:
            if attempt >= max_retries:
                app.logger.exception("Database initialization failed after %s attempts.", attempt)
                raise

            app.logger.warning(
                "Database initialization attempt %s/%s failed: %s", attempt, max_retries, exc
            )
            time.sleep(retry_delay)
