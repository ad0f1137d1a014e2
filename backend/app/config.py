"""Configuration for the Flowdeck backend."""

from __future__ import annotations

import os

from sqlalchemy.pool import StaticPool


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def engine_options_for(uri: str) -> dict[str, object]:
    """Share one connection when the store lives in an in-memory SQLite database."""

    if uri.startswith("sqlite") and ":memory:" in uri:
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}


class Config:
    """Base configuration for the Flask application."""

    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    JSONIFY_PRETTYPRINT_REGULAR: bool = False
    CORS_ALLOWED_ORIGINS: str = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000")
    DB_INIT_MAX_RETRIES: int = int(os.getenv("DB_INIT_MAX_RETRIES", "30"))
    DB_INIT_RETRY_DELAY: float = float(os.getenv("DB_INIT_RETRY_DELAY", "2"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    SESSION_TTL_DAYS: int = int(os.getenv("SESSION_TTL_DAYS", "30"))
    SEED_SAMPLE_DATA: bool = _env_flag("SEED_SAMPLE_DATA", True)

    STEP_DURATION_MIN_MS: int = int(os.getenv("STEP_DURATION_MIN_MS", "500"))
    STEP_DURATION_MAX_MS: int = int(os.getenv("STEP_DURATION_MAX_MS", "2500"))
    SIMULATE_STEP_DELAY: bool = _env_flag("SIMULATE_STEP_DELAY", True)
    EXECUTION_RANDOM_SEED: int | None = (
        int(os.environ["EXECUTION_RANDOM_SEED"]) if os.getenv("EXECUTION_RANDOM_SEED") else None
    )

    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))
    RECENT_EXECUTIONS_LIMIT: int = 10

    RATELIMIT_ENABLED: bool = _env_flag("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI: str = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    SIGNIN_RATE_LIMIT: str = os.getenv("SIGNIN_RATE_LIMIT", "10 per minute")
    EXECUTE_RATE_LIMIT: str = os.getenv("EXECUTE_RATE_LIMIT", "30 per minute")
