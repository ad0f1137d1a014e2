from __future__ import annotations

import pathlib
import sys
from collections.abc import Callable
from datetime import timedelta

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_dependencies():
    from app import Config, create_app
    from backend.app.extensions import db

    return Config, create_app, db


ConfigBase, create_app, db = _load_dependencies()


class TestConfig(ConfigBase):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    CORS_ALLOWED_ORIGINS = "http://localhost"
    SEED_SAMPLE_DATA = False
    SIMULATE_STEP_DELAY = False
    EXECUTION_RANDOM_SEED = 1234
    RATELIMIT_ENABLED = False


@pytest.fixture(scope="module")
def app():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def store(app):
    from backend.app.store import get_store

    return get_store()


@pytest.fixture(autouse=True)
def cleanup_records(app):
    from backend.app.models import AuthSession, Execution, User, Workflow

    yield

    db.session.rollback()
    db.session.query(Execution).delete()
    db.session.query(Workflow).delete()
    db.session.query(AuthSession).delete()
    db.session.query(User).delete()
    db.session.commit()
    db.session.expunge_all()


@pytest.fixture()
def user_factory(store):
    counter = {"value": 0}

    def factory(email: str | None = None, password: str = "s3cret-pass", name: str = "Test User"):
        counter["value"] += 1
        return store.create_user(
            email or f"user{counter['value']}@example.com", name=name, password=password
        )

    return factory


@pytest.fixture()
def auth_header_factory(store) -> Callable[..., dict[str, str]]:
    def factory(user, ttl: timedelta = timedelta(days=30)) -> dict[str, str]:
        token, _ = store.open_session(user, provider="credentials", ttl=ttl)
        return {"Authorization": f"Bearer {token}"}

    return factory


@pytest.fixture()
def user(user_factory):
    return user_factory(email="owner@example.com", name="Owner")


@pytest.fixture()
def auth_headers(user, auth_header_factory):
    return auth_header_factory(user)


@pytest.fixture()
def workflow_factory(store):
    def factory(owner, name: str = "Sample Flow", **fields):
        fields.setdefault("description", "A workflow used in tests")
        return store.create_workflow(owner, name=name, **fields)

    return factory
