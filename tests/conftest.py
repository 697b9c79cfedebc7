import os

os.environ.setdefault("APP_ENVIRONMENT", "testing")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.domain.models import AssessmentContext  # noqa: E402
from app.infrastructure.config import reset_settings  # noqa: E402
from app.infrastructure.db import init_schema, make_engine_and_session  # noqa: E402
from app.infrastructure.gateway import SqlRatingsGateway  # noqa: E402
from app.web.main import create_application  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def session_factory():
    """In-memory SQLite shared across threads, with the ratings table created."""
    engine, SessionLocal = make_engine_and_session("sqlite://")
    init_schema(engine)
    yield SessionLocal
    engine.dispose()


@pytest.fixture
def gateway(session_factory):
    return SqlRatingsGateway(session_factory)


@pytest.fixture
def acme():
    return AssessmentContext("Acme", "2024-01-01")


@pytest.fixture
def client(gateway):
    app = create_application(gateway)
    return TestClient(app)
