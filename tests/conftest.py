import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-at-least-32-characters")

import wooffy_api.models  # noqa: F401
from tests.factories import Seeder
from wooffy_api.core.config import settings
from wooffy_api.core.deps import get_db
from wooffy_api.db.base import Base
from wooffy_api.db.session import configure_sqlite_engine
from wooffy_api.main import app


@pytest.fixture()
def test_context():
    original_cron_secret = settings.cron_secret
    settings.cron_secret = None

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_engine(engine)
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    settings.cron_secret = original_cron_secret


@pytest.fixture()
def seed(test_context):
    _, session_local = test_context
    return Seeder(session_local)
