import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BOOTSTRAP_ADMIN_ON_STARTUP", "false")

import retailpos.models  # noqa: F401
from retailpos.core.config import settings
from retailpos.core.deps import get_db
from retailpos.db.base import Base
from retailpos.db.session import build_engine, make_session_factory
from retailpos.main import app
from retailpos.routers.auth import login_throttle
from retailpos.services.user_service import ensure_bootstrap_admin


def _memory_session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    return engine, make_session_factory(engine)


def _seed_admin(session_local) -> None:
    db = session_local()
    try:
        ensure_bootstrap_admin(db)
        db.commit()
    finally:
        db.close()


@pytest.fixture()
def test_context():
    original_secret = settings.secret_key
    settings.secret_key = "test-secret-key"

    engine, session_local = _memory_session_factory()
    _seed_admin(session_local)

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
    settings.secret_key = original_secret
    login_throttle.clear()


@pytest.fixture()
def db_session():
    """Bare session for service-level tests; the caller decides when to commit."""
    engine, session_local = _memory_session_factory()
    db = session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
