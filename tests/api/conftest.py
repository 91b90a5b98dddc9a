"""API test fixtures: in-memory run history, fake record store, no pacing."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.main import app
from src.api.routes.crm import get_record_store_factory, get_shared_executor
from src.cli.config import CRMForgeConfig, RecordStoreConfig, get_config
from src.db.connection import get_db, get_session_factory
from src.db.models import Base
from src.services.rate_limiter import RateLimitedExecutor
from tests.helpers import FakeRecordStore


@pytest.fixture
def session_factory():
    """Session factory bound to a shared in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def api_config() -> CRMForgeConfig:
    return CRMForgeConfig(record_store=RecordStoreConfig(api_key="secret_test"))


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore(with_data_sources=True)


@pytest.fixture
def client(session_factory, api_config, store):
    """TestClient with every external dependency overridden."""
    from sse_starlette import sse

    # Older sse-starlette keeps one exit event bound to the first loop.
    if hasattr(sse, "AppStatus") and hasattr(sse.AppStatus, "should_exit_event"):
        sse.AppStatus.should_exit_event = None

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_config] = lambda: api_config
    app.dependency_overrides[get_record_store_factory] = lambda: (lambda: store)
    app.dependency_overrides[get_shared_executor] = lambda: RateLimitedExecutor(
        min_interval=0.0
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
