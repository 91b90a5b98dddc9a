"""Root-level pytest fixtures for all tests.

Points the run history database and data directory at a temporary
location before anything imports src.db, and provides shared schema,
record store and executor fixtures.
"""

import os
import tempfile
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="crmforge-tests-"))
os.environ.setdefault("CRMFORGE_DATA_DIR", str(_TMP_DIR))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_DIR / 'test.db'}")

from src.schema import CRMSchema, load_template  # noqa: E402
from src.services.rate_limiter import RateLimitedExecutor  # noqa: E402
from tests.helpers import FakeRecordStore  # noqa: E402


class FakeSleep:
    """Async sleep double that records delays and advances a fake clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []

    def clock(self) -> float:
        return self.now

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.now += delay


@pytest.fixture
def fake_sleep() -> FakeSleep:
    """Fake clock/sleep pair; no real time passes."""
    return FakeSleep()


@pytest.fixture
def fast_executor(fake_sleep: FakeSleep) -> RateLimitedExecutor:
    """Executor with production limits running on the fake clock."""
    return RateLimitedExecutor(clock=fake_sleep.clock, sleep=fake_sleep)


@pytest.fixture
def fake_store() -> FakeRecordStore:
    """Fresh fake record store."""
    return FakeRecordStore()


@pytest.fixture
def starter_schema() -> CRMSchema:
    """Accounts and contacts, related both ways (5 steps)."""
    return load_template("starter")


@pytest.fixture
def starter_schema_dict(starter_schema: CRMSchema) -> dict:
    """The starter schema as a camelCase JSON document."""
    return starter_schema.model_dump(by_alias=True, exclude_none=True, mode="json")


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch, tmp_path):
    """Keep user config files and env from leaking into tests."""
    from src.cli.config import get_config

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("CRMFORGE_") and key != "CRMFORGE_DATA_DIR":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("NOTION_API_KEY", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()
