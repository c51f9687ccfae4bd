"""Pytest configuration and fixtures"""
import os
import tempfile
from pathlib import Path
from typing import Generator

# Point the process-wide settings at throwaway storage before the app is imported
_SESSION_DIR = tempfile.mkdtemp(prefix="sensorchain-tests-")
os.environ["LOG_PATH"] = os.path.join(_SESSION_DIR, "sensor_log.csv")
os.environ["ANCHOR_DATABASE_URL"] = f"sqlite:///{_SESSION_DIR}/anchor.db"
os.environ["SAMPLE_INTERVAL_SECONDS"] = "0"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["FSYNC_ON_WRITE"] = "false"
os.environ["ENABLE_METRICS"] = "true"
os.environ.pop("WEBHOOK_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from sensorchain.api.deps import get_ledger  # noqa: E402
from sensorchain.config import settings  # noqa: E402
from sensorchain.database import Base, init_db, make_engine  # noqa: E402
from sensorchain.ledger.engine import ChainLedger, build_ledger  # noqa: E402
from sensorchain.main import app  # noqa: E402


@pytest.fixture(scope="function")
def anchor_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path}/anchor.db"


@pytest.fixture(scope="function")
def session_factory(anchor_url: str):
    """Fresh anchor database for each test"""
    engine = make_engine(anchor_url)
    init_db(engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "sensor_log.csv"


@pytest.fixture(scope="function")
def ledger(log_path: Path, session_factory) -> ChainLedger:
    """Bootstrapped, empty ledger"""
    chain = build_ledger(log_path, session_factory, fsync=False)
    chain.bootstrap()
    return chain


@pytest.fixture(scope="function")
def two_records(ledger: ChainLedger):
    """The two-reading scenario used throughout the tests"""
    first = ledger.append("2024-01-01 00:00:00", "20.0")
    second = ledger.append("2024-01-01 00:00:05", "20.5")
    return first, second


@pytest.fixture(scope="function")
def client(ledger: ChainLedger) -> Generator[TestClient, None, None]:
    """Create test client with the ledger dependency overridden"""
    app.dependency_overrides[get_ledger] = lambda: ledger
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    """Admin authentication headers"""
    return {"X-Admin-Key": settings.ADMIN_API_KEY}


@pytest.fixture
def attacks_enabled(monkeypatch):
    monkeypatch.setattr(settings, "ATTACKS_ENABLED", True)
