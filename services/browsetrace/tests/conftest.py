from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[3]
SERVICE_DIR = ROOT / "services" / "browsetrace"
if str(SERVICE_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICE_DIR))

from database import create_db_engine, ensure_schema, get_db
from schemas import EventIn


@pytest.fixture
def db_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'events.db'}")
    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    from main import app

    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_event():
    def _make(**overrides) -> EventIn:
        fields = {
            "ts_utc": 1_700_000_000_000,
            "ts_iso": "2023-11-14T22:13:20.000Z",
            "url": "https://example.com/",
            "title": "Example",
            "type": "click",
            "data": {"selector": "#btn", "text": "Go"},
            "session_id": "sess-1",
            "field_id": None,
        }
        fields.update(overrides)
        return EventIn(**fields)

    return _make
