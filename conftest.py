"""
Fixtures compartidos: SQLite en memoria, tokens JWT por rol y un sink de eventos
que registra lo emitido.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["EVENT_DISPATCH"] = "log"

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.config import settings
from app.database.database import Base, get_db
from app.modules.auth.schemas import CallerContext, CallerRole
from app.modules.billing.events import EventSink, get_event_sink

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

VENDOR_ID = "vendor-1"
OTHER_VENDOR_ID = "vendor-2"
PM_ID = "pm-1"


class RecordingEventSink(EventSink):
    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def names(self):
        return [event.name for event in self.events]


def make_token(caller_id: str, role: str) -> str:
    return jwt.encode({"sub": caller_id, "role": role}, settings.APP_SECRET_STRING, algorithm=settings.ALGORITHM)


def bearer(caller_id: str, role: str) -> dict:
    return {"Authorization": f"Bearer {make_token(caller_id, role)}"}


@pytest.fixture
def session_factory():
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def event_sink():
    return RecordingEventSink()


@pytest.fixture
def vendor():
    return CallerContext(caller_id=VENDOR_ID, role=CallerRole.VENDOR)


@pytest.fixture
def other_vendor():
    return CallerContext(caller_id=OTHER_VENDOR_ID, role=CallerRole.VENDOR)


@pytest.fixture
def pm():
    return CallerContext(caller_id=PM_ID, role=CallerRole.PROJECT_MANAGER)


@pytest.fixture
def vendor_headers():
    return bearer(VENDOR_ID, "vendor")


@pytest.fixture
def other_vendor_headers():
    return bearer(OTHER_VENDOR_ID, "vendor")


@pytest.fixture
def pm_headers():
    return bearer(PM_ID, "pm")


@pytest.fixture
def client(session_factory, event_sink):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_sink] = lambda: event_sink
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
