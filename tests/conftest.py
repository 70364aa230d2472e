import json

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from config import Settings
from database import RecordStore, WriteSerializer
from main import create_app
from notifications import NotificationHub
from services import TicketService


VALID_FIELDS = {
    "date": "2024-03-01",
    "amount": "12.50",
    "type": "ticket",
    "category": "drama",
    "description": "Dune",
}


class FakeObserver:
    """Stands in for a WebSocket connection in hub and service tests."""

    def __init__(self, ready=True, fail=False):
        state = WebSocketState.CONNECTED if ready else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state
        self.fail = fail
        self.sent = []
        self.closed = False

    async def send_text(self, data):
        if self.fail:
            raise RuntimeError("connection reset by peer")
        self.sent.append(json.loads(data))

    async def close(self, code=1000):
        self.closed = True


@pytest.fixture
def valid_fields():
    return dict(VALID_FIELDS)


@pytest.fixture
def make_observer():
    return FakeObserver


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "database.json"


@pytest.fixture
def store(db_path):
    return RecordStore(db_path)


@pytest.fixture
def hub():
    return NotificationHub()


@pytest_asyncio.fixture
async def service(store, hub):
    serializer = WriteSerializer(store)
    yield TicketService(store, serializer, hub)
    await serializer.close()


@pytest.fixture
def app(db_path):
    return create_app(Settings(database_path=str(db_path)))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
