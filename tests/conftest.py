import json
import os

# Pure in-memory store, no Redis, no upstream keys
os.environ["DATA_FILE"] = ""
os.environ["DATABASE_URL"] = ""
os.environ.pop("REDIS_URL", None)
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from viralboost.realtime.hub import MessagingHub  # noqa: E402
from viralboost.services.welcome_service import WelcomeSnapshots  # noqa: E402
from viralboost.store.memory import MemoryStore  # noqa: E402


class FakeTransport:
    """Records every frame the hub writes; ``fail`` makes writes raise like a dead socket."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("socket gone")
        self.sent.append(json.loads(data))

    def of_type(self, event_type: str) -> list[dict]:
        return [frame for frame in self.sent if frame["type"] == event_type]

    def types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def hub(store):
    return MessagingHub(store, welcome=WelcomeSnapshots(store))


@pytest.fixture
def join(hub):
    """Open a connection on ``hub`` and join it as ``user_id``."""

    async def _join(user_id: str, name: str | None = None, **fields):
        transport = FakeTransport()
        connection = hub.connect(transport)
        frame = {"type": "join", "userId": user_id, **fields}
        if name:
            frame["name"] = name
        await hub.handle_frame(connection, json.dumps(frame))
        return connection, transport

    return _join


@pytest.fixture
def client():
    from viralboost.main import app

    with TestClient(app) as test_client:
        yield test_client


def _receive_until(websocket, event_type: str, limit: int = 20) -> dict:
    for _ in range(limit):
        frame = websocket.receive_json()
        if frame["type"] == event_type:
            return frame
    raise AssertionError(f"No {event_type!r} frame within {limit} frames")


@pytest.fixture
def receive_until():
    """Read frames from a TestClient websocket until one of the given type arrives."""
    return _receive_until


@pytest.fixture
def make_transport():
    return FakeTransport
