import asyncio

import pytest
from fastapi.testclient import TestClient

from qrrelay.config import Settings
from qrrelay.main import create_app
from qrrelay.services.broadcaster import SessionBroadcaster
from qrrelay.state import SessionState


class FakeConnection:
    """Stands in for a WebSocket: records every JSON message pushed to it."""

    def __init__(self, name: str, fail: bool = False, stall: bool = False):
        self.name = name
        self.fail = fail
        self.stall = stall
        self.sent: list[dict] = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError(f"{self.name} is gone")
        if self.stall:
            await asyncio.Event().wait()
        self.sent.append(data)

    def events(self, name: str) -> list:
        return [m["data"] for m in self.sent if m["event"] == name]

    def __repr__(self):
        return f"FakeConnection({self.name!r})"


@pytest.fixture()
def broadcaster():
    return SessionBroadcaster(SessionState())


@pytest.fixture()
def make_conn():
    return FakeConnection


@pytest.fixture()
def settings(tmp_path):
    return Settings(ssl_dir=tmp_path / "ssl")


@pytest.fixture()
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c
