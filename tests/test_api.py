import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.api import main
from app.jobs import notifier
from app.logic.dedup import InMemorySentStore
from app.logic.dispatch import NotificationDispatcher
from app.notify.models import NotificationCandidate

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class StaticSource:
    async def list_pending_notifications(self):
        return [
            NotificationCandidate(
                notify_id="1",
                user_id="1",
                product_id="10",
                push_token="ExponentPushToken[ada]",
                publish_date=NOW - timedelta(days=1),
                user_name="Ada",
                product_name="Jordan 1",
            )
        ]


class RecordingSender:
    def __init__(self):
        self.messages = []

    async def send(self, message):
        self.messages.append(message)


@pytest.fixture()
def dispatcher(monkeypatch):
    dispatcher = NotificationDispatcher(StaticSource(), RecordingSender(), sent_store=InMemorySentStore(), clock=lambda: NOW)
    monkeypatch.setattr(notifier, "_dispatcher", dispatcher)
    return dispatcher


def test_health(monkeypatch, dispatcher):
    monkeypatch.setenv("NOTIFIER_ENABLED", "false")
    with TestClient(main.app) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_manual_tick_and_status(monkeypatch, dispatcher):
    monkeypatch.setenv("NOTIFIER_ENABLED", "false")
    with TestClient(main.app) as client:
        status = client.get("/notifier/status").json()
        assert status["running"] is False
        assert status["last_tick"] is None

        tick = client.post("/notifier/tick").json()
        assert tick["sent"] == 1
        assert tick["eligible"] == 1

        status = client.get("/notifier/status").json()
        assert status["sent_total"] == 1
        assert status["last_tick"]["sent"] == 1

        assert client.post("/notifier/tick").json()["skipped"] == 1
    assert len(dispatcher.sender.messages) == 1


def test_lifespan_runs_loop(monkeypatch, dispatcher):
    monkeypatch.setenv("NOTIFIER_ENABLED", "true")
    with TestClient(main.app) as client:
        deadline = time.monotonic() + 3
        status = client.get("/notifier/status").json()
        while status["sent_total"] < 1 and time.monotonic() < deadline:
            time.sleep(0.05)
            status = client.get("/notifier/status").json()
        assert status["running"] is True
        assert status["sent_total"] == 1
    assert main.app.state.notifier.running is False


def test_shutdown_cancels_a_stuck_loop(monkeypatch, caplog):
    class StuckDispatcher:
        async def run_tick(self):
            await asyncio.sleep(60)

    monkeypatch.setattr(notifier, "_dispatcher", StuckDispatcher())
    monkeypatch.setattr(main, "SHUTDOWN_GRACE_SECONDS", 0.05)
    monkeypatch.setenv("NOTIFIER_ENABLED", "true")
    with caplog.at_level(logging.WARNING, logger="app.api.main"):
        with TestClient(main.app) as client:
            assert client.get("/health").status_code == 200
    loop = main.app.state.notifier
    assert loop.running is False
    assert loop.ticks == 0
    assert "did not stop in time" in caplog.text
