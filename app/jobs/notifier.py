"""Calendar notification worker."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time

from dotenv import load_dotenv
from sqlalchemy.engine import Engine

from app.db.session import create_engine_from_env
from app.logic.dedup import SentStore, build_sent_store
from app.logic.dispatch import NotificationDispatcher, TickReport
from app.notify.source import CalendarNotifySource
from app.utils.push import PushProvider

logger = logging.getLogger(__name__)

NOTIFY_INTERVAL_SECONDS = float(os.environ.get("NOTIFY_INTERVAL_SECONDS", 1.0))

_dispatcher: NotificationDispatcher | None = None


class NotificationLoop:
    """Run dispatcher ticks on a fixed period until stopped."""

    def __init__(self, dispatcher: NotificationDispatcher, *, interval: float = NOTIFY_INTERVAL_SECONDS) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.dispatcher = dispatcher
        self.interval = interval
        self.ticks = 0
        self._stop = asyncio.Event()
        self.running = False

    def stop(self) -> None:
        self._stop.set()

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        if stop_event is not None:
            self._stop = stop_event
        self.running = True
        logger.info("Calendar notifications every %.3fs", self.interval)
        try:
            while not self._stop.is_set():
                started = time.monotonic()
                try:
                    await self.dispatcher.run_tick()
                except Exception:
                    logger.exception("Error in notification interval")
                self.ticks += 1
                remaining = self.interval - (time.monotonic() - started)
                if remaining <= 0:
                    continue
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            logger.info("Calendar notification loop stopped after %d ticks", self.ticks)


def build_dispatcher(
    engine: Engine | None = None,
    *,
    sender: PushProvider | None = None,
    sent_store: SentStore | None = None,
    dedup_backend: str | None = None,
) -> NotificationDispatcher:
    engine = engine or create_engine_from_env()
    if sent_store is None:
        sent_store = build_sent_store(engine, backend=dedup_backend)
    return NotificationDispatcher(
        CalendarNotifySource(engine),
        sender or PushProvider(),
        sent_store=sent_store,
    )


def get_dispatcher(dedup_backend: str | None = None) -> NotificationDispatcher:
    """Process-wide dispatcher so the sent store outlives a single run."""
    global _dispatcher
    if _dispatcher is None:
        load_dotenv()
        _dispatcher = build_dispatcher(dedup_backend=dedup_backend)
    return _dispatcher


async def run_once(dedup_backend: str | None = None) -> TickReport:
    return await get_dispatcher(dedup_backend).run_tick()


async def run_notifier() -> None:
    load_dotenv()
    dispatcher = get_dispatcher()
    loop = NotificationLoop(dispatcher)
    event_loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            event_loop.add_signal_handler(sig, loop.stop)
        except NotImplementedError:  # pragma: no cover - windows
            pass
    await loop.run()


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_notifier())


if __name__ == "__main__":
    main()
