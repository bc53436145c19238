"""FastAPI application hosting the calendar notification loop."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from fastapi import Depends, FastAPI
from pydantic import BaseModel

from app.jobs.notifier import NotificationLoop, get_dispatcher
from app.logic.dispatch import NotificationDispatcher, TickReport

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = float(os.environ.get("NOTIFIER_SHUTDOWN_GRACE", 5.0))


def notifier_enabled() -> bool:
    return os.environ.get("NOTIFIER_ENABLED", "false").lower() in {"1", "true", "yes"}


class TickReportModel(BaseModel):
    started_at: datetime
    scanned: int
    eligible: int
    skipped: int
    sent: int
    failed: int
    error: str | None = None
    failures: list[str] = []

    @classmethod
    def from_report(cls, report: TickReport) -> "TickReportModel":
        return cls(
            started_at=report.started_at,
            scanned=report.scanned,
            eligible=report.eligible,
            skipped=report.skipped,
            sent=report.sent,
            failed=report.failed,
            error=report.error,
            failures=list(report.failures),
        )


class NotifierStatus(BaseModel):
    running: bool
    ticks: int
    sent_total: int
    last_tick: TickReportModel | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.notifier = None
    task: asyncio.Task | None = None
    if notifier_enabled():
        loop = NotificationLoop(get_dispatcher())
        app.state.notifier = loop
        task = asyncio.create_task(loop.run())
    try:
        yield
    finally:
        if task is not None:
            app.state.notifier.stop()
            try:
                await asyncio.wait_for(task, timeout=loop.interval + SHUTDOWN_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("Notification loop did not stop in time; cancelled it")


app = FastAPI(title="Sole Calendar Notifications", lifespan=lifespan)


def dispatcher_dependency() -> NotificationDispatcher:
    return get_dispatcher()


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/notifier/status", response_model=NotifierStatus)
async def notifier_status(dispatcher: NotificationDispatcher = Depends(dispatcher_dependency)) -> NotifierStatus:
    loop: NotificationLoop | None = getattr(app.state, "notifier", None)
    last = dispatcher.last_report
    return NotifierStatus(
        running=bool(loop and loop.running),
        ticks=loop.ticks if loop else 0,
        sent_total=len(dispatcher.sent_store),
        last_tick=TickReportModel.from_report(last) if last else None,
    )


@app.post("/notifier/tick", response_model=TickReportModel)
async def notifier_tick(dispatcher: NotificationDispatcher = Depends(dispatcher_dependency)) -> TickReportModel:
    report = await dispatcher.run_tick()
    return TickReportModel.from_report(report)
