"""Calendar notification dispatch.

One tick scans every calendar subscription, keeps the ones whose product is
published and whose user has a push token, drops pairs that were already
notified and sends the rest concurrently. A failed send leaves its pair
unmarked so the next tick tries it again.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Protocol

from app.logic.dedup import InMemorySentStore, SentStore
from app.logic.eligibility import filter_eligible
from app.notify.models import NotificationCandidate
from app.notify.source import NotificationSource
from app.utils.dates import now_utc
from app.utils.push import PushMessage

logger = logging.getLogger(__name__)

SEND_TIMEOUT = float(os.environ.get("NOTIFY_SEND_TIMEOUT", 30.0))
MAX_CONCURRENCY = int(os.environ.get("NOTIFY_MAX_CONCURRENCY", 0))

NOTIFICATION_TITLE = "Sole Calendar Notification"


class PushSender(Protocol):
    async def send(self, message: PushMessage) -> Any:
        ...


@dataclass(slots=True)
class TickReport:
    started_at: datetime
    scanned: int = 0
    eligible: int = 0
    skipped: int = 0
    sent: int = 0
    failed: int = 0
    error: str | None = None
    failures: list[str] = field(default_factory=list)


def build_message(candidate: NotificationCandidate) -> PushMessage:
    return PushMessage(
        to=candidate.push_token or "",
        title=NOTIFICATION_TITLE,
        body=f"{candidate.product_name} is now available!",
        data={"productId": candidate.product_id},
    )


class NotificationDispatcher:
    def __init__(
        self,
        source: NotificationSource,
        sender: PushSender,
        *,
        sent_store: SentStore | None = None,
        clock: Callable[[], datetime] = now_utc,
        send_timeout: float | None = SEND_TIMEOUT,
        max_concurrency: int = MAX_CONCURRENCY,
    ) -> None:
        self.source = source
        self.sender = sender
        self.sent_store = sent_store if sent_store is not None else InMemorySentStore()
        self.clock = clock
        self.send_timeout = send_timeout
        self.max_concurrency = max_concurrency
        self.last_report: TickReport | None = None
        self._claim_lock = Lock()
        self._in_flight: set[str] = set()

    async def run_tick(self) -> TickReport:
        now = self.clock()
        report = TickReport(started_at=now)
        try:
            await self._run_tick(report, now)
        finally:
            self.last_report = report
        return report

    async def _run_tick(self, report: TickReport, now: datetime) -> None:
        try:
            candidates = await self.source.list_pending_notifications()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Error loading calendar notifications")
            report.error = f"{type(exc).__name__}: {exc}"
            return

        report.scanned = len(candidates)
        eligible = filter_eligible(candidates, now)
        report.eligible = len(eligible)
        if not eligible:
            logger.info("No notifications to send")
            return

        claimed: list[str] = []
        try:
            pending: dict[str, NotificationCandidate] = {}
            for candidate in eligible:
                key = candidate.dedup_key
                # another tick, or an earlier row of this scan, holds the pair
                if not self._claim(key):
                    report.skipped += 1
                    continue
                claimed.append(key)
                try:
                    should_send = await asyncio.to_thread(self.sent_store.should_send, key)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.exception("Error reading sent notifications")
                    report.error = f"{type(exc).__name__}: {exc}"
                    return
                if not should_send:
                    report.skipped += 1
                    continue
                pending[key] = candidate

            semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None
            results = await asyncio.gather(*(self._dispatch(c, semaphore) for c in pending.values()))
        finally:
            self._release(claimed)

        for candidate, ok in zip(pending.values(), results):
            if ok:
                report.sent += 1
            else:
                report.failed += 1
                report.failures.append(candidate.dedup_key)
        logger.debug(
            "Tick done: scanned=%d eligible=%d skipped=%d sent=%d failed=%d",
            report.scanned,
            report.eligible,
            report.skipped,
            report.sent,
            report.failed,
        )

    def _claim(self, key: str) -> bool:
        with self._claim_lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def _release(self, keys: list[str]) -> None:
        with self._claim_lock:
            self._in_flight.difference_update(keys)

    async def _dispatch(self, candidate: NotificationCandidate, semaphore: asyncio.Semaphore | None) -> bool:
        if semaphore is None:
            return await self._send_one(candidate)
        async with semaphore:
            return await self._send_one(candidate)

    async def _send_one(self, candidate: NotificationCandidate) -> bool:
        message = build_message(candidate)
        try:
            if self.send_timeout:
                await asyncio.wait_for(self.sender.send(message), timeout=self.send_timeout)
            else:
                await self.sender.send(message)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.error(
                "Timed out sending push notification for user %s and product %s",
                candidate.user_name,
                candidate.product_name,
            )
            return False
        except Exception as exc:
            logger.error(
                "Error sending push notification for user %s and product %s: %s",
                candidate.user_name,
                candidate.product_name,
                exc,
            )
            return False
        try:
            await asyncio.to_thread(self.sent_store.mark_sent, candidate.dedup_key)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Sent push for %s but could not record it", candidate.dedup_key)
            return False
        logger.info(
            "Push notification sent for user %s and product %s",
            candidate.user_name,
            candidate.product_name,
        )
        return True
