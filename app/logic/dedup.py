"""Sent-notification bookkeeping.

A key is ``"{user_id}_{product_id}"``; once marked, the pair is never sent
again for the lifetime of the store. :class:`InMemorySentStore` lives and
dies with the process, :class:`SqlSentStore` survives restarts and is
shared by every worker pointed at the same database.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from threading import RLock
from typing import Protocol

from sqlalchemy import DateTime
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import bindparam, text

from app.utils.dates import now_utc

logger = logging.getLogger(__name__)

DEDUP_BACKEND = os.environ.get("NOTIFY_DEDUP_BACKEND", "memory")

INSERT_SENT = text(
    "INSERT INTO sent_notifications (dedup_key, sent_at) VALUES (:key, :sent_at)"
).bindparams(bindparam("sent_at", type_=DateTime(timezone=True)))


class SentStore(Protocol):
    def should_send(self, key: str) -> bool:
        ...

    def mark_sent(self, key: str) -> None:
        ...

    def __contains__(self, key: object) -> bool:
        ...

    def __len__(self) -> int:
        ...


class InMemorySentStore:
    def __init__(self) -> None:
        self._lock = RLock()
        self._sent: dict[str, datetime] = {}

    def should_send(self, key: str) -> bool:
        with self._lock:
            return key not in self._sent

    def mark_sent(self, key: str) -> None:
        with self._lock:
            self._sent.setdefault(key, now_utc())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._sent

    def __len__(self) -> int:
        with self._lock:
            return len(self._sent)


class SqlSentStore:
    """Sent markers persisted in the ``sent_notifications`` table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def should_send(self, key: str) -> bool:
        return key not in self

    def mark_sent(self, key: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(INSERT_SENT, {"key": key, "sent_at": now_utc()})
        except IntegrityError:
            logger.debug("Notification %s already marked as sent", key)

    def __contains__(self, key: object) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT 1 FROM sent_notifications WHERE dedup_key = :key"),
                {"key": key},
            ).first()
        return row is not None

    def __len__(self) -> int:
        with self.engine.connect() as conn:
            return int(conn.execute(text("SELECT COUNT(*) FROM sent_notifications")).scalar_one())


def build_sent_store(engine: Engine | None = None, backend: str | None = None) -> SentStore:
    backend = (backend or DEDUP_BACKEND).lower()
    if backend == "sql":
        if engine is None:
            raise ValueError("The sql dedup backend needs a database engine")
        return SqlSentStore(engine)
    if backend != "memory":
        raise ValueError(f"Unknown dedup backend: {backend}")
    return InMemorySentStore()
