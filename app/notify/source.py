"""Read side of the calendar notification subscriptions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy import DateTime
from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

from app.notify.models import NotificationCandidate
from app.utils.dates import as_utc

logger = logging.getLogger(__name__)

PENDING_QUERY = text(
    """
    SELECT cn.id AS notify_id,
           u.id AS user_id,
           u.name AS user_name,
           u.expo_push_token AS push_token,
           p.id AS product_id,
           p.name AS product_name,
           p.publish_date AS publish_date
    FROM calendar_notifies cn
    LEFT JOIN users u ON u.id = cn.user_id
    LEFT JOIN products p ON p.id = cn.product_id
    ORDER BY cn.date_created DESC, cn.id DESC
    """
).columns(publish_date=DateTime(timezone=True))


class NotificationSource(Protocol):
    async def list_pending_notifications(self) -> Sequence[NotificationCandidate]:
        ...


class CalendarNotifySource:
    """Full scan of ``calendar_notifies`` joined with users and products."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    async def list_pending_notifications(self) -> list[NotificationCandidate]:
        return await asyncio.to_thread(self._load)

    def _load(self) -> list[NotificationCandidate]:
        with self.engine.connect() as conn:
            rows = conn.execute(PENDING_QUERY).mappings().all()
        candidates = [_to_candidate(row) for row in rows]
        logger.debug("Loaded %d calendar notifications", len(candidates))
        return candidates


def _to_candidate(row: Mapping[str, Any]) -> NotificationCandidate:
    return NotificationCandidate(
        notify_id=str(row["notify_id"]),
        user_id=_opt_str(row["user_id"]),
        product_id=_opt_str(row["product_id"]),
        push_token=row["push_token"],
        publish_date=as_utc(row["publish_date"]),
        user_name=row["user_name"] or "",
        product_name=row["product_name"] or "",
    )


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
