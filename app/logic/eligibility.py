"""Which calendar notifications are due."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from app.notify.models import NotificationCandidate
from app.utils.dates import as_utc


def has_push_token(candidate: NotificationCandidate) -> bool:
    token = candidate.push_token
    return isinstance(token, str) and bool(token.strip())


def is_published(candidate: NotificationCandidate, now: datetime) -> bool:
    publish_date = as_utc(candidate.publish_date)
    if publish_date is None:
        return False
    return publish_date <= as_utc(now)


def is_eligible(candidate: NotificationCandidate, now: datetime) -> bool:
    if candidate.user_id is None or candidate.product_id is None:
        return False
    return has_push_token(candidate) and is_published(candidate, now)


def filter_eligible(candidates: Iterable[NotificationCandidate], now: datetime) -> list[NotificationCandidate]:
    return [c for c in candidates if is_eligible(c, now)]
