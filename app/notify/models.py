"""Calendar notification data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class NotificationCandidate:
    """A user/product pair read from one calendar subscription.

    ``user_id`` or ``product_id`` is ``None`` when the subscription points
    at a record that no longer exists.
    """

    notify_id: str
    user_id: str | None
    product_id: str | None
    push_token: str | None
    publish_date: datetime | None
    user_name: str = ""
    product_name: str = ""

    @property
    def dedup_key(self) -> str:
        return f"{self.user_id}_{self.product_id}"
