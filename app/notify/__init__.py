"""Calendar notification data access."""

from __future__ import annotations

from app.notify.models import NotificationCandidate
from app.notify.source import CalendarNotifySource, NotificationSource

__all__ = ["CalendarNotifySource", "NotificationCandidate", "NotificationSource"]
