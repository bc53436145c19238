"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime, timezone

import pendulum

DEFAULT_TZ = "UTC"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_utc() -> pendulum.DateTime:
    return pendulum.now("UTC")


def as_utc(value: datetime | date | str | None) -> datetime | None:
    """Coerce a stored timestamp into an aware UTC datetime.

    Naive values are read as UTC, strings are parsed with pendulum and
    unparseable input yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            parsed = pendulum.parse(value, tz="UTC")
        except ValueError:
            return None
        if not isinstance(parsed, datetime):
            return None
        return parsed.astimezone(timezone.utc)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
