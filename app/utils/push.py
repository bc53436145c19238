"""Push notification sending helpers."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.utils.retry import retry_async

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
EXPO_TOKEN_RE = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[.+\]$")


class PushSendError(RuntimeError):
    pass


@dataclass(slots=True)
class PushMessage:
    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


def is_expo_push_token(token: str | None) -> bool:
    return bool(token) and EXPO_TOKEN_RE.match(token) is not None


class PushProvider:
    def __init__(self, *, session: httpx.AsyncClient | None = None) -> None:
        self.provider = os.environ.get("PUSH_PROVIDER", "log")
        self.expo_url = os.environ.get("EXPO_PUSH_URL", EXPO_PUSH_URL)
        self.expo_access_token = os.environ.get("EXPO_ACCESS_TOKEN")
        self._session = session

    async def send(self, message: PushMessage) -> None:
        if self.provider == "expo":
            await self._send_expo(message)
        else:
            logger.info("Push (log) → %s: %s | %s", message.to, message.title, message.body)

    async def _send_expo(self, message: PushMessage) -> None:
        if not is_expo_push_token(message.to):
            raise PushSendError(f"Push token {message.to!r} is not a valid Expo push token")
        payload = {
            "to": message.to,
            "title": message.title,
            "body": message.body,
            "data": message.data,
            "sound": "default",
        }
        headers = {"Accept": "application/json"}
        if self.expo_access_token:
            headers["Authorization"] = f"Bearer {self.expo_access_token}"
        response = await self._post(payload, headers)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PushSendError(f"Expo push API returned {exc.response.status_code}") from exc
        _check_ticket(response.json())

    @retry_async
    async def _post(self, payload: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        if self._session is not None:
            return await self._session.post(self.expo_url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=15.0) as client:
            return await client.post(self.expo_url, json=payload, headers=headers)


def _check_ticket(body: dict[str, Any]) -> None:
    errors = body.get("errors")
    if errors:
        raise PushSendError(f"Expo push request rejected: {errors}")
    ticket = body.get("data")
    if isinstance(ticket, list):
        ticket = ticket[0] if ticket else {}
    if not isinstance(ticket, dict):
        raise PushSendError("Expo push API returned no ticket")
    if ticket.get("status") == "error":
        details = ticket.get("details") or {}
        reason = details.get("error") or "unknown"
        raise PushSendError(f"Expo rejected push: {ticket.get('message', '')} ({reason})")
