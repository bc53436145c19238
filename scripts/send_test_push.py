"""Send a test calendar push notification."""

from __future__ import annotations

import asyncio
import os

from dotenv import load_dotenv

from app.logic.dispatch import build_message
from app.notify.models import NotificationCandidate
from app.utils.dates import now_utc
from app.utils.push import PushProvider


async def main() -> None:
    load_dotenv()
    token = os.environ.get("TEST_PUSH_TOKEN")
    if not token:
        raise SystemExit("TEST_PUSH_TOKEN env var required")
    candidate = NotificationCandidate(
        notify_id="test",
        user_id="test-user",
        product_id="test-product",
        push_token=token,
        publish_date=now_utc(),
        user_name="Test user",
        product_name=os.environ.get("TEST_PRODUCT_NAME", "Test sneaker"),
    )
    provider = PushProvider()
    await provider.send(build_message(candidate))
    print("Sent test push to", token)


if __name__ == "__main__":
    asyncio.run(main())
