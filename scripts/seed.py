"""Seed database with demo users, products and calendar subscriptions."""

from __future__ import annotations

import os
from datetime import timedelta

from dotenv import load_dotenv
from sqlalchemy import DateTime
from sqlalchemy.sql import bindparam, text

from app.db.session import create_engine_from_env
from app.utils.dates import now_utc


DEMO_USERS = [
    {"name": "Ada", "email": "ada@example.com", "phone": "555-0100", "expo_push_token": os.environ.get("TEST_PUSH_TOKEN")},
    {"name": "Grace", "email": "grace@example.com", "phone": "555-0101", "expo_push_token": None},
]

DEMO_PRODUCTS = [
    {"name": "Air Jordan 1 Retro High OG", "sku": "DZ5485-612", "days_from_now": -1},
    {"name": "Yeezy Boost 350 V2", "sku": "HQ6316", "days_from_now": 7},
]

INSERT_PRODUCT = text(
    """
    INSERT INTO products (name, sku, publish_date)
    VALUES (:name, :sku, :publish_date)
    RETURNING id
    """
).bindparams(bindparam("publish_date", type_=DateTime(timezone=True)))


def main() -> None:
    load_dotenv()
    engine = create_engine_from_env()
    now = now_utc()
    with engine.begin() as conn:
        user_ids = []
        for user in DEMO_USERS:
            result = conn.execute(
                text(
                    """
                    INSERT INTO users (name, email, phone, expo_push_token)
                    VALUES (:name, :email, :phone, :expo_push_token)
                    ON CONFLICT (email) DO UPDATE SET expo_push_token = EXCLUDED.expo_push_token
                    RETURNING id
                    """
                ),
                user,
            )
            user_ids.append(result.scalar_one())
        product_ids = []
        for product in DEMO_PRODUCTS:
            result = conn.execute(
                INSERT_PRODUCT,
                {
                    "name": product["name"],
                    "sku": product["sku"],
                    "publish_date": now + timedelta(days=product["days_from_now"]),
                },
            )
            product_ids.append(result.scalar_one())
        for user_id in user_ids:
            for product_id in product_ids:
                conn.execute(
                    text("INSERT INTO calendar_notifies (user_id, product_id) VALUES (:user_id, :product_id)"),
                    {"user_id": user_id, "product_id": product_id},
                )
    print("Seed complete")


if __name__ == "__main__":
    main()
