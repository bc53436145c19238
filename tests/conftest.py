from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Column, DateTime, ForeignKey, Integer, MetaData, Table, Text, create_engine
from sqlalchemy.pool import StaticPool

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("email", Text, unique=True, nullable=False),
    Column("phone", Text, nullable=False, default=""),
    Column("expo_push_token", Text),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False, default=""),
    Column("sku", Text, nullable=False, default=""),
    Column("publish_date", DateTime(timezone=True), nullable=False),
    Column("date_created", DateTime(timezone=True), nullable=False),
)

calendar_notifies = Table(
    "calendar_notifies",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("product_id", Integer, ForeignKey("products.id")),
    Column("date_created", DateTime(timezone=True), nullable=False),
)

sent_notifications = Table(
    "sent_notifications",
    metadata,
    Column("dedup_key", Text, primary_key=True),
    Column("sent_at", DateTime(timezone=True), nullable=False),
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def engine():
    # one shared connection so worker threads see the same in-memory database
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def seeded_engine(engine):
    with engine.begin() as conn:
        conn.execute(users.insert(), [
            {"id": 1, "name": "Ada", "email": "ada@example.com", "phone": "1", "expo_push_token": "ExponentPushToken[ada]"},
            {"id": 2, "name": "Grace", "email": "grace@example.com", "phone": "2", "expo_push_token": None},
            {"id": 3, "name": "Linus", "email": "linus@example.com", "phone": "3", "expo_push_token": "ExponentPushToken[linus]"},
        ])
        conn.execute(products.insert(), [
            {"id": 10, "name": "Jordan 1", "sku": "J1", "publish_date": NOW - timedelta(days=1), "date_created": NOW},
            {"id": 11, "name": "Dunk Low", "sku": "DL", "publish_date": NOW + timedelta(days=3), "date_created": NOW},
        ])
        conn.execute(calendar_notifies.insert(), [
            {"id": 100, "user_id": 1, "product_id": 10, "date_created": NOW - timedelta(hours=5)},
            {"id": 101, "user_id": 1, "product_id": 11, "date_created": NOW - timedelta(hours=4)},
            {"id": 102, "user_id": 2, "product_id": 10, "date_created": NOW - timedelta(hours=3)},
            {"id": 103, "user_id": 3, "product_id": 10, "date_created": NOW - timedelta(hours=2)},
            {"id": 104, "user_id": 3, "product_id": 99, "date_created": NOW - timedelta(hours=1)},
        ])
    return engine
