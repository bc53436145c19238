from datetime import datetime, timedelta, timezone

from app.logic.eligibility import filter_eligible, has_push_token, is_eligible
from app.notify.models import NotificationCandidate

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def candidate(**overrides):
    fields = {
        "notify_id": "1",
        "user_id": "u1",
        "product_id": "p1",
        "push_token": "ExponentPushToken[abc]",
        "publish_date": NOW - timedelta(days=1),
        "user_name": "Ada",
        "product_name": "Jordan 1",
    }
    fields.update(overrides)
    return NotificationCandidate(**fields)


def test_publish_date_equal_to_now_is_eligible():
    assert is_eligible(candidate(publish_date=NOW), NOW)


def test_publish_date_one_microsecond_ahead_is_not_eligible():
    assert not is_eligible(candidate(publish_date=NOW + timedelta(microseconds=1)), NOW)


def test_missing_or_blank_token_is_not_eligible():
    assert not is_eligible(candidate(push_token=None), NOW)
    assert not is_eligible(candidate(push_token=""), NOW)
    assert not is_eligible(candidate(push_token="   "), NOW)
    assert not has_push_token(candidate(push_token=None))


def test_dangling_references_are_not_eligible():
    assert not is_eligible(candidate(user_id=None), NOW)
    assert not is_eligible(candidate(product_id=None, publish_date=None), NOW)


def test_naive_publish_date_is_read_as_utc():
    naive = (NOW - timedelta(seconds=1)).replace(tzinfo=None)
    assert is_eligible(candidate(publish_date=naive), NOW)
    ahead = (NOW + timedelta(seconds=1)).replace(tzinfo=None)
    assert not is_eligible(candidate(publish_date=ahead), NOW)


def test_filter_eligible_keeps_input_order():
    items = [
        candidate(notify_id="a", product_id="p1"),
        candidate(notify_id="b", push_token=None),
        candidate(notify_id="c", product_id="p2"),
        candidate(notify_id="d", publish_date=NOW + timedelta(hours=1)),
    ]
    assert [c.notify_id for c in filter_eligible(items, NOW)] == ["a", "c"]


def test_dedup_key_joins_user_and_product():
    assert candidate(user_id="u9", product_id="p7").dedup_key == "u9_p7"
