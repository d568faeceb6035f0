import pytest

from repositories.push_subscriptions_repo import PushSubscriptionsRepository
from helpers import make_user


@pytest.mark.repo
def test_upsert_moves_endpoint_to_latest_user(database):
    alice = make_user()
    bob = make_user()
    repo = PushSubscriptionsRepository()

    repo.upsert_subscription(alice["id"], "https://push/1", "key-a", "auth-a")
    repo.upsert_subscription(bob["id"], "https://push/1", "key-b", "auth-b")

    assert repo.list_for_user(alice["id"]) == []
    assert repo.list_for_user(bob["id"]) == [{"endpoint": "https://push/1", "p256dh": "key-b", "auth": "auth-b"}]


@pytest.mark.repo
def test_delete_one_or_all_subscriptions(database):
    user = make_user()
    repo = PushSubscriptionsRepository()
    repo.upsert_subscription(user["id"], "https://push/1", "k", "a")
    repo.upsert_subscription(user["id"], "https://push/2", "k", "a")
    repo.upsert_subscription(user["id"], "https://push/3", "k", "a")

    assert repo.delete_subscription(user["id"], "https://push/1") == 1
    repo.delete_endpoint("https://push/2")
    assert [s["endpoint"] for s in repo.list_for_user(user["id"])] == ["https://push/3"]
    assert repo.delete_subscription(user["id"]) == 1
    assert repo.list_for_user(user["id"]) == []
