from types import SimpleNamespace

import pytest
from pywebpush import WebPushException

from services import push_service
from services.push_service import PushDeliveryError, PushService


class _FakeSubscriptionsRepo:
    def __init__(self, endpoints):
        self.subs = [{"endpoint": e, "p256dh": "key", "auth": "auth"} for e in endpoints]
        self.deleted = []

    def list_for_user(self, user_id):
        return list(self.subs)

    def delete_endpoint(self, endpoint):
        self.deleted.append(endpoint)


def _push_error(status):
    return WebPushException("push failed", response=SimpleNamespace(status_code=status))


@pytest.mark.unit
def test_disabled_without_vapid_key():
    service = PushService(_FakeSubscriptionsRepo(["https://push/1"]), None, "mailto:a@b.c")
    assert service.enabled is False
    assert service.send_to_user("u1", {"title": "t"}) == 0


@pytest.mark.unit
def test_sends_to_every_subscription_and_drops_gone_ones(monkeypatch):
    calls = []

    def fake_webpush(subscription_info, data, vapid_private_key, vapid_claims):
        calls.append(subscription_info["endpoint"])
        if subscription_info["endpoint"] == "https://push/gone":
            raise _push_error(410)

    monkeypatch.setattr(push_service, "webpush", fake_webpush)
    repo = _FakeSubscriptionsRepo(["https://push/1", "https://push/gone", "https://push/2"])
    service = PushService(repo, "private-key", "mailto:a@b.c")

    assert service.send_to_user("u1", {"title": "Hello"}) == 2
    assert calls == ["https://push/1", "https://push/gone", "https://push/2"]
    assert repo.deleted == ["https://push/gone"]


@pytest.mark.unit
def test_raises_when_nothing_could_be_delivered(monkeypatch):
    def fake_webpush(**kwargs):
        raise _push_error(500)

    monkeypatch.setattr(push_service, "webpush", fake_webpush)
    service = PushService(_FakeSubscriptionsRepo(["https://push/1"]), "private-key", "mailto:a@b.c")

    with pytest.raises(PushDeliveryError):
        service.send_to_user("u1", {"title": "Hello"})
