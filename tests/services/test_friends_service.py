import threading

import pytest

from repositories.friends_repo import FriendsRepository
from repositories.users_repo import UsersRepository
from services.friends_service import FriendsService
from utils.errors import BadRequestError, ForbiddenError, NotFoundError
from helpers import RecordingDispatcher, make_user


def _service(dispatcher=None):
    return FriendsService(FriendsRepository(), UsersRepository(), dispatcher)


@pytest.mark.integration
def test_send_request_validation(database):
    alice = make_user()
    service = _service()

    with pytest.raises(BadRequestError, match="Receiver user ID is required"):
        service.send_request(alice["id"], None)
    with pytest.raises(BadRequestError, match="Cannot send friend request to yourself"):
        service.send_request(alice["id"], alice["id"])
    with pytest.raises(NotFoundError, match="User not found"):
        service.send_request(alice["id"], "missing")


@pytest.mark.integration
def test_send_then_accept(database):
    alice = make_user(display_name="Alice")
    bob = make_user(display_name="Bob")
    dispatcher = RecordingDispatcher()
    service = _service(dispatcher)

    sent = service.send_request(alice["id"], bob["id"])
    assert sent["autoAccepted"] is False
    request = sent["friendRequest"]
    assert request["senderId"] == alice["id"]
    assert request["status"] == "pending"
    assert dispatcher.pushes[-1][0] == bob["id"]
    assert dispatcher.pushes[-1][2] == "Alice wants to be your friend"

    with pytest.raises(BadRequestError, match="Friend request already sent"):
        service.send_request(alice["id"], bob["id"])
    with pytest.raises(ForbiddenError, match="You can only accept requests sent to you"):
        service.accept_request(request["id"], alice["id"])

    accepted = service.accept_request(request["id"], bob["id"])
    assert accepted == {"friendship": {"userId": bob["id"], "friendId": alice["id"]}}
    assert dispatcher.pushes[-1][0] == alice["id"]

    with pytest.raises(BadRequestError, match="Friend request already accepted"):
        service.accept_request(request["id"], bob["id"])
    with pytest.raises(BadRequestError, match="Cannot decline an accepted friend request"):
        service.decline_request(request["id"], bob["id"])
    with pytest.raises(BadRequestError, match="Already friends with this user"):
        service.send_request(bob["id"], alice["id"])

    assert service.get_friends(alice["id"])["count"] == 1
    assert service.get_friends(bob["id"])["friends"][0]["id"] == alice["id"]


@pytest.mark.integration
def test_reverse_request_is_auto_accepted_into_one_friendship(database):
    alice = make_user()
    bob = make_user()
    service = _service()
    repo = FriendsRepository()

    service.send_request(alice["id"], bob["id"])
    result = service.send_request(bob["id"], alice["id"])

    assert result["autoAccepted"] is True
    assert result["friendship"] == {"userId": bob["id"], "friendId": alice["id"]}
    assert repo.are_friends(alice["id"], bob["id"]) and repo.are_friends(bob["id"], alice["id"])
    assert [f["id"] for f in repo.list_friends(alice["id"])] == [bob["id"]]
    assert [f["id"] for f in repo.list_friends(bob["id"])] == [alice["id"]]
    for user in (alice, bob):
        counts = service.get_friend_requests(user["id"])["count"]
        assert counts == {"received": 0, "sent": 0, "total": 0}


@pytest.mark.integration
def test_decline_request(database):
    alice = make_user()
    bob = make_user()
    service = _service()
    request_id = service.send_request(alice["id"], bob["id"])["friendRequest"]["id"]

    with pytest.raises(ForbiddenError, match="You can only decline requests sent to you"):
        service.decline_request(request_id, alice["id"])
    service.decline_request(request_id, bob["id"])

    with pytest.raises(BadRequestError, match="Friend request already declined"):
        service.decline_request(request_id, bob["id"])
    with pytest.raises(BadRequestError, match="Cannot accept a declined friend request"):
        service.accept_request(request_id, bob["id"])
    with pytest.raises(NotFoundError, match="Friend request not found"):
        service.accept_request("missing", bob["id"])
    with pytest.raises(BadRequestError, match="Request ID is required"):
        service.accept_request(None, bob["id"])

    # A declined request does not block a new one
    assert service.send_request(alice["id"], bob["id"])["autoAccepted"] is False


@pytest.mark.integration
def test_remove_friend_keeps_accepted_request_blocking_resend(database):
    alice = make_user()
    bob = make_user()
    service = _service()
    request_id = service.send_request(alice["id"], bob["id"])["friendRequest"]["id"]
    service.accept_request(request_id, bob["id"])

    service.remove_friend(alice["id"], bob["id"])
    assert service.get_friends(bob["id"])["count"] == 0
    with pytest.raises(NotFoundError, match="Friendship not found"):
        service.remove_friend(alice["id"], bob["id"])

    with pytest.raises(BadRequestError, match="Friend request already accepted"):
        service.send_request(alice["id"], bob["id"])
    # The other direction has no history and goes through
    assert service.send_request(bob["id"], alice["id"])["autoAccepted"] is False


@pytest.mark.integration
def test_get_friend_requests_by_type(database):
    alice = make_user(display_name="Alice")
    bob = make_user(display_name="Bob")
    carol = make_user(display_name="Carol")
    service = _service()
    service.send_request(alice["id"], bob["id"])
    service.send_request(carol["id"], alice["id"])

    both = service.get_friend_requests(alice["id"])
    assert both["count"] == {"received": 1, "sent": 1, "total": 2}
    assert both["requests"]["received"][0]["sender"]["displayName"] == "Carol"
    assert both["requests"]["sent"][0]["receiver"]["displayName"] == "Bob"

    received = service.get_friend_requests(alice["id"], "received")
    assert received["count"]["sent"] == 0
    assert received["requests"]["sent"] == []

    with pytest.raises(BadRequestError):
        service.get_friend_requests(alice["id"], "everything")


@pytest.mark.integration
def test_crossing_requests_sent_at_once_end_in_one_friendship(database):
    service = _service()
    repo = FriendsRepository()

    for _ in range(5):
        alice = make_user()
        bob = make_user()
        barrier = threading.Barrier(2)
        results, errors = [], []

        def send(sender_id, receiver_id):
            barrier.wait()
            try:
                results.append(service.send_request(sender_id, receiver_id))
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=send, args=(alice["id"], bob["id"])),
            threading.Thread(target=send, args=(bob["id"], alice["id"])),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert sorted(r["autoAccepted"] for r in results) == [False, True]
        assert repo.are_friends(alice["id"], bob["id"]) and repo.are_friends(bob["id"], alice["id"])
        assert repo.list_pending_sent(alice["id"]) == []
        assert repo.list_pending_sent(bob["id"]) == []
