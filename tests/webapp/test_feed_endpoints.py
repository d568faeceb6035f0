import asyncio
import importlib.util

import httpx
import pytest

from app_config import AppConfig
from repositories.auth_session_repo import AuthSessionRepository
from helpers import make_user

FASTAPI_AVAILABLE = importlib.util.find_spec("fastapi") is not None
if FASTAPI_AVAILABLE:
    from webapp.api import create_webapp_api
else:
    create_webapp_api = None  # type: ignore[assignment]

pytestmark = pytest.mark.skipif(not FASTAPI_AVAILABLE, reason="fastapi is not installed")


class _ASGITestClient:
    """Sync wrapper around httpx.AsyncClient + ASGITransport."""

    def __init__(self, app, base_url: str = "http://testserver"):
        self._app = app
        self._base_url = base_url

    def _request(self, method: str, url: str, **kwargs):
        async def _run():
            async with httpx.AsyncClient(
                transport=httpx.ASGITransport(app=self._app),
                base_url=self._base_url,
            ) as client:
                return await client.request(method, url, **kwargs)

        return asyncio.run(_run())

    def get(self, url: str, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self._request("POST", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self._request("DELETE", url, **kwargs)


def TestClient(app, base_url: str = "http://testserver"):
    return _ASGITestClient(app, base_url)


def _auth(user_id):
    session = AuthSessionRepository().create_session(user_id)
    return {"Authorization": f"Bearer {session.session_token}"}


@pytest.fixture
def client(database, tmp_path):
    app = create_webapp_api(AppConfig(media_dir=str(tmp_path), enable_scheduler=False), start_background=False)
    return TestClient(app)


def test_feed_requires_authentication(client):
    resp = client.get("/feed")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Authentication required"}

    resp = client.get("/feed", headers={"Authorization": "Bearer not-a-session"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid or expired session"


def test_create_and_list_feed_items(client):
    owner = make_user(display_name="Owner")
    headers = _auth(owner["id"])

    resp = client.post("/feed", json={"type": "daily_song", "content": {"trackName": "Song"}}, headers=headers)
    assert resp.status_code == 201
    feed_item = resp.json()["feedItem"]
    assert feed_item["userId"] == owner["id"]
    assert feed_item["content"] == {"trackName": "Song"}

    resp = client.get("/feed", params={"userId": owner["id"]}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [i["id"] for i in body["feedItems"]] == [feed_item["id"]]
    assert body["feedItems"][0]["stats"] == {"comments": 0, "reactions": 0}
    assert body["pagination"] == {"limit": 50, "offset": 0, "count": 1}


def test_create_feed_item_requires_type_and_content(client):
    user = make_user()
    resp = client.post("/feed", json={"type": "daily_song"}, headers=_auth(user["id"]))
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Type and content are required"}


def test_comment_like_and_delete_flow(client):
    owner = make_user(display_name="Owner")
    friend = make_user(display_name="Friend")
    owner_headers = _auth(owner["id"])
    friend_headers = _auth(friend["id"])
    item_id = client.post(
        "/feed", json={"type": "daily_song", "content": {"trackName": "Song"}}, headers=owner_headers
    ).json()["feedItem"]["id"]

    resp = client.post(f"/feed/{item_id}/comments", json={"content": "  nice track  "}, headers=friend_headers)
    assert resp.status_code == 201
    comment = resp.json()["comment"]
    assert comment["content"] == "nice track"

    resp = client.post(f"/comments/{comment['id']}/like", headers=friend_headers)
    assert resp.json()["liked"] is True
    assert resp.json()["likeCount"] == 1

    comments = client.get(f"/feed/{item_id}/comments", headers=friend_headers).json()["comments"]
    assert comments[0]["isLiked"] is True
    assert client.get(f"/feed/{item_id}/comments", headers=owner_headers).json()["comments"][0]["isLiked"] is False

    resp = client.delete(f"/comments/{comment['id']}", headers=owner_headers)
    assert resp.status_code == 403
    assert resp.json()["success"] is False

    resp = client.delete(f"/comments/{comment['id']}", headers=friend_headers)
    assert resp.status_code == 200
    assert client.get(f"/feed/{item_id}/comments", headers=owner_headers).json()["comments"] == []


def test_reactions_endpoints(client):
    owner = make_user()
    friend = make_user()
    headers = _auth(friend["id"])
    item_id = client.post(
        "/feed", json={"type": "daily_song", "content": {"trackName": "Song"}}, headers=_auth(owner["id"])
    ).json()["feedItem"]["id"]

    assert client.post(f"/feed/{item_id}/reactions", json={"emoji": "🔥"}, headers=headers).status_code == 201
    resp = client.post(f"/feed/{item_id}/reactions", json={"emoji": "🔥"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "You already reacted with this emoji"

    summary = client.get(f"/feed/{item_id}/reactions", headers=headers).json()
    assert summary["totalCount"] == 1
    assert summary["summary"][0]["emoji"] == "🔥"

    assert client.delete(f"/feed/{item_id}/reactions", headers=headers).status_code == 200
    resp = client.delete(f"/feed/{item_id}/reactions", headers=headers)
    assert resp.status_code == 404


def test_missing_feed_item_is_404(client):
    user = make_user()
    resp = client.post("/feed/missing/comments", json={"content": "hello"}, headers=_auth(user["id"]))
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Feed item not found"}
