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

    def patch(self, url: str, **kwargs):
        return self._request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self._request("DELETE", url, **kwargs)


def TestClient(app, base_url: str = "http://testserver"):
    return _ASGITestClient(app, base_url)


def _auth(user_id):
    session = AuthSessionRepository().create_session(user_id)
    return {"Authorization": f"Bearer {session.session_token}"}


@pytest.fixture
def client(database, tmp_path):
    config = AppConfig(
        spotify_client_id="client-id",
        media_dir=str(tmp_path),
        public_base_url="http://api.test",
        enable_scheduler=False,
    )
    return TestClient(create_webapp_api(config, start_background=False))


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "service": "peekify-api", "database": "ok"}


def test_login_returns_spotify_authorize_url(client):
    body = client.get("/auth/login").json()
    assert body["success"] is True
    assert body["authUrl"].startswith("https://accounts.spotify.com/authorize?")
    assert "client_id=client-id" in body["authUrl"]


def test_callback_without_code_is_rejected(client):
    resp = client.post("/auth/callback", json={})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_me_and_logout(client):
    user = make_user(display_name="Ana")
    headers = _auth(user["id"])

    resp = client.get("/auth/me", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["authenticated"] is True
    assert resp.json()["user"]["displayName"] == "Ana"

    resp = client.post("/auth/logout", headers=headers)
    assert resp.json() == {"success": True, "message": "Logged out"}
    assert client.get("/auth/me", headers=headers).status_code == 401

    # Logging out without a session still succeeds
    assert client.post("/auth/logout").status_code == 200


def test_profile_update_and_public_view(client):
    user = make_user(display_name="Ana")
    other = make_user(display_name="Ben")
    headers = _auth(user["id"])

    resp = client.patch("/users/me", json={"username": "ana_music", "bio": "vinyl"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["user"]["username"] == "ana_music"

    resp = client.patch("/users/me", json={"notificationTime": "25:00"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Notification time must be in HH:MM format"}

    public = client.get(f"/users/{user['id']}", headers=_auth(other["id"])).json()["user"]
    assert public["bio"] == "vinyl"
    assert "email" not in public

    found = client.get("/users/search", params={"q": "ana_"}, headers=_auth(other["id"])).json()
    assert found["count"] == 1

    resp = client.get("/users/search", params={"q": "a"}, headers=headers)
    assert resp.status_code == 400


def test_avatar_upload(client):
    user = make_user()
    headers = _auth(user["id"])

    resp = client.post("/users/me/avatar", files={"avatar": ("me.png", b"\x89PNG", "image/png")}, headers=headers)
    assert resp.status_code == 200
    url = resp.json()["profilePicture"]
    assert url.startswith("http://api.test/media/avatars/")

    served = client.get(url.replace("http://api.test", ""))
    assert served.status_code == 200
    assert served.content == b"\x89PNG"

    resp = client.post("/users/me/avatar", files={"avatar": ("a.txt", b"hello", "text/plain")}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Only image files are allowed"


def test_friend_request_flow(client):
    ana = make_user(display_name="Ana")
    ben = make_user(display_name="Ben")
    ana_headers = _auth(ana["id"])
    ben_headers = _auth(ben["id"])

    resp = client.post("/friends/request", json={"userId": ben["id"]}, headers=ana_headers)
    assert resp.status_code == 200
    request_id = resp.json()["friendRequest"]["id"]

    received = client.get("/friends/requests", params={"type": "received"}, headers=ben_headers).json()
    assert [r["id"] for r in received["requests"]["received"]] == [request_id]

    resp = client.post("/friends/accept", json={"requestId": request_id}, headers=ana_headers)
    assert resp.status_code == 403

    assert client.post("/friends/accept", json={"requestId": request_id}, headers=ben_headers).status_code == 200
    assert client.get("/friends", headers=ana_headers).json()["count"] == 1

    assert client.delete(f"/friends/{ben['id']}", headers=ana_headers).status_code == 200
    assert client.get("/friends", headers=ben_headers).json()["count"] == 0


def test_push_subscription_endpoints(client):
    user = make_user()
    headers = _auth(user["id"])
    subscription = {"endpoint": "https://push.example/abc", "keys": {"p256dh": "key", "auth": "secret"}}

    assert client.get("/notifications/vapid-public-key").json()["publicKey"] is None
    assert client.post("/notifications/subscribe", json=subscription, headers=headers).status_code == 201

    resp = client.post("/notifications/unsubscribe", json={"endpoint": subscription["endpoint"]}, headers=headers)
    assert resp.json()["removed"] == 1
