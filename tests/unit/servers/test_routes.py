"""Route tests for the Starlette app (no network; fake requests session)."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlsplit

import pytest
from starlette.testclient import TestClient

from _fakes import FakeSession, fake_response
from jcard_auth.oauth.models import OAuthConfig, TokenGrant
from jcard_auth.oauth.store import MemoryTokenStore
from jcard_auth.servers.app import create_app


class Counter:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


@pytest.fixture()
def changes() -> Counter:
    return Counter()


@pytest.fixture()
def client(
    config: OAuthConfig, store: MemoryTokenStore, session: FakeSession, changes: Counter
) -> TestClient:
    app = create_app(config, store, http_session=session, on_session_change=changes)  # type: ignore[arg-type]
    return TestClient(app)


# --------------------------------------------------------------------------- #
# /auth/login                                                                 #
# --------------------------------------------------------------------------- #
def test_login_redirects_to_authorize_url(client: TestClient, store: MemoryTokenStore) -> None:
    resp = client.get("/auth/login", follow_redirects=False)
    assert resp.status_code == 303
    location = resp.headers["location"]
    assert location.startswith("https://auth.example.test/authorize?response_type=code")
    assert store.take_pending_verifier() is not None
    assert resp.headers["X-Correlation-ID"]


def test_login_json_format(client: TestClient) -> None:
    resp = client.get("/auth/login?format=json")
    assert resp.status_code == 200
    params = dict(parse_qsl(urlsplit(resp.json()["authorize_url"]).query))
    assert params["client_id"] == "abc"
    assert params["code_challenge_method"] == "S256"


def test_login_accept_json(client: TestClient) -> None:
    resp = client.get("/auth/login", headers={"Accept": "application/json"})
    assert "authorize_url" in resp.json()


# --------------------------------------------------------------------------- #
# landing / callback                                                          #
# --------------------------------------------------------------------------- #
def test_landing_without_code_shows_login_link(client: TestClient, session: FakeSession) -> None:
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Not logged in" in resp.text
    assert session.posts == []


def test_callback_exchanges_and_strips_code(
    client: TestClient,
    store: MemoryTokenStore,
    session: FakeSession,
    changes: Counter,
) -> None:
    client.get("/auth/login", follow_redirects=False)
    session.queue(fake_response(200, {"access_token": "A", "expires_in": 3600}))

    resp = client.get("/?code=xyz&keep=1", follow_redirects=False)

    assert resp.status_code == 303
    assert resp.headers["location"] == "http://testserver/?keep=1"
    assert session.posts[0]["data"]["code"] == "xyz"
    cred = store.read()
    assert cred is not None and cred.access_token == "A"
    assert changes.calls == 1

    page = client.get("/")
    assert "Logged in" in page.text


def test_callback_replay_fails_without_touching_session(
    client: TestClient, store: MemoryTokenStore, session: FakeSession
) -> None:
    client.get("/auth/login", follow_redirects=False)
    session.queue(fake_response(200, {"access_token": "A", "expires_in": 3600}))
    client.get("/?code=xyz", follow_redirects=False)

    resp = client.get("/?code=xyz", follow_redirects=False)

    assert resp.status_code == 400
    assert "Login failed" in resp.text
    assert len(session.posts) == 1  # verifier already consumed, no second POST
    cred = store.read()
    assert cred is not None and cred.access_token == "A"


def test_callback_token_error(client: TestClient, session: FakeSession) -> None:
    client.get("/auth/login", follow_redirects=False)
    session.queue(fake_response(400, {"error": "invalid_grant"}))
    resp = client.get("/?code=bad")
    assert resp.status_code == 400
    assert "Login failed" in resp.text


# --------------------------------------------------------------------------- #
# status / logout                                                             #
# --------------------------------------------------------------------------- #
def test_status_and_logout(
    client: TestClient, store: MemoryTokenStore, changes: Counter
) -> None:
    store.save(TokenGrant(access_token="A", expires_in=60))
    assert client.get("/auth/status").json()["authenticated"] is True

    resp = client.post("/auth/logout")
    assert resp.status_code == 204
    assert store.read() is None
    assert changes.calls == 1
    assert client.get("/auth/status").json() == {
        "authenticated": False,
        "expired": True,
        "expires_at": None,
    }

    # idempotent
    assert client.post("/auth/logout").status_code == 204


def test_logout_from_browser_redirects_home(client: TestClient) -> None:
    resp = client.post("/auth/logout", headers={"Accept": "text/html"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"


# --------------------------------------------------------------------------- #
# /api                                                                        #
# --------------------------------------------------------------------------- #
def test_playlists_require_login(client: TestClient) -> None:
    resp = client.get("/api/playlists")
    assert resp.status_code == 401
    assert resp.json()["error"] == "no_access_token"


def test_playlists_sorted(
    client: TestClient, store: MemoryTokenStore, session: FakeSession
) -> None:
    store.save(TokenGrant(access_token="A"))
    session.queue(
        fake_response(200, {"items": [{"id": "2", "name": "b"}, {"id": "1", "name": "a"}]})
    )
    resp = client.get("/api/playlists")
    assert resp.json() == {"items": [{"id": "1", "name": "a"}, {"id": "2", "name": "b"}]}


def test_playlist_sides(client: TestClient, store: MemoryTokenStore, session: FakeSession) -> None:
    store.save(TokenGrant(access_token="A"))
    session.queue(
        fake_response(
            200,
            {
                "tracks": {
                    "total": 3,
                    "items": [{"track": {"name": n}} for n in ("one", "two", "three")],
                },
                "images": [{"url": "https://img.test/c.jpg"}],
            },
        )
    )
    resp = client.get("/api/playlists/pl1/sides")
    assert resp.json() == {
        "side_a": "one",
        "side_b": "two\nthree",
        "cover_url": "https://img.test/c.jpg",
    }


def test_upstream_401_maps_to_502(
    client: TestClient, store: MemoryTokenStore, session: FakeSession
) -> None:
    store.save(TokenGrant(access_token="A"))
    session.queue(fake_response(401, {"error": {"status": 401}}))
    resp = client.get("/api/playlists")
    assert resp.status_code == 502
    assert resp.json() == {"error": "upstream_error", "status_code": 401}


# --------------------------------------------------------------------------- #
# blocking store access                                                       #
# --------------------------------------------------------------------------- #
def test_store_access_runs_in_threadpool(client: TestClient, monkeypatch) -> None:
    import jcard_auth.servers.app as app_mod

    real = app_mod.run_in_threadpool
    offloaded: list[str] = []

    async def recording(func, *args, **kwargs):
        offloaded.append(getattr(func, "__name__", repr(func)))
        return await real(func, *args, **kwargs)

    monkeypatch.setattr(app_mod, "run_in_threadpool", recording)

    client.get("/auth/login", follow_redirects=False)
    client.get("/auth/status")
    client.post("/auth/logout")
    client.get("/")

    assert "build_authorization_url" in offloaded
    assert "status" in offloaded
    assert "clear" in offloaded
    assert "is_authenticated" in offloaded
