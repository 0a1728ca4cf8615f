"""Tests for the posts router."""

import os
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from ..lib.text import actions
from ..main import app
from ..models import Post


class FakeEs:
    def __init__(self, hits=None, fail_index=False, fail_search=False, count=0):
        self.hits = hits or []
        self.fail_index = fail_index
        self.fail_search = fail_search
        self.count_value = count
        self.calls: list[str] = []

    async def index(self, **kwargs):
        self.calls.append("index")
        if self.fail_index:
            raise ConnectionError("cluster unavailable")
        return {"result": "created"}

    async def search(self, *, index=None, query=None, size=None, sort=None, _source=None, **kwargs):
        self.calls.append("search")
        if self.fail_search:
            raise ConnectionError("cluster unavailable")
        return {"hits": {"hits": self.hits}}

    async def bulk(self, **kwargs):
        self.calls.append("bulk")
        return {"errors": False, "items": []}

    async def update_by_query(self, **kwargs):
        self.calls.append("update_by_query")
        return {"updated": len(kwargs["query"]["ids"]["values"])}

    async def update(self, **kwargs):
        self.calls.append("update")
        return {"result": "updated"}

    async def count(self, **kwargs):
        self.calls.append("count")
        return {"count": self.count_value}


def stored(post_id, text, signature, verb, scope="world", **kwargs):
    post = Post(
        id=post_id,
        raw_content=text,
        normalized_content=text.lower(),
        content_signature=signature,
        action_verb=verb,
        scope=scope,
        created_at=datetime.now(timezone.utc),
        **kwargs,
    )
    return {"_source": post.model_dump(mode="json"), "_score": None}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def fake_app_state(monkeypatch):
    """Fake ES client, no embedding model and a known API key for every test."""
    monkeypatch.setattr(actions, "_load_tagger", lambda: None)
    monkeypatch.setenv("API_KEY", "testkey")
    app.state.es = FakeEs()
    app.state.embedder = None
    yield
    for attr in ("es", "embedder"):
        try:
            delattr(app.state, attr)
        except AttributeError:
            pass


HEADERS = {"X-API-Key": "testkey"}


# ---------------------------------------------------------------------------
# POST /posts
# ---------------------------------------------------------------------------

def test_create_first_post():
    client = TestClient(app, headers=HEADERS)
    resp = client.post("/posts", json={"content": "Played cricket today", "scope": "world"})
    assert resp.status_code == 201
    data = resp.json()
    assert data["match_count"] == 0
    assert data["uniqueness_score"] == 100
    assert data["matches"] == []
    assert data["post"]["is_unique"] is True
    assert data["post"]["content_signature"] == "play:cricket"
    assert "embedding" not in data["post"]
    assert "index" in app.state.es.calls


def test_create_matching_post_bumps_counter():
    app.state.es = FakeEs(hits=[
        stored("first", "played cricket today", "play:cricket", "play", scope="city",
               location={"city": "Austin"})
    ])
    client = TestClient(app, headers=HEADERS)
    resp = client.post(
        "/posts",
        json={
            "content": "played cricket yesterday",
            "scope": "city",
            "location": {"city": "Austin"},
        },
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["match_count"] == 1
    assert data["uniqueness_score"] == 90
    assert data["matches"][0]["post_id"] == "first"
    assert data["matches"][0]["score"] == 1.0
    assert "update_by_query" in app.state.es.calls
    assert "bulk" in app.state.es.calls


@pytest.mark.parametrize(
    "body",
    [
        {"content": "ab"},
        {"content": "   a   "},
        {"content": "x" * 501},
        {"content": "played cricket", "scope": "galaxy"},
        {"content": "played cricket", "scope": "city"},
        {"content": "played cricket", "scope": "state", "location": {"city": "Austin"}},
        {"content": "played chess", "input_type": "day"},
    ],
)
def test_create_post_validation(body):
    client = TestClient(app, headers=HEADERS)
    resp = client.post("/posts", json=body)
    assert resp.status_code == 422
    assert "index" not in app.state.es.calls


def test_create_day_post():
    client = TestClient(app, headers=HEADERS)
    resp = client.post(
        "/posts",
        json={"content": "made coffee, walked the dog and read a book", "input_type": "day"},
    )
    assert resp.status_code == 201
    assert resp.json()["post"]["activities"] == ["made coffee", "walked the dog", "read a book"]


def test_create_post_storage_failure():
    app.state.es = FakeEs(fail_index=True)
    client = TestClient(app, headers=HEADERS)
    resp = client.post("/posts", json={"content": "played cricket"})
    assert resp.status_code == 502
    assert resp.json() == {"detail": "Failed to store post"}


def test_create_post_requires_api_key():
    client = TestClient(app)
    resp = client.post("/posts", json={"content": "played cricket"})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# GET /posts
# ---------------------------------------------------------------------------

def test_list_posts_recomputes_live():
    app.state.es = FakeEs(
        hits=[stored("p1", "played cricket", "play:cricket", "play")],
        count=4,
    )
    client = TestClient(app, headers=HEADERS)
    resp = client.get("/posts")
    assert resp.status_code == 200
    (post,) = resp.json()["posts"]
    assert post["match_count"] == 4
    assert post["uniqueness_score"] == 60
    assert post["is_unique"] is False


def test_list_posts_filter():
    app.state.es = FakeEs(hits=[stored("p1", "played cricket", "play:cricket", "play")], count=4)
    client = TestClient(app, headers=HEADERS)
    assert client.get("/posts", params={"filter": "unique"}).json() == {"posts": []}
    assert len(client.get("/posts", params={"filter": "common"}).json()["posts"]) == 1


@pytest.mark.parametrize(
    "params",
    [{"limit": 0}, {"limit": 101}, {"offset": -1}, {"filter": "rare"}],
)
def test_list_posts_validation(params):
    client = TestClient(app, headers=HEADERS)
    assert client.get("/posts", params=params).status_code == 422


# ---------------------------------------------------------------------------
# GET /posts/{post_id}
# ---------------------------------------------------------------------------

def test_get_post_recomputes_live():
    app.state.es = FakeEs(hits=[stored("p1", "played cricket", "play:cricket", "play")], count=3)
    client = TestClient(app, headers=HEADERS)
    resp = client.get("/posts/p1")
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == "p1"
    assert data["match_count"] == 3
    assert data["uniqueness_score"] == 70
    assert data["is_unique"] is True
    assert "embedding" not in data


def test_get_post_not_found():
    client = TestClient(app, headers=HEADERS)
    resp = client.get("/posts/missing")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Post not found"}


def test_get_post_storage_failure():
    app.state.es = FakeEs(fail_search=True)
    client = TestClient(app, headers=HEADERS)
    resp = client.get("/posts/p1")
    assert resp.status_code == 502
    assert resp.json() == {"detail": "Failed to load post"}


# ---------------------------------------------------------------------------
# POST /actions/compare
# ---------------------------------------------------------------------------

def test_compare_actions_synonyms():
    client = TestClient(app, headers=HEADERS)
    resp = client.post("/actions/compare", json={"text1": "jogged 5k", "text2": "ran 5k"})
    assert resp.status_code == 200
    data = resp.json()
    assert (data["stem1"], data["stem2"]) == ("jog", "run")
    assert data["is_same"] is True
    assert data["reason"] == "Same action: jog"


def test_compare_actions_without_verb():
    client = TestClient(app, headers=HEADERS)
    resp = client.post("/actions/compare", json={"text1": "blue sky", "text2": "ran 5k"})
    assert resp.status_code == 200
    assert resp.json()["reason"] == "No verbs found"
    assert resp.json()["is_same"] is False
