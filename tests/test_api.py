from __future__ import annotations

from datetime import datetime, timezone
from itertools import chain, repeat

import pytest
from flask import Flask
from flask.testing import FlaskClient

from pastebin.api import pastes as pastes_api
from pastebin.db import SessionLocal, dispose_db
from pastebin.domain.lifecycle import MAX_TTL_SECONDS, MAX_VIEWS_LIMIT
from pastebin.services.paste_store import PasteStore


def _create(client: FlaskClient, **body) -> dict:
    response = client.post("/api/pastes", json={"content": "hello", **body})
    assert response.status_code == 201, response.get_json()
    return response.get_json()


# ---------------------------------------------------------------------------
# POST /api/pastes
# ---------------------------------------------------------------------------


def test_create_paste_returns_id_and_share_url(client: FlaskClient) -> None:
    body = _create(client, title="hi", ttl_seconds=60, max_views=2)

    assert len(body["id"]) == 8
    assert body["url"] == f"http://paste.test/{body['id']}"
    assert body["title"] == "hi"
    assert body["max_views"] == 2
    assert body["expires_at"] is not None
    datetime.fromisoformat(body["created_at"].replace("Z", "+00:00"))


def test_share_url_joins_base_without_double_slash(app: Flask, client: FlaskClient) -> None:
    app.config["PUBLIC_BASE_URL"] = "https://paste.example/p/"
    body = _create(client)
    assert body["url"] == f"https://paste.example/p/{body['id']}"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"content": ""},
        {"content": "   "},
        {"content": 42},
        {"content": "x" * 500_001},
        {"content": "ok", "title": "t" * 256},
        {"content": "ok", "ttl_seconds": -5},
        {"content": "ok", "ttl_seconds": 10**12},
        {"content": "ok", "ttl_seconds": MAX_TTL_SECONDS + 1},
        {"content": "ok", "ttl_seconds": "60"},
        {"content": "ok", "ttl_seconds": 1.5},
        {"content": "ok", "max_views": 0},
        {"content": "ok", "max_views": True},
        {"content": "ok", "max_views": 2**31},
    ],
)
def test_create_paste_rejects_invalid_body(client: FlaskClient, payload: dict) -> None:
    response = client.post("/api/pastes", json=payload)

    assert response.status_code == 400
    assert "error" in response.get_json()
    assert client.get("/api/pastes").get_json() == {"pastes": []}


def test_zero_ttl_creates_paste_that_never_expires(client: FlaskClient) -> None:
    body = _create(client, ttl_seconds=0)

    assert body["expires_at"] is None
    assert client.get(f"/api/pastes/{body['id']}").status_code == 200


def test_create_accepts_largest_ttl_and_view_limit(client: FlaskClient) -> None:
    body = _create(client, ttl_seconds=MAX_TTL_SECONDS, max_views=MAX_VIEWS_LIMIT)

    assert body["expires_at"] is not None
    assert body["max_views"] == MAX_VIEWS_LIMIT


def test_create_paste_rejects_non_json_body(client: FlaskClient) -> None:
    response = client.post("/api/pastes", data="content=hello")
    assert response.status_code == 400


def test_oversized_request_body_is_rejected(app: Flask, client: FlaskClient) -> None:
    app.config["MAX_CONTENT_LENGTH"] = 1024
    response = client.post("/api/pastes", json={"content": "x" * 4096})

    assert response.status_code == 413
    assert response.get_json() == {"error": "Request body too large"}


def test_create_retries_on_id_conflict(app: Flask, client: FlaskClient, monkeypatch) -> None:
    ids = iter(["AAAAAAAA", "AAAAAAAA", "BBBBBBBB"])
    monkeypatch.setattr(
        pastes_api,
        "_paste_store",
        lambda: PasteStore(session_factory=SessionLocal, id_factory=lambda: next(ids)),
    )

    assert _create(client)["id"] == "AAAAAAAA"
    assert _create(client)["id"] == "BBBBBBBB"


def test_create_gives_up_after_repeated_conflicts(client: FlaskClient, monkeypatch) -> None:
    ids = chain(["CCCCCCCC"], repeat("CCCCCCCC"))
    monkeypatch.setattr(
        pastes_api,
        "_paste_store",
        lambda: PasteStore(session_factory=SessionLocal, id_factory=lambda: next(ids)),
    )
    _create(client)

    response = client.post("/api/pastes", json={"content": "again"})

    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to create paste"}


# ---------------------------------------------------------------------------
# GET /api/pastes/<id>
# ---------------------------------------------------------------------------


def test_get_paste_returns_content_and_counts_view(client: FlaskClient) -> None:
    created = _create(client, content="view me", max_views=3)

    response = client.get(f"/api/pastes/{created['id']}")

    assert response.status_code == 200
    body = response.get_json()
    assert body["content"] == "view me"
    assert body["remaining_views"] == 2
    assert body["view_count"] == 1
    assert body["expires_at"] is None


def test_get_unlimited_paste_has_no_remaining_views(client: FlaskClient) -> None:
    created = _create(client)

    body = client.get(f"/api/pastes/{created['id']}").get_json()

    assert body["remaining_views"] is None


def test_get_paste_after_last_view_is_not_found(client: FlaskClient) -> None:
    created = _create(client, max_views=1)

    first = client.get(f"/api/pastes/{created['id']}")
    second = client.get(f"/api/pastes/{created['id']}")

    assert first.status_code == 200
    assert first.get_json()["remaining_views"] == 0
    assert second.status_code == 404
    assert second.get_json() == {"error": "Paste not found or has expired"}


def test_get_unknown_paste_is_not_found(client: FlaskClient) -> None:
    response = client.get("/api/pastes/Unknown1")
    assert response.status_code == 404


@pytest.mark.parametrize("paste_id", ["short", "waytoolongid", "bad-id!!"])
def test_get_malformed_id_is_bad_request(client: FlaskClient, paste_id: str) -> None:
    response = client.get(f"/api/pastes/{paste_id}")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid paste ID"}


def test_head_checks_existence_without_counting(client: FlaskClient) -> None:
    created = _create(client, max_views=1)

    assert client.head(f"/api/pastes/{created['id']}").status_code == 200
    assert client.head(f"/api/pastes/{created['id']}").status_code == 200
    assert client.get(f"/api/pastes/{created['id']}").status_code == 200
    assert client.head(f"/api/pastes/{created['id']}").status_code == 404


# ---------------------------------------------------------------------------
# GET /api/pastes
# ---------------------------------------------------------------------------


def test_list_pastes_returns_camel_case_summaries(client: FlaskClient) -> None:
    first = _create(client, content="one", title="first")
    second = _create(client, content="two", max_views=5)

    response = client.get("/api/pastes")

    assert response.status_code == 200
    pastes = response.get_json()["pastes"]
    assert {p["id"] for p in pastes} == {first["id"], second["id"]}
    for entry in pastes:
        assert set(entry) == {"id", "title", "createdAt", "expiresAt", "viewCount", "maxViews"}


def test_list_pastes_sweeps_expired(app: Flask, client: FlaskClient) -> None:
    with app.app_context():
        store = PasteStore(session_factory=SessionLocal)
        stale = store.create(
            content="stale",
            ttl_seconds=1,
            now=datetime(2000, 1, 1, tzinfo=timezone.utc),
        )
    live = _create(client)

    pastes = client.get("/api/pastes").get_json()["pastes"]

    assert [p["id"] for p in pastes] == [live["id"]]
    assert client.get(f"/api/pastes/{stale.id}").status_code == 404


def test_list_pastes_limit(client: FlaskClient) -> None:
    for i in range(3):
        _create(client, content=f"paste {i}")

    assert len(client.get("/api/pastes?limit=2").get_json()["pastes"]) == 2
    assert client.get("/api/pastes?limit=0").status_code == 400


# ---------------------------------------------------------------------------
# DELETE
# ---------------------------------------------------------------------------


def test_delete_paste(client: FlaskClient) -> None:
    created = _create(client)

    response = client.delete(f"/api/pastes/{created['id']}")

    assert response.status_code == 200
    assert response.get_json()["success"] is True
    assert client.get(f"/api/pastes/{created['id']}").status_code == 404
    assert client.delete(f"/api/pastes/{created['id']}").status_code == 404


@pytest.mark.parametrize("paste_id", ["short", "waytoolongid", "bad-id!!"])
def test_delete_malformed_id_is_not_found(client: FlaskClient, paste_id: str) -> None:
    response = client.delete(f"/api/pastes/{paste_id}")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Paste not found"}


def test_delete_all_pastes(client: FlaskClient) -> None:
    for _ in range(2):
        _create(client)

    response = client.delete("/api/pastes")

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["deleted"] == 2
    assert client.get("/api/pastes").get_json() == {"pastes": []}


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


def test_health(client: FlaskClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_unknown_route_is_json_404(client: FlaskClient) -> None:
    response = client.get("/api/nothing/here")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Not found"}


def test_correlation_id_is_echoed(client: FlaskClient) -> None:
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"

    generated = client.get("/health").headers["X-Correlation-ID"]
    assert generated


def test_storage_failure_maps_to_500(tmp_path) -> None:
    from pastebin import create_app

    app = create_app(
        "testing",
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite+pysqlite:///{tmp_path / 'empty.db'}",
            "AUTO_CREATE_SCHEMA": False,
        },
    )
    try:
        response = app.test_client().get("/api/pastes")
    finally:
        dispose_db()

    assert response.status_code == 500
    assert response.get_json() == {"error": "Storage unavailable"}
