"""
HTTP surface: auth boundary, error mapping and the main user flows.
"""
import pytest
from fastapi.testclient import TestClient

from ubconnect import auth as auth_module
from ubconnect.config import settings
from ubconnect.dependencies import get_store
from ubconnect.errors import PERMISSION_DENIED_MESSAGE, UNAUTHENTICATED_MESSAGE, StoreError, StoreErrorCode
from ubconnect.main import app
from ubconnect.middleware.rate_limit import limiter
from ubconnect.store.memory import MemoryDocumentStore


def as_user(uid):
    return {"X-User-ID": uid}


@pytest.fixture
def api_store():
    return MemoryDocumentStore()


@pytest.fixture
def client(api_store):
    limiter.enabled = False
    app.dependency_overrides[get_store] = lambda: api_store
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True


def befriend(client, a, b):
    assert client.post("/friends/requests", json={"to_uid": b}, headers=as_user(a)).status_code == 201
    assert client.post(f"/friends/requests/{a}/accept", headers=as_user(b)).status_code == 200


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["store"] == "memory"


def test_request_id_header_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_missing_credentials_rejected(client):
    response = client.get("/users/me")
    assert response.status_code == 401
    assert response.json()["detail"] == UNAUTHENTICATED_MESSAGE


def test_header_auth_only_when_enabled(client, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_HEADER_AUTH", False)
    assert client.get("/users/me", headers=as_user("u1")).status_code == 401


def test_unverified_email_forbidden(client, monkeypatch):
    monkeypatch.setattr(auth_module.auth, "verify_id_token",
                        lambda token: {"uid": "u1", "email": "u1@student.ubc.ca", "email_verified": False})
    response = client.get("/users/me", headers={"Authorization": "Bearer token"})
    assert response.status_code == 403
    assert response.json()["detail"] == PERMISSION_DENIED_MESSAGE


def test_verified_token_creates_profile_from_token_name(client, monkeypatch):
    monkeypatch.setattr(auth_module.auth, "verify_id_token",
                        lambda token: {"uid": "u1", "name": "Jordan Park", "email_verified": True})
    response = client.get("/users/me", headers={"Authorization": "Bearer token"})
    assert response.status_code == 200
    assert response.json()["display_name"] == "Jordan Park"


def test_invalid_token_rejected(client, monkeypatch):
    def reject(token):
        raise ValueError("token expired")

    monkeypatch.setattr(auth_module.auth, "verify_id_token", reject)
    response = client.get("/users/me", headers={"Authorization": "Bearer token"})
    assert response.status_code == 401
    assert "token expired" in response.json()["detail"]


def test_profile_update_and_lookup(client):
    response = client.patch("/users/me", json={"display_name": "Priya", "interests": ["music"]}, headers=as_user("u1"))
    assert response.status_code == 200
    assert response.json()["display_name_lower"] == "priya"

    assert client.get("/users/u1", headers=as_user("u2")).json()["interests"] == ["music"]
    assert client.get("/users/ghost", headers=as_user("u2")).status_code == 404
    assert [p["uid"] for p in client.get("/users/search?q=pri", headers=as_user("u2")).json()] == ["u1"]
    assert client.get("/users/search?q=pri", headers=as_user("u1")).json() == []


def test_invalid_profile_update(client):
    response = client.patch("/users/me", json={"display_name": "n" * 51}, headers=as_user("u1"))
    assert response.status_code == 422
    assert response.json()["errors"] == ["displayName must be 50 characters or less"]


def test_friend_request_flow(client):
    sent = client.post("/friends/requests", json={"to_uid": "u2"}, headers=as_user("u1"))
    assert sent.status_code == 201
    assert sent.json()["status"] == "pending"

    incoming = client.get("/friends/requests/incoming", headers=as_user("u2")).json()
    assert [r["from_uid"] for r in incoming["requests"]] == ["u1"]

    accepted = client.post("/friends/requests/u1/accept", headers=as_user("u2"))
    assert accepted.json()["status"] == "accepted"

    listing = client.get("/friends", headers=as_user("u1")).json()
    assert listing["total_count"] == 1
    assert listing["friends"][0]["friend_uid"] == "u2"
    assert client.get("/friends/status/u1", headers=as_user("u2")).json()["status"] == "friends"

    assert client.delete("/friends/u1", headers=as_user("u2")).status_code == 200
    assert client.get("/friends/status/u2", headers=as_user("u1")).json()["status"] == "none"


def test_friend_request_conflicts(client):
    assert client.post("/friends/requests", json={"to_uid": "u1"}, headers=as_user("u1")).status_code == 400
    client.post("/friends/requests", json={"to_uid": "u2"}, headers=as_user("u1"))

    duplicate = client.post("/friends/requests", json={"to_uid": "u1"}, headers=as_user("u2"))
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "request already exists"

    # Only the recipient may accept
    assert client.post("/friends/requests/u2/accept", headers=as_user("u1")).status_code == 409


def test_event_validation_errors_listed(client):
    response = client.post("/events", json={"title": "", "description": "d", "capacity": -1}, headers=as_user("u1"))
    assert response.status_code == 422
    assert response.json()["errors"] == ["title is required", "capacity must be a positive number"]


def test_event_create_feed_and_friend_notification(client):
    befriend(client, "u1", "u2")
    created = client.post("/events", json={"title": "Pizza night", "description": "Free slices"}, headers=as_user("u1"))
    assert created.status_code == 201
    event_id = created.json()["id"]

    feed = client.get("/events/feed", headers=as_user("u3")).json()
    assert [event["id"] for event in feed["events"]] == [event_id]

    page = client.get("/notifications", headers=as_user("u2")).json()
    assert [(n["type"], n["event_id"]) for n in page["notifications"] if n["type"] == "event_live"] == [("event_live", event_id)]
    assert page["unread_count"] >= 1


def test_friends_only_event_hidden_from_strangers(client):
    befriend(client, "u1", "u2")
    created = client.post("/events", json={"title": "Dorm jam", "description": "d", "visibility": "friends"},
                          headers=as_user("u1")).json()

    assert client.get(f"/events/{created['id']}", headers=as_user("u2")).status_code == 200
    assert client.get(f"/events/{created['id']}", headers=as_user("u3")).status_code == 404
    assert client.get("/events/by-creator/u1", headers=as_user("u3")).json() == []


def test_only_creator_deletes_event(client):
    created = client.post("/events", json={"title": "Chess", "description": "d"}, headers=as_user("u1")).json()
    assert client.delete(f"/events/{created['id']}", headers=as_user("u2")).status_code == 403
    assert client.delete(f"/events/{created['id']}", headers=as_user("u1")).status_code == 200
    assert client.delete(f"/events/{created['id']}", headers=as_user("u1")).status_code == 404


def test_comment_and_rsvp_on_event(client):
    created = client.post("/events", json={"title": "Run club", "description": "5k"}, headers=as_user("u1")).json()
    event_id = created["id"]

    root = client.post(f"/events/{event_id}/comments", json={"text": "What pace?"}, headers=as_user("u2"))
    assert root.status_code == 201
    root_id = root.json()["id"]
    reply = client.post(
        f"/events/{event_id}/comments",
        json={"text": "Easy", "reply_to": {"comment_id": root_id, "root_id": root_id, "uid": "u2"}},
        headers=as_user("u1"),
    )
    assert reply.status_code == 201
    replies = client.get(f"/events/{event_id}/comments/{root_id}/replies", headers=as_user("u3")).json()
    assert [c["id"] for c in replies["comments"]] == [reply.json()["id"]]

    assert client.put(f"/events/{event_id}/rsvp", json={"status": "going"}, headers=as_user("u2")).status_code == 200
    summary = client.get(f"/events/{event_id}/rsvp", headers=as_user("u2")).json()
    assert (summary["count"], summary["status"]) == (1, "going")
    assert client.get("/events/attending", headers=as_user("u2")).json()["ids"] == [event_id]


def test_comment_on_missing_event(client):
    response = client.post("/events/ghost/comments", json={"text": "hello"}, headers=as_user("u1"))
    assert response.status_code == 404


def test_rsvp_on_missing_event(client):
    assert client.put("/events/ghost/rsvp", json={"status": "going"}, headers=as_user("u1")).status_code == 404


def test_store_permission_errors_map_to_403():
    def deny(op, path):
        if op == "query":
            raise StoreError(StoreErrorCode.PERMISSION_DENIED, "missing or insufficient permissions")

    limiter.enabled = False
    app.dependency_overrides[get_store] = lambda: MemoryDocumentStore(guard=deny)
    try:
        response = TestClient(app).get("/events/feed", headers=as_user("u1"))
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True
    assert response.status_code == 403
    assert response.json() == {"detail": PERMISSION_DENIED_MESSAGE, "code": "permission-denied"}


def test_notifications_mark_read_and_delete(client, api_store):
    client.post("/friends/requests", json={"to_uid": "u2"}, headers=as_user("u1"))
    [notification] = client.get("/notifications", headers=as_user("u2")).json()["notifications"]

    assert client.post(f"/notifications/{notification['id']}/read", headers=as_user("u2")).status_code == 200
    assert client.get("/notifications/unread-count", headers=as_user("u2")).json() == {"unread_count": 0}
    assert client.post("/notifications/delete", json={"ids": [notification["id"]]},
                       headers=as_user("u2")).json() == {"deleted": 1}
    assert client.post("/notifications/ghost/read", headers=as_user("u2")).status_code == 404
