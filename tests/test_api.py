import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import (
    get_current_user,
    get_material_repository,
    get_notification_repository,
    get_storage_service,
    get_user_repository,
)
from app.infrastructure.cache.view_tracker import InMemoryViewTracker
from app.infrastructure.realtime.rooms import RealtimeChannelRouter
from app.main import app


class Session:
    """Who the overridden auth dependency says is calling."""

    def __init__(self, user):
        self.user = user


@pytest.fixture
def session(rater):
    return Session(rater)


@pytest.fixture
def client(materials, users, notifications, storage, dispatcher, session):
    app.state.realtime = RealtimeChannelRouter()
    app.state.view_tracker = InMemoryViewTracker()
    app.state.dispatcher = dispatcher

    app.dependency_overrides[get_material_repository] = lambda: materials
    app.dependency_overrides[get_user_repository] = lambda: users
    app.dependency_overrides[get_notification_repository] = lambda: notifications
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_current_user] = lambda: users.users[session.user.id]

    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------

def test_detail_counts_views_per_client(client, material):
    first = client.get(f"/materials/{material.id}", headers={"X-Forwarded-For": "10.0.0.1"})
    again = client.get(f"/materials/{material.id}", headers={"X-Forwarded-For": "10.0.0.1, 10.0.0.2"})
    other = client.get(f"/materials/{material.id}", headers={"X-Forwarded-For": "10.0.0.3"})

    assert first.status_code == 200
    assert first.json()["views"] == 1
    assert again.json()["views"] == 1
    assert other.json()["views"] == 2
    assert first.json()["user_rating"] is None


def test_unknown_material_is_404(client):
    response = client.get("/materials/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json() == {"detail": "Material not found"}


def test_list_rejects_unknown_sort(client):
    assert client.get("/materials/", params={"sort": "popular"}).status_code == 400
    body = client.get("/materials/", params={"sort": "rating"}).json()
    assert body["total"] == 1


def test_upload_material(client, materials):
    response = client.post(
        "/materials/",
        files={"file": ("week1.pdf", b"%PDF-1.7 week1", "application/pdf")},
        data={"title": "Week 1", "discipline": "Biology", "year": "1", "material_type": "Notes", "tags": "cells, dna"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["tags"] == ["cells", "dna"]
    assert body["rating"] == {"average": 0.0, "count": 0, "breakdown": [0, 0, 0, 0, 0]}


def test_download_sets_filename(client, material):
    response = client.get(f"/materials/{material.id}/download")
    assert response.status_code == 200
    assert response.content == b"%PDF-1.7 fake"
    assert "notes.pdf" in response.headers["content-disposition"]


def test_delete_by_stranger_is_forbidden(client, material):
    assert client.delete(f"/materials/{material.id}").status_code == 403


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------

def test_rating_flow(client, material):
    response = client.post(f"/materials/{material.id}/rating", json={"stars": 4})
    assert response.status_code == 200
    assert response.json() == {
        "average": 4.0,
        "count": 1,
        "breakdown": [0, 0, 0, 1, 0],
        "user_rating": 4,
        "is_update": False,
    }
    assert client.get(f"/materials/{material.id}/rating/me").json() == {"user_rating": 4}


@pytest.mark.parametrize("stars", [7, 0, True, "5", 2.5])
def test_invalid_rating_is_400(client, material, stars):
    response = client.post(f"/materials/{material.id}/rating", json={"stars": stars})
    assert response.status_code == 400


def test_comment_and_reactions(client, material):
    created = client.post(f"/materials/{material.id}/comments", json={"text": "Helpful"})
    assert created.status_code == 201
    comment_id = created.json()["id"]

    liked = client.post(f"/materials/{material.id}/comments/{comment_id}/like").json()
    disliked = client.post(f"/materials/{material.id}/comments/{comment_id}/dislike").json()
    assert len(liked["likes"]) == 1
    assert disliked["likes"] == []
    assert len(disliked["dislikes"]) == 1

    detail = client.get(f"/materials/{material.id}").json()
    assert [c["text"] for c in detail["comments"]] == ["Helpful"]


def test_duplicate_report_is_409(client, material):
    url = f"/materials/{material.id}/report"
    assert client.post(url, json={"reason": "Wrong course entirely"}).status_code == 201
    response = client.post(url, json={"reason": "Wrong course entirely"})
    assert response.status_code == 409


def test_comment_report(client, material, session, other):
    comment_id = client.post(f"/materials/{material.id}/comments", json={"text": "buy my notes"}).json()["id"]
    session.user = other
    response = client.post(
        f"/materials/{material.id}/comments/{comment_id}/report", json={"reason": "advertising spam"}
    )
    assert response.status_code == 201


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

def test_admin_routes_require_admin(client):
    assert client.get("/admin/reports").status_code == 403
    assert client.get("/admin/stats").status_code == 403


def test_admin_resolves_report(client, materials, material, session, admin):
    client.post(f"/materials/{material.id}/report", json={"reason": "Copied from a textbook"})
    session.user = admin

    feed = client.get("/admin/reports").json()
    assert feed["total"] == 1
    report = feed["reports"][0]
    assert report["kind"] == "material"
    assert report["reporter"]["name"] == "Bob"

    response = client.put(f"/admin/reports/{report['id']}", json={"action": "ignore"})
    assert response.json() == {"message": "Report dismissed", "outcome": "report_dismissed"}
    assert client.get("/admin/stats").json()["total_reports"] == 0

    bad = client.put(f"/admin/reports/{report['id']}", json={"action": "archive"})
    assert bad.status_code == 400


# ---------------------------------------------------------------------------
# Favorites, notifications, profiles
# ---------------------------------------------------------------------------

def test_favorites(client, material):
    assert client.post(f"/favorites/{material.id}").status_code == 201
    assert client.post(f"/favorites/{material.id}").status_code == 400
    assert [m["id"] for m in client.get("/favorites/").json()] == [str(material.id)]
    assert client.delete(f"/favorites/{material.id}").status_code == 200


def test_notification_preferences(client):
    assert client.get("/notifications/preferences").json()["rating"] is True
    updated = client.put("/notifications/preferences", json={"rating": False}).json()
    assert updated == {
        "rating": False,
        "comment_on_my_material": True,
        "comment_on_favorite": True,
        "report": True,
    }


def test_notification_inbox_empty(client):
    body = client.get("/notifications/").json()
    assert body == {"notifications": [], "unread_count": 0}
    missing = client.put("/notifications/00000000-0000-0000-0000-000000000001/read")
    assert missing.status_code == 404


def test_public_profile(client, author, material):
    body = client.get(f"/users/{author.id}").json()
    assert body["user"]["name"] == "Alice"
    assert [m["id"] for m in body["materials"]] == [str(material.id)]
    assert "email" not in body["user"]


def test_my_profile(client, rater):
    body = client.get("/users/me").json()
    assert body["email"] == rater.email
    assert body["reputation"] == 0.0


# ---------------------------------------------------------------------------
# Realtime
# ---------------------------------------------------------------------------

def test_websocket_join_material(client, material):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join_material", "material_id": str(material.id)})
        assert ws.receive_json() == {"event": "joined", "data": {"room": f"material:{material.id}"}}
        ws.send_text("not json")
        assert ws.receive_json()["event"] == "error"


def test_websocket_binary_frame_gets_error_reply(client, material):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"event": "error", "data": {"detail": "Expected a text frame"}}
        ws.send_json({"action": "join_material", "material_id": str(material.id)})
        assert ws.receive_json()["event"] == "joined"
