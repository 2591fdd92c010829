"""Tests for the local visit API."""

import importlib
import sys

from fastapi.testclient import TestClient

from study_room.api.app import create_app
from tests.conftest import FakeStudyApi, InMemoryMessageLog, make_message, make_note


def test_health(container) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_open_visit_returns_state(container, message_log: InMemoryMessageLog) -> None:
    message_log.entries["chat-1"] = [make_message(1)]

    with TestClient(create_app(container)) as client:
        response = client.post("/visits/s1")
        fetched = client.get("/visits/s1")

    assert response.status_code == 200
    data = response.json()
    assert data["session"]["title"] == "Algorithms"
    assert data["membership"] == "joined"
    assert data["messages"][0]["text"] == "message 1"
    assert data["can_generate"] is True
    assert fetched.json()["session"]["id"] == "s1"


def test_unknown_visit_is_404(container) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/visits/nope")
        deleted = client.delete("/visits/nope")

    assert response.status_code == 404
    assert deleted.status_code == 404


def test_send_message_from_draft(container, message_log: InMemoryMessageLog) -> None:
    with TestClient(create_app(container)) as client:
        client.post("/visits/s1")
        client.put("/visits/s1/draft", json={"text": "hello there"})
        response = client.post("/visits/s1/messages", json={})
        blank = client.post("/visits/s1/messages", json={"text": "   "})

    data = response.json()
    assert data["sent"] is True
    assert data["draft"] == ""
    assert [message["text"] for message in data["messages"]] == ["hello there"]
    assert blank.json()["sent"] is False
    assert len(message_log.appended) == 1


def test_generate_and_refresh_notes(container, api: FakeStudyApi, message_log) -> None:
    message_log.entries["chat-1"] = [make_message(1)]
    api.notes = [make_note(1)]

    with TestClient(create_app(container)) as client:
        client.post("/visits/s1")
        generated = client.post("/visits/s1/notes/generate")
        refreshed = client.post("/visits/s1/notes/refresh")
        toggled = client.post("/visits/s1/notes/toggle")

    data = generated.json()
    assert data["generation"]["state"] == "succeeded"
    assert data["show_notes"] is True
    assert [note["id"] for note in data["notes"]] == [2, 1]
    assert data["notes"][0]["definitions"][0]["term"] == "base case"
    assert len(refreshed.json()["notes"]) == 2
    assert toggled.json()["show_notes"] is False


def test_end_session_needs_confirmation(container, api: FakeStudyApi) -> None:
    with TestClient(create_app(container)) as client:
        client.post("/visits/s1")
        declined = client.post("/visits/s1/end", json={"confirm": False})
        ended = client.post("/visits/s1/end", json={"confirm": True})

    assert declined.json()["ended"] is False
    assert ended.json()["ended"] is True
    assert ended.json()["navigate_to"] == "/"
    assert ended.json()["session"]["is_live"] is False
    assert api.count("end") == 1


def test_leave_then_close_visit(container, api: FakeStudyApi) -> None:
    with TestClient(create_app(container)) as client:
        client.post("/visits/s1")
        left = client.post("/visits/s1/leave")
        closed = client.delete("/visits/s1")
        after = client.get("/visits/s1")

    assert left.json()["membership"] == "left"
    assert left.json()["navigate_to"] == "/"
    assert closed.status_code == 200
    assert after.status_code == 404
    assert api.count("leave") == 1


def test_shutdown_closes_open_visit(container, api: FakeStudyApi) -> None:
    with TestClient(create_app(container)) as client:
        client.post("/visits/s1")

    assert api.count("leave") == 1
    assert container.visit_manager.current is None


def test_join_post_mounts_visit(container) -> None:
    with TestClient(create_app(container)) as client:
        response = client.post("/study-posts/post-3/join")

    assert response.status_code == 200
    assert response.json()["session"]["id"] == "s1"


def test_asgi_entrypoint_reads_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "env-key")
    monkeypatch.setenv("MAX_POLLS", "5")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delitem(sys.modules, "study_room.api.asgi", raising=False)

    module = importlib.import_module("study_room.api.asgi")

    assert module.settings.supabase_url == "https://env.supabase.co"
    assert module.settings.max_polls == 5
    assert module.app.state.container.settings is module.settings
