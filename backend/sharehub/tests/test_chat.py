from datetime import datetime, timedelta, timezone
import uuid

from .conftest import client, fresh_db, register_user, register_admin, wait_for, TestingSessionLocal
from sharehub import models
from sharehub.main import app
from sharehub.responder import REPLY_RULES
from sharehub.schemas import UNKNOWN_AUTHOR

GREETING_REPLY = REPLY_RULES[-1][1]


def messages(client, headers):
    resp = client.get("/api/chat/messages", headers=headers)
    assert resp.status_code == 200
    return resp.json()["messages"]


def test_messages_require_authentication(client):
    assert client.get("/api/chat/messages").status_code == 401
    assert client.post("/api/chat/messages", json={"message": "hi"}).status_code == 401


def test_empty_message_rejected(client):
    headers, _ = register_user(client)
    for text in ["", "   ", "\n\t "]:
        resp = client.post("/api/chat/messages", json={"message": text}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Message is required"
    assert client.post("/api/chat/messages", json={}, headers=headers).status_code == 400


def test_post_persists_trimmed_text(client):
    headers, user = register_user(client)
    resp = client.post("/api/chat/messages", json={"message": "  ping the hub  "}, headers=headers)
    assert resp.status_code == 201
    msg = resp.json()["message"]
    assert msg["message"] == "ping the hub"
    assert msg["is_ai"] is False
    assert msg["user_id"] == user["id"]
    assert msg["username"] == user["username"]


def test_greeting_gets_automated_reply(client):
    headers, user = register_user(client)
    resp = client.post("/api/chat/messages", json={"message": "hello"}, headers=headers)
    assert resp.status_code == 201

    def ai_replies():
        return [m for m in messages(client, headers) if m["is_ai"] and m["user_id"] == user["id"]]

    replies = wait_for(ai_replies, timeout=3.0)
    assert len(replies) == 1
    assert replies[0]["message"] == GREETING_REPLY
    mine = [m for m in messages(client, headers) if m["user_id"] == user["id"]]
    assert [m["is_ai"] for m in mine] == [False, True]


def test_failed_reply_is_logged_not_raised(client, monkeypatch):
    headers, user = register_user(client)

    def boom(text, rng=None):
        raise RuntimeError("responder down")

    monkeypatch.setattr("sharehub.services.chat.generate_reply", boom)
    scheduler = app.state.reply_scheduler
    before = len(scheduler.dead_letters)
    resp = client.post("/api/chat/messages", json={"message": "are you there"}, headers=headers)
    assert resp.status_code == 201

    assert wait_for(lambda: len(scheduler.dead_letters) > before)
    mine = [m for m in messages(client, headers) if m["user_id"] == user["id"]]
    assert [m["is_ai"] for m in mine] == [False]
    assert scheduler.dead_letters[-1].user_id == uuid.UUID(user["id"])


def test_listing_is_chronological_regardless_of_insertion_order(client, fresh_db):
    headers, user = register_user(client)
    base = datetime.now(timezone.utc)
    session = TestingSessionLocal()
    try:
        for offset, text in [(3, "third"), (1, "first"), (2, "second")]:
            session.add(
                models.ChatMessage(
                    user_id=uuid.UUID(user["id"]),
                    message=text,
                    created_at=base + timedelta(seconds=offset),
                )
            )
        session.commit()
    finally:
        session.close()
    assert [m["message"] for m in messages(client, headers)] == ["first", "second", "third"]


def test_listing_returns_most_recent_hundred(client, fresh_db):
    headers, user = register_user(client)
    base = datetime.now(timezone.utc)
    session = TestingSessionLocal()
    try:
        session.add_all(
            models.ChatMessage(
                user_id=uuid.UUID(user["id"]),
                message=f"m{i}",
                created_at=base + timedelta(seconds=i),
            )
            for i in range(105)
        )
        session.commit()
    finally:
        session.close()
    listed = messages(client, headers)
    assert len(listed) == 100
    assert listed[0]["message"] == "m5"
    assert listed[-1]["message"] == "m104"


def test_missing_author_gets_placeholder(client, fresh_db):
    headers, _ = register_user(client)
    session = TestingSessionLocal()
    try:
        session.add(models.ChatMessage(user_id=uuid.uuid4(), message="orphan"))
        session.commit()
    finally:
        session.close()
    orphan = [m for m in messages(client, headers) if m["message"] == "orphan"]
    assert orphan[0]["username"] == UNKNOWN_AUTHOR


def test_delete_message_permissions(client):
    author_headers, _ = register_user(client)
    other_headers, _ = register_user(client)
    admin_headers, _ = register_admin(client)

    first = client.post("/api/chat/messages", json={"message": "mine"}, headers=author_headers).json()["message"]
    second = client.post("/api/chat/messages", json={"message": "also mine"}, headers=author_headers).json()["message"]

    assert client.delete(f"/api/chat/messages/{first['id']}", headers=other_headers).status_code == 403
    resp = client.delete(f"/api/chat/messages/{first['id']}", headers=author_headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert client.delete(f"/api/chat/messages/{first['id']}", headers=author_headers).status_code == 404
    assert client.delete(f"/api/chat/messages/{second['id']}", headers=admin_headers).status_code == 200
