import uuid

from .conftest import client, fresh_db, register_user, register_admin, TestingSessionLocal
from .test_files import upload
from sharehub import models


def test_stats_counts_seeded_rows(client, fresh_db, upload_dir):
    admin_headers, admin = register_admin(client)
    user_headers, user = register_user(client)
    register_user(client)

    upload(client, user_headers, ("big.bin", b"\0" * (2 * 1024 * 1024), "application/octet-stream"))
    upload(
        client,
        admin_headers,
        ("a.txt", b"a", "text/plain"),
        ("b.txt", b"b", "text/plain"),
        ("c.txt", b"c", "text/plain"),
        ("d.txt", b"d", "text/plain"),
    )
    session = TestingSessionLocal()
    try:
        session.add_all(
            models.ChatMessage(user_id=uuid.UUID(user["id"]), message=f"seed {i}") for i in range(20)
        )
        session.commit()
    finally:
        session.close()

    resp = client.get("/api/admin/stats", headers=admin_headers)
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["users"] == 3
    assert stats["files"] == 5
    assert stats["messages"] == 20
    assert stats["storageUsed"] == 2
    assert stats["serverUptime"] >= 0


def test_admin_endpoints_reject_regular_users(client):
    headers, user = register_user(client)
    assert client.get("/api/admin/stats", headers=headers).status_code == 403
    assert client.get("/api/admin/users", headers=headers).status_code == 403
    assert client.patch(
        f"/api/admin/users/{user['id']}/admin", json={"isAdmin": True}, headers=headers
    ).status_code == 403
    assert client.get("/api/admin/stats").status_code == 401


def test_list_users_newest_first_without_secrets(client):
    admin_headers, admin = register_admin(client)
    _, newer = register_user(client)
    resp = client.get("/api/admin/users", headers=admin_headers)
    assert resp.status_code == 200
    users = resp.json()["users"]
    ids = [u["id"] for u in users]
    assert ids.index(newer["id"]) < ids.index(admin["id"])
    assert all("hashed_password" not in u for u in users)


def test_toggle_admin(client):
    admin_headers, admin = register_admin(client)
    other_headers, other = register_user(client)

    self_demote = client.patch(f"/api/admin/users/{admin['id']}/admin", json={"isAdmin": False}, headers=admin_headers)
    assert self_demote.status_code == 400
    assert self_demote.json()["detail"] == "Cannot remove admin status from yourself"

    promoted = client.patch(f"/api/admin/users/{other['id']}/admin", json={"isAdmin": True}, headers=admin_headers)
    assert promoted.status_code == 200
    assert promoted.json()["user"]["is_admin"] is True
    assert client.get("/api/admin/stats", headers=other_headers).status_code == 200

    demoted = client.patch(f"/api/admin/users/{other['id']}/admin", json={"isAdmin": False}, headers=admin_headers)
    assert demoted.json()["user"]["is_admin"] is False
    assert client.get("/api/admin/stats", headers=other_headers).status_code == 403

    missing = client.patch(f"/api/admin/users/{uuid.uuid4()}/admin", json={"isAdmin": True}, headers=admin_headers)
    assert missing.status_code == 404


def test_delete_user_cascades(client, upload_dir):
    admin_headers, admin = register_admin(client)
    victim_headers, victim = register_user(client)
    stored = upload(client, victim_headers, ("v.txt", b"victim", "text/plain")).json()["files"][0]
    session = TestingSessionLocal()
    try:
        session.add(models.ChatMessage(user_id=uuid.UUID(victim["id"]), message="bye"))
        session.commit()
    finally:
        session.close()

    assert client.delete(f"/api/admin/users/{admin['id']}", headers=admin_headers).status_code == 400
    resp = client.delete(f"/api/admin/users/{victim['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    session = TestingSessionLocal()
    try:
        victim_id = uuid.UUID(victim["id"])
        assert session.get(models.User, victim_id) is None
        assert session.query(models.File).filter(models.File.uploaded_by == victim_id).count() == 0
        assert session.query(models.ChatMessage).filter(models.ChatMessage.user_id == victim_id).count() == 0
    finally:
        session.close()
    assert not (upload_dir / stored["storage_name"]).exists()
    assert client.delete(f"/api/admin/users/{victim['id']}", headers=admin_headers).status_code == 404
