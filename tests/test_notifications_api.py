from datetime import timedelta

from app.core.notification_bus import notification_bus


def test_list_is_newest_first_with_unread_count(client, seed, auth):
    user, _ = seed.client()
    other, _ = seed.client("Doha Towers")
    seed.notification(user, "Oldest", is_read=True, age=timedelta(hours=3))
    seed.notification(user, "Middle", age=timedelta(hours=2))
    seed.notification(user, "Newest", age=timedelta(hours=1))
    seed.notification(other, "Not yours")

    response = client.get("/api/notifications", headers=auth(user))

    assert response.status_code == 200
    body = response.json()
    assert [n["title"] for n in body["notifications"]] == ["Newest", "Middle", "Oldest"]
    assert body["unreadCount"] == 2
    assert body["notifications"][0]["isRead"] is False
    assert body["notifications"][0]["type"] == "STAGE_COMPLETED"

    unread = client.get("/api/notifications?unread=true&limit=1", headers=auth(user)).json()
    assert [n["title"] for n in unread["notifications"]] == ["Newest"]
    assert unread["unreadCount"] == 2


def test_mark_read(client, seed, auth):
    user, _ = seed.client()
    notification = seed.notification(user)

    response = client.post(f"/api/notifications/{notification.id}/read", headers=auth(user))

    assert response.status_code == 200
    assert response.json()["isRead"] is True
    assert client.get("/api/notifications", headers=auth(user)).json()["unreadCount"] == 0

    again = client.post(f"/api/notifications/{notification.id}/read", headers=auth(user))
    assert again.status_code == 200


def test_cannot_mark_someone_elses_notification(client, seed, auth):
    user, _ = seed.client()
    other, _ = seed.client("Doha Towers")
    notification = seed.notification(other)

    response = client.post(f"/api/notifications/{notification.id}/read", headers=auth(user))

    assert response.status_code == 404
    assert response.json() == {"error": "Notification not found"}
    assert seed.notifications(other)[0].is_read is False


def test_notifications_require_a_token(client):
    response = client.get("/api/notifications")

    assert response.status_code in (401, 403)


def test_live_push_happens_only_after_commit(client, seed, auth):
    admin = seed.admin()
    user, _ = seed.client()
    received = []
    unsubscribe = notification_bus.subscribe(admin.id, received.append)
    try:
        failed = client.post("/api/requirements", json={"jobRoles": []}, headers=auth(user))
        assert failed.status_code == 422
        assert received == []

        created = client.post(
            "/api/requirements", json={"jobRoles": [{"title": "Mason", "quantity": 2}]}, headers=auth(user)
        )
        assert created.status_code == 201
    finally:
        unsubscribe()

    [payload] = received
    assert payload["title"] == "New requirement submitted"
    assert payload["type"] == "REQUIREMENT_CREATED"
    assert payload["isRead"] is False
    assert payload["id"] == str(seed.notifications(admin)[0].id)
