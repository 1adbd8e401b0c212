from datetime import datetime, timedelta
from conftest import client, auth_headers_for, create_expense, TestingSessionLocal
from app.models.notification import Notification
from app.services.notification_service import notification_service


def add_notification(user, is_read=False, created_at=None, type="CUSTOM"):
    db = TestingSessionLocal()
    notification = Notification(
        organization_id=user.organization_id,
        user_id=user.id,
        type=type,
        title="Hello",
        message="Something happened",
        is_read=is_read,
        created_at=created_at or datetime.utcnow()
    )
    db.add(notification)
    db.commit()
    notification_id = notification.id
    db.close()
    return notification_id


def test_unread_count_is_zero_without_notifications(member):
    response = client.get("/api/notifications/unread-count", headers=auth_headers_for(member))
    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"count": 0}}


def test_unread_count_ignores_read_rows(member):
    add_notification(member, is_read=True)
    add_notification(member)
    response = client.get("/api/notifications/unread-count", headers=auth_headers_for(member))
    assert response.json()["data"]["count"] == 1


def test_unread_count_user_hint_must_match(member, manager):
    response = client.get(
        "/api/notifications/unread-count", params={"userId": manager.id}, headers=auth_headers_for(member)
    )
    assert response.status_code == 403


def test_approval_notifies_owner(member, manager):
    expense_id = create_expense(member.organization_id, member.id, status="submitted")
    client.post(f"/api/expenses/{expense_id}/approve", headers=auth_headers_for(manager))

    response = client.get("/api/notifications", headers=auth_headers_for(member))
    body = response.json()
    assert body["meta"]["unread_count"] == 1
    assert body["data"][0]["type"] == "EXPENSE_APPROVED"
    assert body["data"][0]["data"]["expense_id"] == expense_id


def test_mark_read_and_mark_all(member):
    first = add_notification(member)
    add_notification(member)
    add_notification(member)
    headers = auth_headers_for(member)

    response = client.post(f"/api/notifications/{first}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_read"] is True

    response = client.post("/api/notifications/mark-all-read", headers=headers)
    assert response.json()["data"]["updated"] == 2
    assert client.get("/api/notifications/unread-count", headers=headers).json()["data"]["count"] == 0


def test_cannot_touch_someone_elses_notification(member, manager):
    notification_id = add_notification(manager)
    headers = auth_headers_for(member)
    assert client.post(f"/api/notifications/{notification_id}/read", headers=headers).status_code == 404
    assert client.delete(f"/api/notifications/{notification_id}", headers=headers).status_code == 404


def test_delete_notification(member):
    notification_id = add_notification(member)
    headers = auth_headers_for(member)
    assert client.delete(f"/api/notifications/{notification_id}", headers=headers).status_code == 200
    assert client.get("/api/notifications", headers=headers).json()["data"] == []


def test_filter_unread_only(member):
    add_notification(member, is_read=True)
    add_notification(member)
    response = client.get("/api/notifications", params={"unread_only": True}, headers=auth_headers_for(member))
    assert response.json()["meta"]["total"] == 1


def test_broadcast_is_admin_only(admin, member, manager):
    response = client.post(
        "/api/notifications/broadcast",
        json={"title": "Maintenance", "message": "Down at 10pm"},
        headers=auth_headers_for(member)
    )
    assert response.status_code == 403

    response = client.post(
        "/api/notifications/broadcast",
        json={"title": "Maintenance", "message": "Down at 10pm"},
        headers=auth_headers_for(admin)
    )
    assert response.status_code == 200
    assert response.json()["data"]["sent_count"] == 3


def test_create_notification_never_raises(db, member):
    # user_id=None violates NOT NULL; the failure is reported, not raised
    result = notification_service.create_notification(db, member.organization_id, None, "CUSTOM", "t", "m")
    assert result["success"] is False


def test_delete_old_notifications(db, member):
    old_read = add_notification(member, is_read=True, created_at=datetime.utcnow() - timedelta(days=120))
    add_notification(member, is_read=False, created_at=datetime.utcnow() - timedelta(days=120))
    add_notification(member, is_read=True)

    result = notification_service.delete_old_notifications(db, days_old=90)

    assert result == {"success": True, "deleted": 1}
    assert db.query(Notification).filter(Notification.id == old_read).first() is None
    assert db.query(Notification).count() == 2
