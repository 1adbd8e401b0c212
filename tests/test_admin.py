from datetime import datetime, timedelta
from conftest import client, auth_headers_for, create_expense, TestingSessionLocal
from app.models.invitation import Invitation
from app.models.notification import Notification
from app.services.cleanup_service import cleanup_service


def test_cleanup_is_admin_only(manager):
    assert client.post("/api/admin/cleanup", headers=auth_headers_for(manager)).status_code == 403


def test_manual_cleanup(admin):
    headers = auth_headers_for(admin)
    invitation = client.post(
        "/api/invitations", json={"email": "stale@test.com", "role": "member"}, headers=headers
    ).json()["data"]

    db = TestingSessionLocal()
    db.query(Invitation).filter(Invitation.id == invitation["id"]).update(
        {"expires_at": datetime.utcnow() - timedelta(days=2)}
    )
    db.add(Notification(
        organization_id=admin.organization_id,
        user_id=admin.id,
        type="CUSTOM",
        title="Old",
        message="Old news",
        is_read=True,
        created_at=datetime.utcnow() - timedelta(days=365)
    ))
    db.commit()
    db.close()

    response = client.post("/api/admin/cleanup", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["data"] == {"invitations_expired": 1, "notifications_deleted": 1}
    assert body["timestamp"]


def test_cleanup_status(admin):
    response = client.get("/api/admin/cleanup/status", headers=auth_headers_for(admin))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["scheduler_running"] is False
    assert data["cleanup_interval_hours"] == cleanup_service.cleanup_interval


def test_events_are_admin_only(manager):
    assert client.get("/api/events", headers=auth_headers_for(manager)).status_code == 403


def test_events_record_expense_lifecycle(admin, member, manager, finance):
    expense_id = create_expense(member.organization_id, member.id)
    client.post(f"/api/expenses/{expense_id}/submit", headers=auth_headers_for(member))
    client.post(f"/api/expenses/{expense_id}/approve", headers=auth_headers_for(manager))
    client.post(f"/api/expenses/{expense_id}/pay", headers=auth_headers_for(finance))

    response = client.get(
        "/api/events", params={"entity_type": "expense", "entity_id": expense_id}, headers=auth_headers_for(admin)
    )
    events = response.json()["data"]
    assert [e["event_type"] for e in events] == ["expense.paid", "expense.approved", "expense.submitted"]
    assert events[0]["payload"]["from"] == "approved"
