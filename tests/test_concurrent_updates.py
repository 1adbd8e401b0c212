"""A status change committed by someone else between our read and our write
must make our guarded update fail and leave their status in place."""
from conftest import client, auth_headers_for, create_expense, create_project, TestingSessionLocal
from app.models.event import Event
from app.models.expense import Expense
from app.models.invitation import Invitation
from app.models.purchase_order import PurchaseOrder
from app.models.task import Task, Timesheet
from app.models.vendor_bill import VendorBill
from app.services.bill_service import bill_service
from app.services.expense_service import expense_service
from app.services.invitation_service import invitation_service
from app.services.purchase_order_service import purchase_order_service
from app.services.task_service import task_service


def change_after_read(monkeypatch, service, loader, model, record_id, status):
    """Wrap ``service.loader`` so a second session moves the record to ``status`` right after it is read."""
    original = getattr(service, loader)

    def read_then_race(*args, **kwargs):
        result = original(*args, **kwargs)
        other = TestingSessionLocal()
        other.query(model).filter(model.id == record_id).update({"status": status}, synchronize_session=False)
        other.commit()
        other.close()
        return result

    monkeypatch.setattr(service, loader, read_then_race)


def count_events(entity_id, event_type):
    db = TestingSessionLocal()
    count = db.query(Event).filter(Event.entity_id == entity_id, Event.event_type == event_type).count()
    db.close()
    return count


def current_status(model, record_id):
    db = TestingSessionLocal()
    status = db.query(model.status).filter(model.id == record_id).scalar()
    db.close()
    return status


def test_approve_loses_to_concurrent_reject(monkeypatch, member, manager):
    expense_id = create_expense(member.organization_id, member.id, status="submitted")
    headers = auth_headers_for(manager)
    change_after_read(monkeypatch, expense_service, "get_expense", Expense, expense_id, "rejected")

    response = client.post(f"/api/expenses/{expense_id}/approve", headers=headers)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Expense status changed concurrently, reload and retry"}
    assert current_status(Expense, expense_id) == "rejected"
    assert count_events(expense_id, "expense.approved") == 0


def test_pay_bill_loses_to_concurrent_cancel(monkeypatch, finance):
    headers = auth_headers_for(finance)
    bill = client.post(
        "/api/finance/vendor-bills", json={"vendor_name": "Acme", "amount": 90}, headers=headers
    ).json()["data"]
    change_after_read(monkeypatch, bill_service, "get_bill", VendorBill, bill["id"], "cancelled")

    response = client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=headers)

    assert response.status_code == 400
    assert current_status(VendorBill, bill["id"]) == "cancelled"
    assert count_events(bill["id"], "bill.paid") == 0


def test_task_status_loses_to_concurrent_change(monkeypatch, manager):
    headers = auth_headers_for(manager)
    project_id = create_project(manager.organization_id)
    task = client.post(f"/api/projects/{project_id}/tasks", json={"title": "Deploy"}, headers=headers).json()["data"]
    change_after_read(monkeypatch, task_service, "get_task", Task, task["id"], "blocked")

    response = client.patch(f"/api/tasks/{task['id']}/status", json={"status": "in_progress"}, headers=headers)

    assert response.status_code == 400
    assert current_status(Task, task["id"]) == "blocked"
    assert count_events(task["id"], "task.status_changed") == 0


def test_accept_loses_to_concurrent_reject(monkeypatch, admin, make_user, other_org):
    invitee = make_user("member", email="racer@test.com", organization_id=other_org.id)
    invitation = client.post(
        "/api/invitations", json={"email": invitee.email, "role": "member"}, headers=auth_headers_for(admin)
    ).json()["data"]
    headers = auth_headers_for(invitee)
    change_after_read(monkeypatch, invitation_service, "get_invitation", Invitation, invitation["id"], "rejected")

    response = client.post(f"/api/invitations/{invitation['id']}/accept", headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Invitation is no longer pending"
    assert current_status(Invitation, invitation["id"]) == "rejected"
    assert count_events(invitation["id"], "invitation.accepted") == 0

    me = client.get("/api/auth/me", headers=headers).json()["data"]
    assert me["organization_id"] == other_org.id


def test_submit_timesheet_loses_to_concurrent_submit(monkeypatch, manager, member):
    project_id = create_project(manager.organization_id)
    task = client.post(
        f"/api/projects/{project_id}/tasks", json={"title": "Audit", "assignee_id": member.id},
        headers=auth_headers_for(manager)
    ).json()["data"]
    headers = auth_headers_for(member)
    timesheet = client.post(f"/api/tasks/{task['id']}/timesheets", json={
        "start": "2026-03-02T09:00:00", "end": "2026-03-02T10:00:00"
    }, headers=headers).json()["data"]
    change_after_read(monkeypatch, task_service, "get_timesheet", Timesheet, timesheet["id"], "submitted")

    response = client.patch(f"/api/timesheets/{timesheet['id']}/status", json={"status": "submitted"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Timesheet status changed concurrently, reload and retry"
    assert count_events(timesheet["id"], "timesheet.status_changed") == 0


def test_confirm_order_loses_to_concurrent_cancel(monkeypatch, finance):
    headers = auth_headers_for(finance)
    po = client.post(
        "/api/finance/purchase-orders", json={"po_number": "PO-9", "total_amount": 40}, headers=headers
    ).json()["data"]
    change_after_read(
        monkeypatch, purchase_order_service, "get_purchase_order", PurchaseOrder, po["id"], "cancelled"
    )

    response = client.post(f"/api/finance/purchase-orders/{po['id']}/confirm", headers=headers)

    assert response.status_code == 400
    assert current_status(PurchaseOrder, po["id"]) == "cancelled"
    assert count_events(po["id"], "purchase_order.confirmed") == 0
