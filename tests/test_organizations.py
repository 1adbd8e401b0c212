from conftest import client, auth_headers_for, create_expense, create_project, TestingSessionLocal
from app.models.task import Task


def test_get_own_organization(member, test_org):
    response = client.get(f"/api/organizations/{test_org.id}", headers=auth_headers_for(member))
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Test Company"


def test_other_organization_is_not_found(member, other_org):
    response = client.get(f"/api/organizations/{other_org.id}", headers=auth_headers_for(member))
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Organization not found"}


def test_admin_updates_organization(admin, test_org):
    response = client.put(
        f"/api/organizations/{test_org.id}", json={"name": "Renamed Co", "currency": "EUR"},
        headers=auth_headers_for(admin)
    )
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Renamed Co"
    assert response.json()["data"]["currency"] == "EUR"


def test_manager_cannot_update_organization(manager, test_org):
    response = client.put(
        f"/api/organizations/{test_org.id}", json={"name": "Mine"}, headers=auth_headers_for(manager)
    )
    assert response.status_code == 403


def test_list_organization_users_by_role(admin, member, finance, test_org):
    response = client.get(
        f"/api/organizations/{test_org.id}/users", params={"role": "finance"}, headers=auth_headers_for(admin)
    )
    body = response.json()
    assert body["meta"]["total"] == 1
    assert body["data"][0]["id"] == finance.id


def test_stats_for_empty_organization(admin, test_org):
    response = client.get(f"/api/organizations/{test_org.id}/stats", headers=auth_headers_for(admin))
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["users_total"] == 1
    assert stats["users_by_role"] == {"admin": 1}
    assert stats["projects_total"] == 0
    assert stats["tasks_total"] == 0
    assert stats["financial"] == {
        "total_budget": 0,
        "expenses_total": 0,
        "expenses_by_status": {},
        "bills_paid_total": 0,
        "bills_unpaid_total": 0,
        "hours_logged": 0,
        "timesheet_cost": 0,
    }


def test_stats_aggregate_records(admin, member, finance, test_org):
    project_id = create_project(test_org.id, name="Ops", budget=5000, status="in_progress")
    create_project(test_org.id, name="Later", budget=1000)
    create_expense(test_org.id, member.id, amount=120, status="approved")
    create_expense(test_org.id, member.id, amount=30)

    db = TestingSessionLocal()
    db.add(Task(project_id=project_id, title="Kickoff", status="new", priority=2))
    db.commit()
    db.close()

    finance_headers = auth_headers_for(finance)
    paid = client.post("/api/finance/vendor-bills", json={
        "vendor_name": "Hosting Inc", "amount": 300
    }, headers=finance_headers).json()["data"]
    client.post(f"/api/finance/vendor-bills/{paid['id']}/pay", headers=finance_headers)
    client.post("/api/finance/vendor-bills", json={"vendor_name": "Paper Co", "amount": 45}, headers=finance_headers)

    stats = client.get(f"/api/organizations/{test_org.id}/stats", headers=auth_headers_for(admin)).json()["data"]

    assert stats["users_total"] == 3
    assert stats["projects_by_status"] == {"in_progress": 1, "planned": 1}
    assert stats["tasks_total"] == 1
    assert stats["financial"]["total_budget"] == 6000
    assert stats["financial"]["expenses_total"] == 150
    assert stats["financial"]["expenses_by_status"] == {"approved": 120, "draft": 30}
    assert stats["financial"]["bills_paid_total"] == 300
    assert stats["financial"]["bills_unpaid_total"] == 45
