import pytest
from conftest import client, auth_headers_for, create_project


@pytest.fixture
def project_id(manager):
    return create_project(manager.organization_id, name="Platform")


@pytest.fixture
def timesheet(manager, member, project_id):
    """Two hours logged by ``member`` on a task assigned to them."""
    task = client.post(
        f"/api/projects/{project_id}/tasks", json={"title": "Migrate", "assignee_id": member.id},
        headers=auth_headers_for(manager)
    ).json()["data"]
    response = client.post(f"/api/tasks/{task['id']}/timesheets", json={
        "start": "2026-03-02T09:00:00", "end": "2026-03-02T11:00:00"
    }, headers=auth_headers_for(member))
    assert response.status_code == 201, response.text
    return response.json()["data"]


def change_status(headers, timesheet_id, status):
    return client.patch(f"/api/timesheets/{timesheet_id}/status", json={"status": status}, headers=headers)


def test_logged_time_starts_as_draft(timesheet):
    assert timesheet["status"] == "draft"


def test_full_workflow(timesheet, member, manager):
    response = change_status(auth_headers_for(member), timesheet["id"], "submitted")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "submitted"

    manager_headers = auth_headers_for(manager)
    assert change_status(manager_headers, timesheet["id"], "approved").json()["data"]["status"] == "approved"
    assert change_status(manager_headers, timesheet["id"], "locked").json()["data"]["status"] == "locked"

    response = change_status(manager_headers, timesheet["id"], "draft")
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot transition from 'locked' to 'draft'"


def test_steps_cannot_be_skipped(timesheet, manager):
    response = change_status(auth_headers_for(manager), timesheet["id"], "approved")
    assert response.status_code == 400
    assert client.get(f"/api/timesheets/{timesheet['id']}", headers=auth_headers_for(manager)).json()["data"]["status"] == "draft"


def test_member_cannot_approve_own_time(timesheet, member):
    headers = auth_headers_for(member)
    change_status(headers, timesheet["id"], "submitted")

    response = change_status(headers, timesheet["id"], "approved")

    assert response.status_code == 403
    assert client.get(f"/api/timesheets/{timesheet['id']}", headers=headers).json()["data"]["status"] == "submitted"


def test_unknown_status_is_validation_error(timesheet, manager):
    response = change_status(auth_headers_for(manager), timesheet["id"], "archived")
    assert response.status_code == 400


def test_outsider_member_does_not_see_timesheet(timesheet, make_user):
    stranger = make_user("member")
    headers = auth_headers_for(stranger)
    assert client.get(f"/api/timesheets/{timesheet['id']}", headers=headers).status_code == 404
    assert change_status(headers, timesheet["id"], "submitted").status_code == 404


def test_timesheet_in_other_organization_is_not_found(timesheet, make_user, other_org):
    outsider = make_user("admin", organization_id=other_org.id)
    assert client.get(f"/api/timesheets/{timesheet['id']}", headers=auth_headers_for(outsider)).status_code == 404


def test_rate_change_reprices_only_drafts(timesheet, member, manager, admin, project_id):
    member_headers = auth_headers_for(member)
    change_status(member_headers, timesheet["id"], "submitted")
    task_id = timesheet["task_id"]
    draft = client.post(f"/api/tasks/{task_id}/timesheets", json={
        "start": "2026-03-03T09:00:00", "end": "2026-03-03T10:00:00"
    }, headers=member_headers).json()["data"]
    assert draft["cost_at_time"] == 40

    response = client.put(
        f"/api/users/{member.id}/hourly-rate", json={"hourly_rate": 55}, headers=auth_headers_for(admin)
    )
    assert response.status_code == 200
    assert response.json()["data"]["hourly_rate"] == 55
    assert response.json()["data"]["repriced_timesheets"] == 1

    manager_headers = auth_headers_for(manager)
    assert client.get(f"/api/timesheets/{draft['id']}", headers=manager_headers).json()["data"]["cost_at_time"] == 55
    assert client.get(f"/api/timesheets/{timesheet['id']}", headers=manager_headers).json()["data"]["cost_at_time"] == 80
