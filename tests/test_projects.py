from conftest import client, auth_headers_for, create_project


def test_manager_creates_project_with_members(manager, member):
    response = client.post("/api/projects", json={
        "name": "Website relaunch",
        "code": "WEB",
        "budget": 12000,
        "project_manager_id": manager.id,
        "member_ids": [member.id]
    }, headers=auth_headers_for(manager))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "planned"
    assert data["budget"] == 12000
    assert [m["id"] for m in data["members"]] == [member.id]


def test_member_cannot_create_project(member):
    response = client.post("/api/projects", json={"name": "Nope"}, headers=auth_headers_for(member))
    assert response.status_code == 403


def test_end_date_before_start_date(manager):
    response = client.post("/api/projects", json={
        "name": "Backwards", "start_date": "2026-05-01", "end_date": "2026-04-01"
    }, headers=auth_headers_for(manager))
    assert response.status_code == 400


def test_member_only_sees_own_projects(member, manager):
    mine = create_project(member.organization_id, name="Mine")
    create_project(member.organization_id, name="Not mine")
    client.post(f"/api/projects/{mine}/members", json={"user_id": member.id}, headers=auth_headers_for(manager))

    response = client.get("/api/projects", headers=auth_headers_for(member))
    assert response.json()["meta"]["total"] == 1
    assert response.json()["data"][0]["id"] == mine

    assert client.get("/api/projects", headers=auth_headers_for(manager)).json()["meta"]["total"] == 2


def test_member_gets_404_for_project_they_are_not_on(member):
    project_id = create_project(member.organization_id)
    assert client.get(f"/api/projects/{project_id}", headers=auth_headers_for(member)).status_code == 404


def test_project_in_other_organization_is_not_found(manager, other_org):
    project_id = create_project(other_org.id)
    assert client.get(f"/api/projects/{project_id}", headers=auth_headers_for(manager)).status_code == 404


def test_add_member_twice_is_conflict(manager, member):
    project_id = create_project(manager.organization_id)
    headers = auth_headers_for(manager)
    assert client.post(f"/api/projects/{project_id}/members", json={"user_id": member.id}, headers=headers).status_code == 200
    assert client.post(f"/api/projects/{project_id}/members", json={"user_id": member.id}, headers=headers).status_code == 409


def test_remove_member(manager, member):
    project_id = create_project(manager.organization_id)
    headers = auth_headers_for(manager)
    client.post(f"/api/projects/{project_id}/members", json={"user_id": member.id}, headers=headers)

    response = client.delete(f"/api/projects/{project_id}/members/{member.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["members"] == []
    assert client.delete(f"/api/projects/{project_id}/members/{member.id}", headers=headers).status_code == 404


def test_update_and_delete_project(manager):
    project_id = create_project(manager.organization_id)
    headers = auth_headers_for(manager)

    response = client.put(f"/api/projects/{project_id}", json={"status": "in_progress"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "in_progress"

    assert client.delete(f"/api/projects/{project_id}", headers=headers).status_code == 200
    assert client.get(f"/api/projects/{project_id}", headers=headers).status_code == 404
