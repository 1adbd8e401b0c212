import pytest
from conftest import client, auth_headers_for, create_project


def create_bill(headers, **overrides):
    payload = {"vendor_name": "Acme Supplies", "amount": 250.0, "bill_date": "2026-03-01"}
    payload.update(overrides)
    response = client.post("/api/finance/vendor-bills", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_bill_starts_as_draft(finance):
    bill = create_bill(auth_headers_for(finance), metadata={"invoice_number": "INV-7"})
    assert bill["status"] == "draft"
    assert bill["amount"] == 250.0
    assert bill["metadata"] == {"invoice_number": "INV-7"}


def test_member_cannot_create_bill(member):
    response = client.post(
        "/api/finance/vendor-bills", json={"amount": 10}, headers=auth_headers_for(member)
    )
    assert response.status_code == 403


@pytest.mark.parametrize("receive_first", [False, True])
def test_mark_paid_from_unpaid_states(finance, receive_first):
    headers = auth_headers_for(finance)
    bill = create_bill(headers)
    if receive_first:
        response = client.post(f"/api/finance/vendor-bills/{bill['id']}/receive", headers=headers)
        assert response.json()["data"]["status"] == "received"

    response = client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "paid"
    assert response.json()["data"]["paid_at"] is not None


def test_mark_paid_twice_fails(finance):
    headers = auth_headers_for(finance)
    bill = create_bill(headers)
    assert client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=headers).status_code == 200

    response = client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot transition from 'paid' to 'paid'"


def test_cancelled_bill_cannot_be_paid(finance):
    headers = auth_headers_for(finance)
    bill = create_bill(headers)
    assert client.post(f"/api/finance/vendor-bills/{bill['id']}/cancel", headers=headers).status_code == 200

    response = client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=headers)
    assert response.status_code == 400
    assert client.get(f"/api/finance/vendor-bills/{bill['id']}", headers=headers).json()["data"]["status"] == "cancelled"


def test_manager_cannot_pay_bill(finance, manager):
    bill = create_bill(auth_headers_for(finance))
    response = client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=auth_headers_for(manager))
    assert response.status_code == 403
    status = client.get(f"/api/finance/vendor-bills/{bill['id']}", headers=auth_headers_for(finance)).json()["data"]["status"]
    assert status == "draft"


def test_bill_in_other_organization_is_not_found(finance, make_user, other_org):
    outsider = make_user("finance", organization_id=other_org.id)
    bill = create_bill(auth_headers_for(outsider))
    response = client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=auth_headers_for(finance))
    assert response.status_code == 404


def test_organization_hint_must_match(finance, other_org):
    headers = auth_headers_for(finance)
    bill = create_bill(headers)
    response = client.post(
        f"/api/finance/vendor-bills/{bill['id']}/pay", params={"organizationId": other_org.id}, headers=headers
    )
    assert response.status_code == 403


def test_update_only_draft(finance):
    headers = auth_headers_for(finance)
    bill = create_bill(headers)
    response = client.put(f"/api/finance/vendor-bills/{bill['id']}", json={"amount": 300}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["amount"] == 300

    client.post(f"/api/finance/vendor-bills/{bill['id']}/receive", headers=headers)
    response = client.put(f"/api/finance/vendor-bills/{bill['id']}", json={"amount": 1}, headers=headers)
    assert response.status_code == 400


def test_list_unpaid_bills(finance, test_org):
    headers = auth_headers_for(finance)
    project_id = create_project(test_org.id)
    paid = create_bill(headers, project_id=project_id)
    create_bill(headers, vendor_name="Other Vendor")
    client.post(f"/api/finance/vendor-bills/{paid['id']}/pay", headers=headers)

    response = client.get("/api/finance/vendor-bills", params={"unpaid": True}, headers=headers)
    assert response.json()["meta"]["total"] == 1
    assert response.json()["data"][0]["vendor_name"] == "Other Vendor"

    response = client.get("/api/finance/vendor-bills", params={"project_id": project_id}, headers=headers)
    assert response.json()["meta"]["total"] == 1


def test_delete_bill(finance):
    headers = auth_headers_for(finance)
    bill = create_bill(headers)
    assert client.delete(f"/api/finance/vendor-bills/{bill['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/finance/vendor-bills/{bill['id']}", headers=headers).status_code == 404
