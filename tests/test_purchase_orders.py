from conftest import client, auth_headers_for, create_project, TestingSessionLocal
from app.models.event import Event


def create_purchase_order(headers, **overrides):
    payload = {"po_number": "PO-100", "vendor_name": "Acme Supplies", "total_amount": 500.0}
    payload.update(overrides)
    response = client.post("/api/finance/purchase-orders", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_bill(headers, purchase_order_id, amount=250.0):
    response = client.post("/api/finance/vendor-bills", json={
        "vendor_name": "Acme Supplies", "amount": amount, "purchase_order_id": purchase_order_id
    }, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def po_status(headers, purchase_order_id):
    return client.get(f"/api/finance/purchase-orders/{purchase_order_id}", headers=headers).json()["data"]["status"]


def test_create_starts_as_draft(finance):
    po = create_purchase_order(auth_headers_for(finance), metadata={"terms": "net30"})
    assert po["status"] == "draft"
    assert po["total_amount"] == 500.0
    assert po["metadata"] == {"terms": "net30"}
    assert po["order_date"] is not None


def test_member_cannot_create_purchase_order(member):
    response = client.post(
        "/api/finance/purchase-orders", json={"po_number": "PO-1", "total_amount": 10}, headers=auth_headers_for(member)
    )
    assert response.status_code == 403


def test_confirm_then_cancel(finance):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)

    response = client.post(f"/api/finance/purchase-orders/{po['id']}/confirm", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "confirmed"

    response = client.post(f"/api/finance/purchase-orders/{po['id']}/cancel", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"

    response = client.post(f"/api/finance/purchase-orders/{po['id']}/confirm", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot transition from 'cancelled' to 'confirmed'"


def test_update_only_draft(finance):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)
    response = client.put(f"/api/finance/purchase-orders/{po['id']}", json={"total_amount": 750}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["total_amount"] == 750

    client.post(f"/api/finance/purchase-orders/{po['id']}/confirm", headers=headers)
    response = client.put(f"/api/finance/purchase-orders/{po['id']}", json={"total_amount": 1}, headers=headers)
    assert response.status_code == 400


def test_update_rejects_null_total(finance):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)
    response = client.put(f"/api/finance/purchase-orders/{po['id']}", json={"total_amount": None}, headers=headers)
    assert response.status_code == 400
    assert client.get(f"/api/finance/purchase-orders/{po['id']}", headers=headers).json()["data"]["total_amount"] == 500


def test_paying_last_bill_marks_order_billed(finance):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)
    client.post(f"/api/finance/purchase-orders/{po['id']}/confirm", headers=headers)
    first = create_bill(headers, po["id"])
    second = create_bill(headers, po["id"])

    client.post(f"/api/finance/vendor-bills/{first['id']}/pay", headers=headers)
    assert po_status(headers, po["id"]) == "confirmed"

    response = client.post(f"/api/finance/vendor-bills/{second['id']}/pay", headers=headers)
    assert response.status_code == 200
    assert po_status(headers, po["id"]) == "billed"

    db = TestingSessionLocal()
    event = db.query(Event).filter(Event.entity_id == po["id"], Event.event_type == "purchase_order.billed").one()
    db.close()
    assert event.payload["triggered_by_bill"] == second["id"]


def test_paying_bill_of_draft_order_leaves_it_draft(finance):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)
    bill = create_bill(headers, po["id"])

    client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=headers)

    assert po_status(headers, po["id"]) == "draft"


def test_cancelled_and_deleted_bills_do_not_block_billing(finance):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)
    client.post(f"/api/finance/purchase-orders/{po['id']}/confirm", headers=headers)
    paid = create_bill(headers, po["id"])
    cancelled = create_bill(headers, po["id"])
    deleted = create_bill(headers, po["id"])
    client.post(f"/api/finance/vendor-bills/{cancelled['id']}/cancel", headers=headers)
    client.delete(f"/api/finance/vendor-bills/{deleted['id']}", headers=headers)

    client.post(f"/api/finance/vendor-bills/{paid['id']}/pay", headers=headers)

    assert po_status(headers, po["id"]) == "billed"


def test_bill_cannot_link_cancelled_or_foreign_order(finance, make_user, other_org):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)
    client.post(f"/api/finance/purchase-orders/{po['id']}/cancel", headers=headers)
    response = client.post(
        "/api/finance/vendor-bills", json={"amount": 10, "purchase_order_id": po["id"]}, headers=headers
    )
    assert response.status_code == 400

    outsider = make_user("finance", organization_id=other_org.id)
    foreign = create_purchase_order(auth_headers_for(outsider))
    response = client.post(
        "/api/finance/vendor-bills", json={"amount": 10, "purchase_order_id": foreign["id"]}, headers=headers
    )
    assert response.status_code == 400


def test_list_filters(finance, test_org):
    headers = auth_headers_for(finance)
    project_id = create_project(test_org.id)
    create_purchase_order(headers, project_id=project_id)
    confirmed = create_purchase_order(headers, po_number="PO-200", vendor_name="Globex")
    client.post(f"/api/finance/purchase-orders/{confirmed['id']}/confirm", headers=headers)

    response = client.get("/api/finance/purchase-orders", params={"status": "confirmed"}, headers=headers)
    assert response.json()["meta"]["total"] == 1
    assert response.json()["data"][0]["po_number"] == "PO-200"

    response = client.get("/api/finance/purchase-orders", params={"project_id": project_id}, headers=headers)
    assert response.json()["meta"]["total"] == 1

    response = client.get("/api/finance/purchase-orders", params={"vendor_name": "glob"}, headers=headers)
    assert response.json()["meta"]["total"] == 1


def test_order_in_other_organization_is_not_found(finance, make_user, other_org):
    outsider = make_user("finance", organization_id=other_org.id)
    po = create_purchase_order(auth_headers_for(outsider))
    response = client.post(f"/api/finance/purchase-orders/{po['id']}/confirm", headers=auth_headers_for(finance))
    assert response.status_code == 404


def test_delete_unless_billed(finance):
    headers = auth_headers_for(finance)
    po = create_purchase_order(headers)
    assert client.delete(f"/api/finance/purchase-orders/{po['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/finance/purchase-orders/{po['id']}", headers=headers).status_code == 404

    billed = create_purchase_order(headers, po_number="PO-300")
    client.post(f"/api/finance/purchase-orders/{billed['id']}/confirm", headers=headers)
    bill = create_bill(headers, billed["id"])
    client.post(f"/api/finance/vendor-bills/{bill['id']}/pay", headers=headers)
    response = client.delete(f"/api/finance/purchase-orders/{billed['id']}", headers=headers)
    assert response.status_code == 400
