from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.api.deps import check_identity_hints, get_db, get_pagination, require_role, Pagination
from app.api.routes.expenses import get_expense_filters, list_expenses_response
from app.core.permissions import FINANCE_DOCUMENT_ROLES
from app.core.responses import paginated_response, success_response, unwrap
from app.models.user import User
from app.schemas.expense import ExpenseProjectUpdate, ExpenseResponse
from app.schemas.purchase_order import PurchaseOrderCreate, PurchaseOrderResponse, PurchaseOrderUpdate
from app.schemas.vendor_bill import VendorBillCreate, VendorBillResponse, VendorBillUpdate
from app.services.bill_service import bill_service
from app.services.expense_service import expense_service
from app.services.purchase_order_service import purchase_order_service

router = APIRouter(prefix="/finance", tags=["Finance"])


@router.get("/expenses")
async def list_finance_expenses(
    filters: dict = Depends(get_expense_filters),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(FINANCE_DOCUMENT_ROLES))
):
    """All expenses of the organization for finance review."""
    return list_expenses_response(db, current_user, filters, pagination)


@router.patch("/expenses/{expense_id}")
async def reassign_expense_project(
    expense_id: int,
    body: ExpenseProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    """Move an expense to another project, or detach it with ``project_id: null``."""
    expense = unwrap(
        expense_service.reassign_project(
            db, expense_id, current_user.organization_id, current_user.id, body.project_id
        ),
        "expense"
    )
    return success_response(ExpenseResponse.model_validate(expense))


@router.post("/vendor-bills", status_code=status.HTTP_201_CREATED)
async def create_vendor_bill(
    bill_data: VendorBillCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    bill = unwrap(
        bill_service.create_bill(db, current_user.organization_id, current_user, bill_data.model_dump()), "bill"
    )
    return success_response(VendorBillResponse.model_validate(bill))


@router.get("/vendor-bills")
async def list_vendor_bills(
    status: Optional[str] = None,
    project_id: Optional[int] = None,
    purchase_order_id: Optional[int] = None,
    vendor_name: Optional[str] = None,
    unpaid: bool = False,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(FINANCE_DOCUMENT_ROLES))
):
    result = bill_service.list_bills(
        db, current_user.organization_id, status=status, project_id=project_id,
        purchase_order_id=purchase_order_id, vendor_name=vendor_name, unpaid_only=unpaid,
        limit=pagination.page_size, offset=pagination.offset
    )
    return paginated_response(
        [VendorBillResponse.model_validate(b) for b in result["bills"]],
        pagination.page, pagination.page_size, result["total"]
    )


@router.get("/vendor-bills/{bill_id}")
async def get_vendor_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(FINANCE_DOCUMENT_ROLES))
):
    bill = unwrap(bill_service.get_bill(db, bill_id, current_user.organization_id), "bill")
    return success_response(VendorBillResponse.model_validate(bill))


@router.put("/vendor-bills/{bill_id}")
async def update_vendor_bill(
    bill_id: int,
    bill_data: VendorBillUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    bill = unwrap(
        bill_service.update_bill(
            db, bill_id, current_user.organization_id, current_user, bill_data.model_dump(exclude_unset=True)
        ),
        "bill"
    )
    return success_response(VendorBillResponse.model_validate(bill))


@router.delete("/vendor-bills/{bill_id}")
async def delete_vendor_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    unwrap(bill_service.delete_bill(db, bill_id, current_user.organization_id, current_user))
    return success_response({"id": bill_id, "deleted": True})


@router.post("/vendor-bills/{bill_id}/receive")
async def receive_vendor_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    bill = unwrap(bill_service.receive_bill(db, bill_id, current_user.organization_id, current_user), "bill")
    return success_response(VendorBillResponse.model_validate(bill))


@router.post("/vendor-bills/{bill_id}/pay")
async def pay_vendor_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    """Unpaid (draft or received) -> paid. Finance and admins only."""
    bill = unwrap(bill_service.mark_paid(db, bill_id, current_user.organization_id, current_user), "bill")
    return success_response(VendorBillResponse.model_validate(bill))


@router.post("/vendor-bills/{bill_id}/cancel")
async def cancel_vendor_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    bill = unwrap(bill_service.cancel_bill(db, bill_id, current_user.organization_id, current_user), "bill")
    return success_response(VendorBillResponse.model_validate(bill))


@router.post("/purchase-orders", status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    order_data: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    purchase_order = unwrap(
        purchase_order_service.create_purchase_order(
            db, current_user.organization_id, current_user, order_data.model_dump()
        ),
        "purchase_order"
    )
    return success_response(PurchaseOrderResponse.model_validate(purchase_order))


@router.get("/purchase-orders")
async def list_purchase_orders(
    status: Optional[str] = None,
    project_id: Optional[int] = None,
    vendor_name: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(FINANCE_DOCUMENT_ROLES))
):
    result = purchase_order_service.list_purchase_orders(
        db, current_user.organization_id, status=status, project_id=project_id, vendor_name=vendor_name,
        limit=pagination.page_size, offset=pagination.offset
    )
    return paginated_response(
        [PurchaseOrderResponse.model_validate(po) for po in result["purchase_orders"]],
        pagination.page, pagination.page_size, result["total"]
    )


@router.get("/purchase-orders/{purchase_order_id}")
async def get_purchase_order(
    purchase_order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(FINANCE_DOCUMENT_ROLES))
):
    purchase_order = unwrap(
        purchase_order_service.get_purchase_order(db, purchase_order_id, current_user.organization_id),
        "purchase_order"
    )
    return success_response(PurchaseOrderResponse.model_validate(purchase_order))


@router.put("/purchase-orders/{purchase_order_id}")
async def update_purchase_order(
    purchase_order_id: int,
    order_data: PurchaseOrderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    purchase_order = unwrap(
        purchase_order_service.update_purchase_order(
            db, purchase_order_id, current_user.organization_id, current_user,
            order_data.model_dump(exclude_unset=True)
        ),
        "purchase_order"
    )
    return success_response(PurchaseOrderResponse.model_validate(purchase_order))


@router.delete("/purchase-orders/{purchase_order_id}")
async def delete_purchase_order(
    purchase_order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    unwrap(
        purchase_order_service.delete_purchase_order(
            db, purchase_order_id, current_user.organization_id, current_user
        )
    )
    return success_response({"id": purchase_order_id, "deleted": True})


@router.post("/purchase-orders/{purchase_order_id}/confirm")
async def confirm_purchase_order(
    purchase_order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    purchase_order = unwrap(
        purchase_order_service.confirm_purchase_order(
            db, purchase_order_id, current_user.organization_id, current_user
        ),
        "purchase_order"
    )
    return success_response(PurchaseOrderResponse.model_validate(purchase_order))


@router.post("/purchase-orders/{purchase_order_id}/cancel")
async def cancel_purchase_order(
    purchase_order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    purchase_order = unwrap(
        purchase_order_service.cancel_purchase_order(
            db, purchase_order_id, current_user.organization_id, current_user
        ),
        "purchase_order"
    )
    return success_response(PurchaseOrderResponse.model_validate(purchase_order))
