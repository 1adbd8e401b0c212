from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from app.api.deps import check_identity_hints, get_current_user, get_db, get_pagination, Pagination
from app.core.permissions import can_view_all_expenses
from app.core.responses import ServiceError, paginated_response, success_response, unwrap
from app.models.user import User
from app.schemas.expense import (
    ExpenseCreate, ExpenseFilters, ExpenseReject, ExpenseResponse, ExpenseStats, ExpenseUpdate
)
from app.services.expense_service import expense_service
from app.services.export_service import export_service

router = APIRouter(prefix="/expenses", tags=["Expenses"])


def get_expense_filters(
    status: Optional[str] = None,
    user_id: Optional[int] = Query(None, alias="user"),
    project_id: Optional[int] = None,
    billable: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None
) -> dict:
    try:
        filters = ExpenseFilters(
            status=status, user_id=user_id, project_id=project_id, billable=billable,
            start_date=start_date, end_date=end_date, min_amount=min_amount, max_amount=max_amount
        )
    except ValueError as e:
        raise ServiceError("Invalid filters", "validation", [{"msg": str(e)}])
    return filters.model_dump(exclude_none=True)


def list_expenses_response(db: Session, current_user: User, filters: dict, pagination: Pagination) -> dict:
    # Members only see their own expenses
    if not can_view_all_expenses(current_user.role):
        filters["user_id"] = current_user.id
    result = expense_service.list_expenses(
        db, current_user.organization_id, filters, pagination.page_size, pagination.offset
    )
    return paginated_response(
        [ExpenseResponse.model_validate(e) for e in result["expenses"]],
        pagination.page, pagination.page_size, result["total"]
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a new draft expense."""
    expense = unwrap(
        expense_service.create_expense(db, current_user.organization_id, current_user.id, expense_data.model_dump()),
        "expense"
    )
    return success_response(ExpenseResponse.model_validate(expense))


@router.get("")
async def list_expenses(
    filters: dict = Depends(get_expense_filters),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List expenses with filters (status, user, project, billable, dates, amounts)."""
    return list_expenses_response(db, current_user, filters, pagination)


@router.get("/stats")
async def get_expense_stats(
    filters: dict = Depends(get_expense_filters),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not can_view_all_expenses(current_user.role):
        filters["user_id"] = current_user.id
    stats = unwrap(expense_service.get_expense_stats(db, current_user.organization_id, filters), "stats")
    return success_response(ExpenseStats(**stats))


@router.get("/export/csv")
async def export_expenses_csv(
    filters: dict = Depends(get_expense_filters),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Export expenses to CSV with the same filters as the list."""
    if not can_view_all_expenses(current_user.role):
        filters["user_id"] = current_user.id
    rows = expense_service.export_rows(db, current_user.organization_id, filters)
    buffer = export_service.export_expenses(rows)

    filename = f"expenses_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
    return StreamingResponse(
        buffer,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/{expense_id}")
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    expense = unwrap(expense_service.get_expense(db, expense_id, current_user.organization_id), "expense")
    if not can_view_all_expenses(current_user.role) and expense.user_id != current_user.id:
        raise ServiceError("Expense not found", "not_found")
    return success_response(ExpenseResponse.model_validate(expense))


@router.put("/{expense_id}")
async def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Edit a draft expense."""
    expense = unwrap(
        expense_service.update_expense(
            db, expense_id, current_user.organization_id, current_user, expense_data.model_dump(exclude_unset=True)
        ),
        "expense"
    )
    return success_response(ExpenseResponse.model_validate(expense))


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    unwrap(expense_service.delete_expense(db, expense_id, current_user.organization_id, current_user))
    return success_response({"id": expense_id, "deleted": True})


@router.post("/{expense_id}/submit")
async def submit_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    expense = unwrap(
        expense_service.submit_expense(db, expense_id, current_user.organization_id, current_user.id), "expense"
    )
    return success_response(ExpenseResponse.model_validate(expense))


@router.post("/{expense_id}/approve")
async def approve_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    """submitted -> approved. Managers, project managers and admins only."""
    expense = unwrap(
        expense_service.approve_expense(db, expense_id, current_user.organization_id, current_user.id), "expense"
    )
    return success_response(ExpenseResponse.model_validate(expense))


@router.post("/{expense_id}/reject")
async def reject_expense(
    expense_id: int,
    body: Optional[ExpenseReject] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    expense = unwrap(
        expense_service.reject_expense(
            db, expense_id, current_user.organization_id, current_user.id, body.reason if body else None
        ),
        "expense"
    )
    return success_response(ExpenseResponse.model_validate(expense))


@router.post("/{expense_id}/pay")
async def pay_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    """approved -> paid. Finance and admins only."""
    expense = unwrap(
        expense_service.mark_as_paid(db, expense_id, current_user.organization_id, current_user.id), "expense"
    )
    return success_response(ExpenseResponse.model_validate(expense))
