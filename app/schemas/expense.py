from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict
from datetime import datetime
from app.models.expense import ExpenseStatus
from app.schemas.user import UserBrief, reject_null

EXPENSE_STATUSES = [s.value for s in ExpenseStatus]


class ExpenseBase(BaseModel):
    amount: float = Field(..., gt=0)
    project_id: Optional[int] = None
    billable: bool = False
    note: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    project_id: Optional[int] = None
    billable: Optional[bool] = None
    note: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)

    @field_validator('amount', 'billable')
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)


class ExpenseReject(BaseModel):
    reason: Optional[str] = None


class ExpenseProjectUpdate(BaseModel):
    """Body of the finance reassignment; ``project_id: null`` unlinks the project."""
    project_id: Optional[int] = None


class ExpenseFilters(BaseModel):
    status: Optional[str] = None
    user_id: Optional[int] = None
    project_id: Optional[int] = None
    billable: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v):
        if v is not None and v not in EXPENSE_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(EXPENSE_STATUSES)}")
        return v


class ExpenseResponse(ExpenseBase):
    id: int
    organization_id: int
    user_id: Optional[int] = None
    status: str
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    paid_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserBrief] = None

    class Config:
        from_attributes = True


class ExpenseStats(BaseModel):
    count: int = 0
    total: float = 0
    average: float = 0
    by_status: Dict[str, float] = {}
    count_by_status: Dict[str, int] = {}
    billable_total: float = 0
    non_billable_total: float = 0
