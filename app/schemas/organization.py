from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict
from datetime import datetime
from app.schemas.user import reject_null


class OrganizationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    currency: str = Field("USD", min_length=3, max_length=3)
    timezone: str = "UTC"


class OrganizationCreate(OrganizationBase):
    pass


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    timezone: Optional[str] = None

    @field_validator('name', 'currency', 'timezone')
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)


class OrganizationResponse(OrganizationBase):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FinancialStats(BaseModel):
    total_budget: float = 0
    expenses_total: float = 0
    expenses_by_status: Dict[str, float] = {}
    bills_paid_total: float = 0
    bills_unpaid_total: float = 0
    hours_logged: float = 0
    timesheet_cost: float = 0


class OrganizationStats(BaseModel):
    organization_id: int
    users_total: int = 0
    users_by_role: Dict[str, int] = {}
    projects_total: int = 0
    projects_by_status: Dict[str, int] = {}
    tasks_total: int = 0
    financial: FinancialStats
