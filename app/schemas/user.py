from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Dict, List
from datetime import datetime, date
from app.models.user import UserRole

ROLE_VALUES = [r.value for r in UserRole]


def validate_role(value):
    if value is not None and value not in ROLE_VALUES:
        raise ValueError(f"role must be one of: {', '.join(ROLE_VALUES)}")
    return value


def reject_null(value):
    """Partial updates may omit a required column but not clear it."""
    if value is None:
        raise ValueError("may not be null")
    return value


class UserBase(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    role: str = UserRole.MEMBER.value
    hourly_rate: float = Field(0, ge=0)

    @field_validator('role')
    @classmethod
    def check_role(cls, v):
        return validate_role(v)


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)

    @field_validator('role')
    @classmethod
    def check_role(cls, v):
        return validate_role(v)

    @field_validator('role', 'hourly_rate', 'is_active')
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)


class UserResponse(UserBase):
    id: int
    organization_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserBrief(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str

    class Config:
        from_attributes = True


class UserHourlyRate(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    hourly_rate: float

    class Config:
        from_attributes = True


class HourlyRateUpdate(BaseModel):
    hourly_rate: float = Field(..., ge=0)


class UserProjectTask(BaseModel):
    id: int
    title: str
    status: str
    priority: int
    due_date: Optional[date] = None
    hours_logged: float = 0


class UserProject(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    status: str
    role_in_project: Optional[str] = None
    tasks: List[UserProjectTask] = []


class TimesheetSummary(BaseModel):
    count: int = 0
    hours: float = 0
    cost: float = 0


class UserStats(BaseModel):
    user_id: int
    tasks_total: int = 0
    tasks_by_status: Dict[str, int] = {}
    timesheets_last_30_days: TimesheetSummary
    projects_count: int = 0
    expenses_count: int = 0
    expenses_total: float = 0


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SignupRequest(BaseModel):
    """Create an account.

    Exactly one path applies: ``invitation_token`` joins the inviting
    organization, ``organization_id`` joins an existing organization as a
    member, otherwise ``organization_name`` creates a new organization and
    the user becomes its admin.
    """
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = None
    organization_name: Optional[str] = Field(None, min_length=1, max_length=255)
    organization_id: Optional[int] = None
    role: Optional[str] = None
    invitation_token: Optional[str] = None

    @field_validator('role')
    @classmethod
    def check_role(cls, v):
        return validate_role(v)
