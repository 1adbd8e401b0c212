from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime, date
from app.models.task import TaskStatus, TimesheetStatus
from app.schemas.user import reject_null

TASK_STATUSES = [s.value for s in TaskStatus]
TIMESHEET_STATUSES = [s.value for s in TimesheetStatus]


class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    priority: int = Field(2, ge=1, le=4)
    estimate_hours: Optional[float] = Field(None, ge=0)
    due_date: Optional[date] = None


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    priority: Optional[int] = Field(None, ge=1, le=4)
    estimate_hours: Optional[float] = Field(None, ge=0)
    due_date: Optional[date] = None

    @field_validator('title', 'priority')
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)


class TaskStatusUpdate(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def check_status(cls, v):
        if v not in TASK_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(TASK_STATUSES)}")
        return v


class TaskResponse(TaskBase):
    id: int
    project_id: int
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimesheetCreate(BaseModel):
    start: datetime
    end: datetime
    billable: bool = True
    notes: Optional[str] = None

    @model_validator(mode='after')
    def check_range(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class TimesheetResponse(BaseModel):
    id: int
    project_id: int
    task_id: Optional[int] = None
    user_id: int
    start: datetime
    end: datetime
    duration_hours: float
    cost_at_time: float
    billable: bool
    notes: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimesheetStatusUpdate(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def check_status(cls, v):
        if v not in TIMESHEET_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(TIMESHEET_STATUSES)}")
        return v
