from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, date
from app.models.project import ProjectStatus
from app.schemas.user import UserBrief, reject_null

PROJECT_STATUSES = [s.value for s in ProjectStatus]


class ProjectBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    project_manager_id: Optional[int] = None
    budget: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ProjectCreate(ProjectBase):
    status: str = ProjectStatus.PLANNED.value
    member_ids: List[int] = []

    @field_validator('status')
    @classmethod
    def check_status(cls, v):
        if v not in PROJECT_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(PROJECT_STATUSES)}")
        return v


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    project_manager_id: Optional[int] = None
    status: Optional[str] = None
    budget: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator('status')
    @classmethod
    def check_status(cls, v):
        if v is not None and v not in PROJECT_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(PROJECT_STATUSES)}")
        return v

    @field_validator('name', 'status')
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)


class ProjectResponse(ProjectBase):
    id: int
    organization_id: int
    status: str
    created_at: datetime
    updated_at: datetime
    members: List[UserBrief] = []

    class Config:
        from_attributes = True


class ProjectMemberAdd(BaseModel):
    user_id: int
    role_in_project: Optional[str] = Field(None, max_length=50)
