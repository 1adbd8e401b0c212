from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional
from datetime import datetime
from app.schemas.user import validate_role


class InvitationCreate(BaseModel):
    email: EmailStr
    role: str

    @field_validator('role')
    @classmethod
    def check_role(cls, v):
        return validate_role(v)


class InvitationResponse(BaseModel):
    id: int
    organization_id: int
    email: str
    role: str
    invited_by_id: int
    status: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvitationDetail(InvitationResponse):
    """Invitation as shown to the invitee, with the organization name."""
    organization_name: Optional[str] = None
    invited_by_name: Optional[str] = None


class InvitationCreated(InvitationResponse):
    token: str
