from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any
from datetime import datetime, date
from app.schemas.user import reject_null


class VendorBillBase(BaseModel):
    vendor_name: Optional[str] = Field(None, max_length=255)
    project_id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    bill_date: Optional[date] = None
    amount: float = Field(..., gt=0)


class VendorBillCreate(VendorBillBase):
    metadata: Optional[Dict[str, Any]] = None


class VendorBillUpdate(BaseModel):
    vendor_name: Optional[str] = Field(None, max_length=255)
    project_id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    bill_date: Optional[date] = None
    amount: Optional[float] = Field(None, gt=0)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('bill_date', 'amount')
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)


class VendorBillResponse(VendorBillBase):
    id: int
    organization_id: int
    bill_date: date
    status: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra")
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
