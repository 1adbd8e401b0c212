from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any
from datetime import datetime, date
from app.schemas.user import reject_null


class PurchaseOrderBase(BaseModel):
    po_number: str = Field(..., min_length=1, max_length=50)
    vendor_name: Optional[str] = Field(None, max_length=255)
    project_id: Optional[int] = None
    order_date: Optional[date] = None
    total_amount: float = Field(..., gt=0)


class PurchaseOrderCreate(PurchaseOrderBase):
    metadata: Optional[Dict[str, Any]] = None


class PurchaseOrderUpdate(BaseModel):
    po_number: Optional[str] = Field(None, min_length=1, max_length=50)
    vendor_name: Optional[str] = Field(None, max_length=255)
    project_id: Optional[int] = None
    order_date: Optional[date] = None
    total_amount: Optional[float] = Field(None, gt=0)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('po_number', 'order_date', 'total_amount')
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)


class PurchaseOrderResponse(PurchaseOrderBase):
    id: int
    organization_id: int
    order_date: date
    status: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
