from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, date
import enum
from app.core.database import Base


class BillStatus(str, enum.Enum):
    DRAFT = "draft"
    RECEIVED = "received"
    PAID = "paid"
    CANCELLED = "cancelled"


# draft and received are the unpaid states; either can be paid in one step
BILL_TRANSITIONS = {
    BillStatus.DRAFT.value: [BillStatus.RECEIVED.value, BillStatus.PAID.value, BillStatus.CANCELLED.value],
    BillStatus.RECEIVED.value: [BillStatus.PAID.value, BillStatus.CANCELLED.value],
    BillStatus.PAID.value: [],
    BillStatus.CANCELLED.value: [],
}


class VendorBill(Base):
    __tablename__ = "vendor_bills"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True, index=True)
    vendor_name = Column(String(255), nullable=True)
    bill_date = Column(Date, nullable=False, default=date.today)
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), default=BillStatus.DRAFT.value, nullable=False, index=True)
    extra = Column("metadata", JSON, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    project = relationship("Project")
    purchase_order = relationship("PurchaseOrder", back_populates="bills")
