from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, date
import enum
from app.core.database import Base


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    BILLED = "billed"
    CANCELLED = "cancelled"


# billed is only reached through its bills being paid
PURCHASE_ORDER_TRANSITIONS = {
    PurchaseOrderStatus.DRAFT.value: [PurchaseOrderStatus.CONFIRMED.value, PurchaseOrderStatus.CANCELLED.value],
    PurchaseOrderStatus.CONFIRMED.value: [PurchaseOrderStatus.BILLED.value, PurchaseOrderStatus.CANCELLED.value],
    PurchaseOrderStatus.BILLED.value: [],
    PurchaseOrderStatus.CANCELLED.value: [],
}


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    po_number = Column(String(50), nullable=False)
    vendor_name = Column(String(255), nullable=True)
    order_date = Column(Date, nullable=False, default=date.today)
    total_amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), default=PurchaseOrderStatus.DRAFT.value, nullable=False, index=True)
    extra = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    project = relationship("Project")
    bills = relationship("VendorBill", back_populates="purchase_order")
