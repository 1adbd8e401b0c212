from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from app.core.database import Base


class ExpenseStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


# Legal moves of the approval workflow; rejected and paid are terminal
EXPENSE_TRANSITIONS = {
    ExpenseStatus.DRAFT.value: [ExpenseStatus.SUBMITTED.value],
    ExpenseStatus.SUBMITTED.value: [ExpenseStatus.APPROVED.value, ExpenseStatus.REJECTED.value],
    ExpenseStatus.APPROVED.value: [ExpenseStatus.PAID.value],
    ExpenseStatus.REJECTED.value: [],
    ExpenseStatus.PAID.value: [],
}


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    billable = Column(Boolean, default=False, nullable=False)
    note = Column(Text, nullable=True)
    receipt_url = Column(String(500), nullable=True)
    status = Column(String(20), default=ExpenseStatus.DRAFT.value, nullable=False, index=True)

    # Workflow
    submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="expenses", foreign_keys=[user_id])
    approver = relationship("User", foreign_keys=[approved_by])
    project = relationship("Project", back_populates="expenses")
