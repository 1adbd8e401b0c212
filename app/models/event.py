from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from datetime import datetime
import enum
from app.core.database import Base


class EntityType(str, enum.Enum):
    EXPENSE = "expense"
    BILL = "vendor_bill"
    PURCHASE_ORDER = "purchase_order"
    INVITATION = "invitation"
    ORGANIZATION = "organization"
    USER = "user"
    PROJECT = "project"
    TASK = "task"
    TIMESHEET = "timesheet"


class Event(Base):
    """Append-only audit record of a change to a business entity."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=True)
    event_type = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
