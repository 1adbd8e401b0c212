from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, Text, SmallInteger, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from app.core.database import Base


class TaskStatus(str, enum.Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskPriority(int, enum.Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


TASK_TRANSITIONS = {
    TaskStatus.NEW.value: [TaskStatus.IN_PROGRESS.value, TaskStatus.BLOCKED.value],
    TaskStatus.IN_PROGRESS.value: [TaskStatus.IN_REVIEW.value, TaskStatus.BLOCKED.value, TaskStatus.NEW.value],
    TaskStatus.IN_REVIEW.value: [TaskStatus.COMPLETED.value, TaskStatus.IN_PROGRESS.value, TaskStatus.BLOCKED.value],
    TaskStatus.BLOCKED.value: [TaskStatus.NEW.value, TaskStatus.IN_PROGRESS.value],
    TaskStatus.COMPLETED.value: [TaskStatus.IN_PROGRESS.value],  # reopen
}


class TimesheetStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    LOCKED = "locked"


# one way only; a locked timesheet is final
TIMESHEET_TRANSITIONS = {
    TimesheetStatus.DRAFT.value: [TimesheetStatus.SUBMITTED.value],
    TimesheetStatus.SUBMITTED.value: [TimesheetStatus.APPROVED.value],
    TimesheetStatus.APPROVED.value: [TimesheetStatus.LOCKED.value],
    TimesheetStatus.LOCKED.value: [],
}


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    priority = Column(SmallInteger, default=TaskPriority.MEDIUM.value, nullable=False)
    status = Column(String(20), default=TaskStatus.NEW.value, nullable=False)
    estimate_hours = Column(Numeric(8, 2), nullable=True)
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    project = relationship("Project", back_populates="tasks")
    assignee = relationship("User", back_populates="assigned_tasks")
    timesheets = relationship("Timesheet", back_populates="task", cascade="all, delete-orphan")


class Timesheet(Base):
    __tablename__ = "timesheets"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    duration_hours = Column(Numeric(8, 2), nullable=False)
    cost_at_time = Column(Numeric(14, 2), nullable=False)  # hourly rate * hours, repriced only while draft
    billable = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default=TimesheetStatus.DRAFT.value, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    task = relationship("Task", back_populates="timesheets")
    user = relationship("User")
