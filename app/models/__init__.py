from app.models.organization import Organization
from app.models.user import User, UserRole
from app.models.project import Project, ProjectStatus, project_members
from app.models.task import Task, TaskStatus, TaskPriority, Timesheet, TimesheetStatus
from app.models.expense import Expense, ExpenseStatus
from app.models.vendor_bill import VendorBill, BillStatus
from app.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from app.models.invitation import Invitation, InvitationStatus
from app.models.notification import Notification, NotificationType
from app.models.event import Event, EntityType

__all__ = [
    "Organization",
    "User",
    "UserRole",
    "Project",
    "ProjectStatus",
    "project_members",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "Timesheet",
    "TimesheetStatus",
    "Expense",
    "ExpenseStatus",
    "VendorBill",
    "BillStatus",
    "PurchaseOrder",
    "PurchaseOrderStatus",
    "Invitation",
    "InvitationStatus",
    "Notification",
    "NotificationType",
    "Event",
    "EntityType",
]
