from app.schemas.user import (
    UserCreate, UserUpdate, UserResponse, UserBrief, UserStats, Token, SignupRequest,
    UserHourlyRate, HourlyRateUpdate, UserProject
)
from app.schemas.organization import (
    OrganizationCreate, OrganizationUpdate, OrganizationResponse, OrganizationStats
)
from app.schemas.expense import (
    ExpenseCreate, ExpenseUpdate, ExpenseResponse, ExpenseStats,
    ExpenseReject, ExpenseProjectUpdate, ExpenseFilters
)
from app.schemas.vendor_bill import (
    VendorBillCreate, VendorBillUpdate, VendorBillResponse
)
from app.schemas.purchase_order import (
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderResponse
)
from app.schemas.invitation import (
    InvitationCreate, InvitationResponse, InvitationDetail, InvitationCreated
)
from app.schemas.notification import NotificationResponse, BroadcastRequest
from app.schemas.project import (
    ProjectCreate, ProjectUpdate, ProjectResponse, ProjectMemberAdd
)
from app.schemas.task import (
    TaskCreate, TaskUpdate, TaskStatusUpdate, TaskResponse,
    TimesheetCreate, TimesheetResponse, TimesheetStatusUpdate
)
from app.schemas.event import EventResponse

__all__ = [
    "UserCreate", "UserUpdate", "UserResponse", "UserBrief", "UserStats", "Token", "SignupRequest",
    "UserHourlyRate", "HourlyRateUpdate", "UserProject",
    "OrganizationCreate", "OrganizationUpdate", "OrganizationResponse", "OrganizationStats",
    "ExpenseCreate", "ExpenseUpdate", "ExpenseResponse", "ExpenseStats",
    "ExpenseReject", "ExpenseProjectUpdate", "ExpenseFilters",
    "VendorBillCreate", "VendorBillUpdate", "VendorBillResponse",
    "PurchaseOrderCreate", "PurchaseOrderUpdate", "PurchaseOrderResponse",
    "InvitationCreate", "InvitationResponse", "InvitationDetail", "InvitationCreated",
    "NotificationResponse", "BroadcastRequest",
    "ProjectCreate", "ProjectUpdate", "ProjectResponse", "ProjectMemberAdd",
    "TaskCreate", "TaskUpdate", "TaskStatusUpdate", "TaskResponse",
    "TimesheetCreate", "TimesheetResponse", "TimesheetStatusUpdate",
    "EventResponse",
]
