"""
Static role tables.

Every mutating endpoint checks the caller's role against one of these
allow-lists. There is no policy engine: a role either appears in the
list or it does not.
"""
from typing import Dict, List
from app.models.user import UserRole

ADMIN = UserRole.ADMIN.value
MANAGER = UserRole.MANAGER.value
PROJECT_MANAGER = UserRole.PROJECT_MANAGER.value
FINANCE = UserRole.FINANCE.value
MEMBER = UserRole.MEMBER.value

EXPENSE_APPROVER_ROLES = [MANAGER, PROJECT_MANAGER, ADMIN]
EXPENSE_PAYER_ROLES = [FINANCE, ADMIN]
BILL_PAYER_ROLES = [FINANCE, ADMIN]
FINANCE_DOCUMENT_ROLES = [ADMIN, MANAGER, FINANCE]
PROJECT_MANAGER_ROLES = [ADMIN, MANAGER, PROJECT_MANAGER]
USER_ADMIN_ROLES = [ADMIN]
EXPENSE_REVIEWER_ROLES = [ADMIN, MANAGER, PROJECT_MANAGER, FINANCE]

# Who may invite whom
INVITATION_ROLES: Dict[str, List[str]] = {
    ADMIN: [ADMIN, MANAGER, PROJECT_MANAGER, FINANCE, MEMBER],
    MANAGER: [MEMBER],
    FINANCE: [FINANCE],
}


def has_role(role: str, allowed: List[str]) -> bool:
    return role in allowed


def can_approve_expense(role: str) -> bool:
    return has_role(role, EXPENSE_APPROVER_ROLES)


def can_pay_expense(role: str) -> bool:
    return has_role(role, EXPENSE_PAYER_ROLES)


def can_manage_finance_documents(role: str) -> bool:
    return has_role(role, FINANCE_DOCUMENT_ROLES)


def can_view_all_projects(role: str) -> bool:
    return role != MEMBER


def get_allowed_invitation_roles(inviter_role: str) -> List[str]:
    return INVITATION_ROLES.get(inviter_role, [])


def role_error(role: str, allowed: List[str]) -> str:
    return f"User role '{role}' is not authorized. Required: {', '.join(allowed)}"


def can_view_all_expenses(role: str) -> bool:
    return has_role(role, EXPENSE_REVIEWER_ROLES)
