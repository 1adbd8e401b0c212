import pytest
from app.core.permissions import (
    can_approve_expense, can_manage_finance_documents, can_pay_expense, can_view_all_expenses,
    can_view_all_projects, get_allowed_invitation_roles, role_error
)


@pytest.mark.parametrize("role,expected", [
    ("admin", True), ("manager", True), ("project_manager", True), ("finance", False), ("member", False),
])
def test_can_approve_expense(role, expected):
    assert can_approve_expense(role) is expected


@pytest.mark.parametrize("role,expected", [
    ("admin", True), ("finance", True), ("manager", False), ("project_manager", False), ("member", False),
])
def test_can_pay_expense(role, expected):
    assert can_pay_expense(role) is expected


@pytest.mark.parametrize("role,expected", [
    ("admin", True), ("manager", True), ("finance", True), ("project_manager", False), ("member", False),
])
def test_can_manage_finance_documents(role, expected):
    assert can_manage_finance_documents(role) is expected


def test_only_members_are_restricted_to_their_own_records():
    assert can_view_all_projects("member") is False
    assert can_view_all_expenses("member") is False
    assert can_view_all_projects("finance") is True
    assert can_view_all_expenses("finance") is True


def test_invitation_roles():
    assert get_allowed_invitation_roles("admin") == ["admin", "manager", "project_manager", "finance", "member"]
    assert get_allowed_invitation_roles("manager") == ["member"]
    assert get_allowed_invitation_roles("finance") == ["finance"]
    assert get_allowed_invitation_roles("member") == []
    assert get_allowed_invitation_roles("unknown") == []


def test_role_error_message():
    assert role_error("member", ["admin", "finance"]) == "User role 'member' is not authorized. Required: admin, finance"
