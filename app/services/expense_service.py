import logging
from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from app.core.permissions import (
    ADMIN, EXPENSE_APPROVER_ROLES, EXPENSE_PAYER_ROLES, FINANCE_DOCUMENT_ROLES, role_error
)
from app.core.responses import failure
from app.models.event import EntityType
from app.models.expense import Expense, ExpenseStatus, EXPENSE_TRANSITIONS
from app.models.notification import NotificationType
from app.models.project import Project
from app.models.user import User
from app.services.event_service import event_service
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)


class ExpenseService:
    """Expense records and their approval workflow.

    Status moves are ``draft -> submitted -> approved -> paid`` with
    ``submitted -> rejected`` as the only branch. Every move is a single
    UPDATE guarded by the expected current status, so a concurrent change
    makes the second caller fail instead of overwriting the first.
    """

    def _get_actor(self, db: Session, user_id: int, organization_id: int, allowed_roles: List[str]) -> Dict:
        user = db.query(User).filter(
            User.id == user_id,
            User.organization_id == organization_id,
            User.deleted_at.is_(None)
        ).first()
        if not user:
            return failure("User not found", "not_found")
        if not user.is_active:
            return failure("User is inactive", "forbidden")
        if user.role not in allowed_roles:
            return failure(role_error(user.role, allowed_roles), "forbidden")
        return {"success": True, "user": user}

    def _query(self, db: Session, organization_id: int):
        return db.query(Expense).filter(
            Expense.organization_id == organization_id,
            Expense.deleted_at.is_(None)
        )

    def _check_transition(self, current_status: str, target_status: str) -> Optional[Dict]:
        if target_status not in EXPENSE_TRANSITIONS.get(current_status, []):
            return failure(f"Cannot transition from '{current_status}' to '{target_status}'", "invalid_state")
        return None

    def _apply_transition(
        self,
        db: Session,
        expense: Expense,
        from_status: str,
        values: Dict,
        event_type: str,
        actor_id: int
    ) -> Dict:
        values["updated_at"] = datetime.utcnow()
        updated = self._query(db, expense.organization_id).filter(
            Expense.id == expense.id,
            Expense.status == from_status
        ).update(values, synchronize_session=False)

        if updated == 0:
            db.rollback()
            logger.warning(f"Expense {expense.id} left status '{from_status}' before {event_type}")
            return failure("Expense status changed concurrently, reload and retry", "invalid_state")

        event_service.record(
            db, expense.organization_id, EntityType.EXPENSE.value, expense.id, event_type,
            {"from": from_status, "to": values.get("status"), "actor_id": actor_id}
        )
        db.commit()
        db.refresh(expense)
        return {"success": True, "expense": expense}

    def _notify_owner(self, db: Session, expense: Expense, type: str, title: str, message: str):
        if expense.user_id:
            notification_service.create_notification(
                db, expense.organization_id, expense.user_id, type, title, message,
                {"expense_id": expense.id, "status": expense.status}
            )

    def create_expense(self, db: Session, organization_id: int, user_id: int, data: Dict) -> Dict:
        """Create an expense in ``draft`` status."""
        try:
            project_id = data.get("project_id")
            if project_id is not None:
                project = db.query(Project).filter(
                    Project.id == project_id,
                    Project.organization_id == organization_id,
                    Project.deleted_at.is_(None)
                ).first()
                if not project:
                    return failure("Project not found or does not belong to organization", "validation")

            expense = Expense(
                organization_id=organization_id,
                user_id=user_id,
                project_id=project_id,
                amount=data["amount"],
                billable=data.get("billable", False),
                note=data.get("note"),
                receipt_url=data.get("receipt_url"),
                status=ExpenseStatus.DRAFT.value
            )
            db.add(expense)
            db.flush()
            event_service.record(
                db, organization_id, EntityType.EXPENSE.value, expense.id, "expense.created",
                {"amount": float(expense.amount), "actor_id": user_id}
            )
            db.commit()
            db.refresh(expense)

            logger.info(f"Expense {expense.id} created by user {user_id}")
            return {"success": True, "expense": expense}

        except Exception as e:
            logger.error(f"Error creating expense: {e}")
            db.rollback()
            return failure("Failed to create expense", "error")

    def get_expense(self, db: Session, expense_id: int, organization_id: int) -> Dict:
        expense = self._query(db, organization_id).options(
            joinedload(Expense.user)
        ).filter(Expense.id == expense_id).first()
        if not expense:
            return failure("Expense not found", "not_found")
        return {"success": True, "expense": expense}

    def _apply_filters(self, query, filters: Dict):
        if filters.get("status"):
            query = query.filter(Expense.status == filters["status"])
        if filters.get("user_id") is not None:
            query = query.filter(Expense.user_id == filters["user_id"])
        if filters.get("project_id") is not None:
            query = query.filter(Expense.project_id == filters["project_id"])
        if filters.get("billable") is not None:
            query = query.filter(Expense.billable.is_(filters["billable"]))
        if filters.get("start_date"):
            query = query.filter(Expense.created_at >= filters["start_date"])
        if filters.get("end_date"):
            query = query.filter(Expense.created_at <= filters["end_date"])
        if filters.get("min_amount") is not None:
            query = query.filter(Expense.amount >= filters["min_amount"])
        if filters.get("max_amount") is not None:
            query = query.filter(Expense.amount <= filters["max_amount"])
        return query

    def list_expenses(
        self,
        db: Session,
        organization_id: int,
        filters: Optional[Dict] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Dict:
        query = self._apply_filters(self._query(db, organization_id), filters or {})
        total = query.count()
        expenses = query.options(joinedload(Expense.user)).order_by(
            Expense.created_at.desc(), Expense.id.desc()
        ).offset(offset).limit(limit).all()
        return {"success": True, "expenses": expenses, "total": total}

    def update_expense(self, db: Session, expense_id: int, organization_id: int, user: User, data: Dict) -> Dict:
        """Edit a draft expense. Only the owner or an admin may edit."""
        result = self.get_expense(db, expense_id, organization_id)
        if not result["success"]:
            return result
        expense = result["expense"]

        if expense.status != ExpenseStatus.DRAFT.value:
            return failure(
                f"Cannot edit expense in '{expense.status}' status. Only draft expenses can be edited.",
                "invalid_state"
            )
        if expense.user_id != user.id and user.role != ADMIN:
            return failure("Not authorized to edit this expense", "forbidden")

        if data.get("project_id") is not None:
            project = db.query(Project).filter(
                Project.id == data["project_id"],
                Project.organization_id == organization_id,
                Project.deleted_at.is_(None)
            ).first()
            if not project:
                return failure("Project not found or does not belong to organization", "validation")

        try:
            for field, value in data.items():
                setattr(expense, field, value)
            event_service.record(
                db, organization_id, EntityType.EXPENSE.value, expense.id, "expense.updated",
                {"fields": sorted(data.keys()), "actor_id": user.id}
            )
            db.commit()
            db.refresh(expense)
            return {"success": True, "expense": expense}
        except Exception as e:
            logger.error(f"Error updating expense {expense_id}: {e}")
            db.rollback()
            return failure("Failed to update expense", "error")

    def delete_expense(self, db: Session, expense_id: int, organization_id: int, user: User) -> Dict:
        """Soft delete. Paid expenses are kept."""
        result = self.get_expense(db, expense_id, organization_id)
        if not result["success"]:
            return result
        expense = result["expense"]

        if expense.user_id != user.id and user.role != ADMIN:
            return failure("Not authorized to delete this expense", "forbidden")
        if expense.status == ExpenseStatus.PAID.value:
            return failure("Cannot delete paid expenses", "invalid_state")

        expense.deleted_at = datetime.utcnow()
        event_service.record(
            db, organization_id, EntityType.EXPENSE.value, expense.id, "expense.deleted",
            {"actor_id": user.id}
        )
        db.commit()
        logger.info(f"Expense {expense_id} deleted by user {user.id}")
        return {"success": True}

    def submit_expense(self, db: Session, expense_id: int, organization_id: int, user_id: int) -> Dict:
        try:
            result = self.get_expense(db, expense_id, organization_id)
            if not result["success"]:
                return result
            expense = result["expense"]

            error = self._check_transition(expense.status, ExpenseStatus.SUBMITTED.value)
            if error:
                return error
            if expense.user_id != user_id:
                return failure("Only expense owner can submit for approval", "forbidden")

            result = self._apply_transition(
                db, expense, ExpenseStatus.DRAFT.value,
                {"status": ExpenseStatus.SUBMITTED.value, "submitted_at": datetime.utcnow()},
                "expense.submitted", user_id
            )
            if not result["success"]:
                return result

            logger.info(f"Expense {expense_id} submitted by user {user_id}")
            self._notify_approvers(db, expense)
            return result

        except Exception as e:
            logger.error(f"Error submitting expense {expense_id}: {e}")
            db.rollback()
            return failure("Failed to submit expense", "error")

    def _notify_approvers(self, db: Session, expense: Expense):
        approvers = db.query(User).filter(
            User.organization_id == expense.organization_id,
            User.role.in_(EXPENSE_APPROVER_ROLES),
            User.is_active.is_(True),
            User.deleted_at.is_(None),
            User.id != expense.user_id
        ).all()
        for approver in approvers:
            notification_service.create_notification(
                db, expense.organization_id, approver.id,
                NotificationType.EXPENSE_SUBMITTED.value,
                "Expense awaiting approval",
                f"Expense #{expense.id} for {float(expense.amount):.2f} was submitted for approval",
                {"expense_id": expense.id}
            )

    def approve_expense(self, db: Session, expense_id: int, organization_id: int, approver_id: int) -> Dict:
        """Move a submitted expense to ``approved``."""
        try:
            actor = self._get_actor(db, approver_id, organization_id, EXPENSE_APPROVER_ROLES)
            if not actor["success"]:
                return actor

            result = self.get_expense(db, expense_id, organization_id)
            if not result["success"]:
                return result
            expense = result["expense"]

            error = self._check_transition(expense.status, ExpenseStatus.APPROVED.value)
            if error:
                return error

            now = datetime.utcnow()
            result = self._apply_transition(
                db, expense, ExpenseStatus.SUBMITTED.value,
                {"status": ExpenseStatus.APPROVED.value, "approved_at": now, "approved_by": approver_id},
                "expense.approved", approver_id
            )
            if not result["success"]:
                return result

            logger.info(f"Expense {expense_id} approved by user {approver_id}")
            self._notify_owner(
                db, expense, NotificationType.EXPENSE_APPROVED.value,
                "Expense approved", f"Your expense #{expense.id} was approved"
            )
            return result

        except Exception as e:
            logger.error(f"Error approving expense {expense_id}: {e}")
            db.rollback()
            return failure("Failed to approve expense", "error")

    def reject_expense(
        self,
        db: Session,
        expense_id: int,
        organization_id: int,
        approver_id: int,
        reason: Optional[str] = None
    ) -> Dict:
        try:
            actor = self._get_actor(db, approver_id, organization_id, EXPENSE_APPROVER_ROLES)
            if not actor["success"]:
                return actor

            result = self.get_expense(db, expense_id, organization_id)
            if not result["success"]:
                return result
            expense = result["expense"]

            error = self._check_transition(expense.status, ExpenseStatus.REJECTED.value)
            if error:
                return error

            result = self._apply_transition(
                db, expense, ExpenseStatus.SUBMITTED.value,
                {
                    "status": ExpenseStatus.REJECTED.value,
                    "approved_by": approver_id,
                    "approved_at": datetime.utcnow(),
                    "rejection_reason": reason
                },
                "expense.rejected", approver_id
            )
            if not result["success"]:
                return result

            logger.info(f"Expense {expense_id} rejected by user {approver_id}")
            message = f"Your expense #{expense.id} was rejected"
            if reason:
                message = f"{message}: {reason}"
            self._notify_owner(db, expense, NotificationType.EXPENSE_REJECTED.value, "Expense rejected", message)
            return result

        except Exception as e:
            logger.error(f"Error rejecting expense {expense_id}: {e}")
            db.rollback()
            return failure("Failed to reject expense", "error")

    def mark_as_paid(self, db: Session, expense_id: int, organization_id: int, payer_id: int) -> Dict:
        """Move an approved expense to ``paid``."""
        try:
            actor = self._get_actor(db, payer_id, organization_id, EXPENSE_PAYER_ROLES)
            if not actor["success"]:
                return actor

            result = self.get_expense(db, expense_id, organization_id)
            if not result["success"]:
                return result
            expense = result["expense"]

            error = self._check_transition(expense.status, ExpenseStatus.PAID.value)
            if error:
                return error

            result = self._apply_transition(
                db, expense, ExpenseStatus.APPROVED.value,
                {"status": ExpenseStatus.PAID.value, "paid_at": datetime.utcnow()},
                "expense.paid", payer_id
            )
            if not result["success"]:
                return result

            logger.info(f"Expense {expense_id} paid by user {payer_id}")
            self._notify_owner(
                db, expense, NotificationType.EXPENSE_PAID.value,
                "Expense paid", f"Your expense #{expense.id} was paid"
            )
            return result

        except Exception as e:
            logger.error(f"Error paying expense {expense_id}: {e}")
            db.rollback()
            return failure("Failed to mark expense as paid", "error")

    def reassign_project(
        self,
        db: Session,
        expense_id: int,
        organization_id: int,
        user_id: int,
        project_id: Optional[int]
    ) -> Dict:
        """Link the expense to another project, or unlink it with ``None``."""
        actor = self._get_actor(db, user_id, organization_id, FINANCE_DOCUMENT_ROLES)
        if not actor["success"]:
            return actor

        result = self.get_expense(db, expense_id, organization_id)
        if not result["success"]:
            return result
        expense = result["expense"]

        if project_id is not None:
            project = db.query(Project).filter(
                Project.id == project_id,
                Project.organization_id == organization_id,
                Project.deleted_at.is_(None)
            ).first()
            if not project:
                return failure("Project not found or does not belong to organization", "validation")

        previous = expense.project_id
        expense.project_id = project_id
        event_service.record(
            db, organization_id, EntityType.EXPENSE.value, expense.id, "expense.project_reassigned",
            {"from_project_id": previous, "to_project_id": project_id, "actor_id": user_id}
        )
        db.commit()
        db.refresh(expense)
        logger.info(f"Expense {expense_id} moved from project {previous} to {project_id}")
        return {"success": True, "expense": expense}

    def get_expense_stats(self, db: Session, organization_id: int, filters: Optional[Dict] = None) -> Dict:
        query = self._apply_filters(self._query(db, organization_id), filters or {})
        subquery = query.with_entities(
            Expense.id, Expense.status, Expense.amount, Expense.billable
        ).subquery()

        count, total = db.query(
            func.count(subquery.c.id), func.coalesce(func.sum(subquery.c.amount), 0)
        ).one()

        by_status = {}
        count_by_status = {}
        for status, status_count, status_total in db.query(
            subquery.c.status, func.count(subquery.c.id), func.coalesce(func.sum(subquery.c.amount), 0)
        ).group_by(subquery.c.status).all():
            by_status[status] = round(float(status_total), 2)
            count_by_status[status] = status_count

        billable_total = 0.0
        non_billable_total = 0.0
        for billable, billable_sum in db.query(
            subquery.c.billable, func.coalesce(func.sum(subquery.c.amount), 0)
        ).group_by(subquery.c.billable).all():
            if billable:
                billable_total = float(billable_sum)
            else:
                non_billable_total = float(billable_sum)

        total = float(total)
        return {
            "success": True,
            "stats": {
                "count": count,
                "total": round(total, 2),
                "average": round(total / count, 2) if count else 0,
                "by_status": by_status,
                "count_by_status": count_by_status,
                "billable_total": round(billable_total, 2),
                "non_billable_total": round(non_billable_total, 2),
            }
        }

    def export_rows(self, db: Session, organization_id: int, filters: Optional[Dict] = None) -> List[Dict]:
        """Flatten expenses for CSV export."""
        query = self._apply_filters(self._query(db, organization_id), filters or {})
        expenses = query.options(
            joinedload(Expense.user), joinedload(Expense.project)
        ).order_by(Expense.created_at.desc()).all()

        return [
            {
                "id": e.id,
                "created_at": e.created_at,
                "user": (e.user.name or e.user.email) if e.user else "",
                "project": e.project.name if e.project else "",
                "amount": float(e.amount),
                "billable": e.billable,
                "status": e.status,
                "note": e.note or "",
                "submitted_at": e.submitted_at,
                "approved_at": e.approved_at,
                "paid_at": e.paid_at,
            }
            for e in expenses
        ]


expense_service = ExpenseService()
