import logging
from typing import Dict, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.core.responses import failure
from app.models.event import EntityType
from app.models.expense import Expense
from app.models.organization import Organization
from app.models.project import Project
from app.models.task import Task, Timesheet
from app.models.user import User
from app.models.vendor_bill import VendorBill, BillStatus
from app.services.event_service import event_service

logger = logging.getLogger(__name__)


class OrganizationService:

    def get_organization(self, db: Session, organization_id: int) -> Dict:
        organization = db.query(Organization).filter(Organization.id == organization_id).first()
        if not organization:
            return failure("Organization not found", "not_found")
        return {"success": True, "organization": organization}

    def create_organization(self, db: Session, name: str, currency: str = "USD", timezone: str = "UTC") -> Organization:
        """Add a new organization to the session. The caller commits."""
        organization = Organization(name=name.strip(), currency=currency.upper(), timezone=timezone)
        db.add(organization)
        db.flush()
        event_service.record(
            db, organization.id, EntityType.ORGANIZATION.value, organization.id, "organization.created",
            {"name": organization.name}
        )
        return organization

    def update_organization(self, db: Session, organization_id: int, data: Dict, actor_id: int) -> Dict:
        result = self.get_organization(db, organization_id)
        if not result["success"]:
            return result
        organization = result["organization"]

        if data.get("currency"):
            data["currency"] = data["currency"].upper()
        for field, value in data.items():
            setattr(organization, field, value)

        event_service.record(
            db, organization_id, EntityType.ORGANIZATION.value, organization_id, "organization.updated",
            {"fields": sorted(data.keys()), "actor_id": actor_id}
        )
        db.commit()
        db.refresh(organization)
        logger.info(f"Organization {organization_id} updated by user {actor_id}")
        return {"success": True, "organization": organization}

    def list_users(
        self,
        db: Session,
        organization_id: int,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Dict:
        query = db.query(User).filter(
            User.organization_id == organization_id,
            User.deleted_at.is_(None)
        )
        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        if search:
            pattern = f"%{search}%"
            query = query.filter((User.name.ilike(pattern)) | (User.email.ilike(pattern)))

        total = query.count()
        users = query.order_by(User.name, User.id).offset(offset).limit(limit).all()
        return {"success": True, "users": users, "total": total}

    def get_organization_stats(self, db: Session, organization_id: int) -> Dict:
        """Counts and sums over the organization's records, computed on read."""
        result = self.get_organization(db, organization_id)
        if not result["success"]:
            return result

        users_by_role = dict(
            db.query(User.role, func.count(User.id)).filter(
                User.organization_id == organization_id,
                User.deleted_at.is_(None)
            ).group_by(User.role).all()
        )

        project_filter = (Project.organization_id == organization_id, Project.deleted_at.is_(None))
        projects_by_status = dict(
            db.query(Project.status, func.count(Project.id)).filter(*project_filter).group_by(Project.status).all()
        )
        total_budget = db.query(func.coalesce(func.sum(Project.budget), 0)).filter(*project_filter).scalar()

        tasks_total = db.query(func.count(Task.id)).join(Project, Task.project_id == Project.id).filter(
            *project_filter, Task.deleted_at.is_(None)
        ).scalar()

        expenses_by_status = {
            status: round(float(total), 2)
            for status, total in db.query(
                Expense.status, func.coalesce(func.sum(Expense.amount), 0)
            ).filter(
                Expense.organization_id == organization_id,
                Expense.deleted_at.is_(None)
            ).group_by(Expense.status).all()
        }

        bill_totals = dict(
            db.query(VendorBill.status, func.coalesce(func.sum(VendorBill.amount), 0)).filter(
                VendorBill.organization_id == organization_id,
                VendorBill.deleted_at.is_(None)
            ).group_by(VendorBill.status).all()
        )
        bills_unpaid = sum(
            float(bill_totals.get(status, 0)) for status in (BillStatus.DRAFT.value, BillStatus.RECEIVED.value)
        )

        hours, cost = db.query(
            func.coalesce(func.sum(Timesheet.duration_hours), 0),
            func.coalesce(func.sum(Timesheet.cost_at_time), 0)
        ).select_from(Timesheet).join(Project, Timesheet.project_id == Project.id).filter(
            Project.organization_id == organization_id
        ).one()

        stats = {
            "organization_id": organization_id,
            "users_total": sum(users_by_role.values()),
            "users_by_role": users_by_role,
            "projects_total": sum(projects_by_status.values()),
            "projects_by_status": projects_by_status,
            "tasks_total": tasks_total or 0,
            "financial": {
                "total_budget": round(float(total_budget or 0), 2),
                "expenses_total": round(sum(expenses_by_status.values()), 2),
                "expenses_by_status": expenses_by_status,
                "bills_paid_total": round(float(bill_totals.get(BillStatus.PAID.value, 0)), 2),
                "bills_unpaid_total": round(bills_unpaid, 2),
                "hours_logged": round(float(hours), 2),
                "timesheet_cost": round(float(cost), 2),
            },
        }
        return {"success": True, "stats": stats}


organization_service = OrganizationService()
