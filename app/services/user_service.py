import logging
from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from app.core.permissions import ADMIN, MEMBER, can_view_all_projects
from app.core.responses import failure
from app.core.security import get_password_hash, verify_password
from app.models.event import EntityType
from app.models.expense import Expense
from app.models.organization import Organization
from app.models.project import Project, project_members
from app.models.task import Task, Timesheet
from app.models.user import User
from app.services.event_service import event_service
from app.services.invitation_service import invitation_service
from app.services.organization_service import organization_service
from app.services.task_service import task_service

logger = logging.getLogger(__name__)

STATS_WINDOW_DAYS = 30


class UserService:

    def _email_taken(self, db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
        query = db.query(User).filter(func.lower(User.email) == email.strip().lower())
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None

    def authenticate(self, db: Session, email: str, password: str) -> Optional[User]:
        user = db.query(User).filter(
            func.lower(User.email) == email.strip().lower(),
            User.deleted_at.is_(None)
        ).first()
        if not user or not verify_password(password, user.hashed_password):
            return None
        return user

    def signup(self, db: Session, data: Dict) -> Dict:
        """Register a user through an invitation, an existing organization or a new one."""
        email = data["email"].strip().lower()
        if self._email_taken(db, email):
            return failure("Email already registered", "conflict")

        invitation = None
        try:
            if data.get("invitation_token"):
                check = invitation_service.check_signup_token(db, data["invitation_token"], email)
                if not check["success"]:
                    return check
                invitation = check["invitation"]
                organization_id = invitation.organization_id
                role = invitation.role
            elif data.get("organization_id") is not None:
                organization = db.query(Organization).filter(Organization.id == data["organization_id"]).first()
                if not organization:
                    return failure("Organization not found", "not_found")
                if data.get("role") not in (None, MEMBER):
                    return failure(
                        "Joining an existing organization without an invitation is limited to the member role",
                        "forbidden"
                    )
                organization_id = organization.id
                role = MEMBER
            elif data.get("organization_name"):
                organization = organization_service.create_organization(db, data["organization_name"])
                organization_id = organization.id
                role = ADMIN
            else:
                return failure("Provide an invitation token, an organization id or a new organization name", "validation")

            user = User(
                organization_id=organization_id,
                email=email,
                name=data.get("name"),
                hashed_password=get_password_hash(data["password"]),
                role=role
            )
            db.add(user)
            db.flush()

            if invitation is not None:
                redeemed = invitation_service.redeem_for_signup(db, invitation, user)
                if not redeemed["success"]:
                    db.rollback()
                    return redeemed

            event_service.record(
                db, organization_id, EntityType.USER.value, user.id, "user.signed_up",
                {"email": email, "role": role, "via_invitation": invitation is not None}
            )
            db.commit()
            db.refresh(user)
            logger.info(f"User {user.id} signed up into organization {organization_id} as {role}")
            return {"success": True, "user": user}

        except Exception as e:
            logger.error(f"Error signing up {email}: {e}")
            db.rollback()
            return failure("Failed to create account", "error")

    def get_user(self, db: Session, user_id: int, organization_id: int) -> Dict:
        user = db.query(User).filter(
            User.id == user_id,
            User.organization_id == organization_id,
            User.deleted_at.is_(None)
        ).first()
        if not user:
            return failure("User not found", "not_found")
        return {"success": True, "user": user}

    def create_user(self, db: Session, organization_id: int, data: Dict, actor_id: int) -> Dict:
        if self._email_taken(db, data["email"]):
            return failure("Email already registered", "conflict")

        user = User(
            organization_id=organization_id,
            email=data["email"].strip().lower(),
            name=data.get("name"),
            role=data.get("role", MEMBER),
            hourly_rate=data.get("hourly_rate", 0),
            hashed_password=get_password_hash(data["password"])
        )
        db.add(user)
        db.flush()
        event_service.record(
            db, organization_id, EntityType.USER.value, user.id, "user.created",
            {"email": user.email, "role": user.role, "actor_id": actor_id}
        )
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} created by user {actor_id}")
        return {"success": True, "user": user}

    def update_user(self, db: Session, user_id: int, organization_id: int, actor: User, data: Dict) -> Dict:
        """Admins may change anything; other users may only edit their own name and password."""
        result = self.get_user(db, user_id, organization_id)
        if not result["success"]:
            return result
        user = result["user"]

        if actor.role != ADMIN:
            if actor.id != user.id:
                return failure("Not authorized to edit this user", "forbidden")
            restricted = {"role", "is_active", "hourly_rate"} & set(data.keys())
            if restricted:
                return failure(f"Only admins can change: {', '.join(sorted(restricted))}", "forbidden")

        if "password" in data:
            password = data.pop("password")
            if password:
                user.hashed_password = get_password_hash(password)
        for field, value in data.items():
            setattr(user, field, value)
        if "hourly_rate" in data:
            task_service.reprice_draft_timesheets(db, user.id, data["hourly_rate"])

        event_service.record(
            db, organization_id, EntityType.USER.value, user.id, "user.updated",
            {"fields": sorted(data.keys()), "actor_id": actor.id}
        )
        db.commit()
        db.refresh(user)
        return {"success": True, "user": user}

    def delete_user(self, db: Session, user_id: int, organization_id: int, actor: User) -> Dict:
        result = self.get_user(db, user_id, organization_id)
        if not result["success"]:
            return result
        user = result["user"]
        if user.id == actor.id:
            return failure("You cannot delete your own account", "invalid_state")

        user.deleted_at = datetime.utcnow()
        user.is_active = False
        event_service.record(
            db, organization_id, EntityType.USER.value, user.id, "user.deleted", {"actor_id": actor.id}
        )
        db.commit()
        logger.info(f"User {user_id} deleted by user {actor.id}")
        return {"success": True}

    def get_user_stats(self, db: Session, user_id: int, organization_id: int) -> Dict:
        result = self.get_user(db, user_id, organization_id)
        if not result["success"]:
            return result

        tasks_by_status = dict(
            db.query(Task.status, func.count(Task.id)).join(Project, Task.project_id == Project.id).filter(
                Task.assignee_id == user_id,
                Task.deleted_at.is_(None),
                Project.organization_id == organization_id
            ).group_by(Task.status).all()
        )

        since = datetime.utcnow() - timedelta(days=STATS_WINDOW_DAYS)
        timesheet_count, hours, cost = db.query(
            func.count(Timesheet.id),
            func.coalesce(func.sum(Timesheet.duration_hours), 0),
            func.coalesce(func.sum(Timesheet.cost_at_time), 0)
        ).select_from(Timesheet).join(Project, Timesheet.project_id == Project.id).filter(
            Timesheet.user_id == user_id,
            Timesheet.start >= since,
            Project.organization_id == organization_id
        ).one()

        projects_count = db.query(func.count()).select_from(project_members).join(
            Project, project_members.c.project_id == Project.id
        ).filter(
            project_members.c.user_id == user_id,
            Project.organization_id == organization_id,
            Project.deleted_at.is_(None)
        ).scalar()

        expenses_count, expenses_total = db.query(
            func.count(Expense.id), func.coalesce(func.sum(Expense.amount), 0)
        ).filter(
            Expense.user_id == user_id,
            Expense.organization_id == organization_id,
            Expense.deleted_at.is_(None)
        ).one()

        stats = {
            "user_id": user_id,
            "tasks_total": sum(tasks_by_status.values()),
            "tasks_by_status": tasks_by_status,
            "timesheets_last_30_days": {
                "count": timesheet_count,
                "hours": round(float(hours), 2),
                "cost": round(float(cost), 2),
            },
            "projects_count": projects_count or 0,
            "expenses_count": expenses_count,
            "expenses_total": round(float(expenses_total), 2),
        }
        return {"success": True, "stats": stats}

    def list_hourly_rates(self, db: Session, organization_id: int) -> Dict:
        users = db.query(User).filter(
            User.organization_id == organization_id,
            User.is_active.is_(True),
            User.deleted_at.is_(None)
        ).order_by(User.name.asc(), User.id.asc()).all()
        return {"success": True, "users": users}

    def get_hourly_rate(self, db: Session, user_id: int, organization_id: int, actor: User) -> Dict:
        if actor.role != ADMIN and actor.id != user_id:
            return failure("Only admins can view other users' hourly rates", "forbidden")
        return self.get_user(db, user_id, organization_id)

    def set_hourly_rate(self, db: Session, user_id: int, organization_id: int, hourly_rate: float, actor: User) -> Dict:
        """Change a user's rate and reprice their draft timesheets.

        Submitted, approved and locked timesheets keep the cost they were logged at.
        """
        result = self.get_user(db, user_id, organization_id)
        if not result["success"]:
            return result
        user = result["user"]

        previous = float(user.hourly_rate or 0)
        user.hourly_rate = hourly_rate
        repriced = task_service.reprice_draft_timesheets(db, user.id, hourly_rate)
        event_service.record(
            db, organization_id, EntityType.USER.value, user.id, "user.hourly_rate_changed",
            {"from": previous, "to": hourly_rate, "repriced_timesheets": repriced, "actor_id": actor.id}
        )
        db.commit()
        db.refresh(user)
        logger.info(f"Hourly rate of user {user.id} set to {hourly_rate} by user {actor.id}, {repriced} drafts repriced")
        return {"success": True, "user": user, "repriced_timesheets": repriced}

    def get_user_projects(self, db: Session, user_id: int, organization_id: int, actor: User) -> Dict:
        """Projects a user belongs to or manages, each with the tasks assigned to that user.

        Projects with more assigned tasks come first, then by name.
        """
        if actor.id != user_id and not can_view_all_projects(actor.role):
            return failure("Not authorized to view this user's projects", "forbidden")
        result = self.get_user(db, user_id, organization_id)
        if not result["success"]:
            return result

        memberships = dict(
            db.query(project_members.c.project_id, project_members.c.role_in_project).filter(
                project_members.c.user_id == user_id
            ).all()
        )
        projects = db.query(Project).filter(
            Project.organization_id == organization_id,
            Project.deleted_at.is_(None),
            or_(Project.id.in_(list(memberships.keys())), Project.project_manager_id == user_id)
        ).all()
        if not projects:
            return {"success": True, "projects": []}

        tasks = db.query(Task).filter(
            Task.project_id.in_([p.id for p in projects]),
            Task.assignee_id == user_id,
            Task.deleted_at.is_(None)
        ).order_by(Task.status.asc(), Task.priority.desc(), Task.due_date.asc()).all()
        hours_by_task = dict(
            db.query(Timesheet.task_id, func.sum(Timesheet.duration_hours)).filter(
                Timesheet.task_id.in_([t.id for t in tasks])
            ).group_by(Timesheet.task_id).all()
        ) if tasks else {}

        entries = []
        for project in projects:
            if project.project_manager_id == user_id:
                role_in_project = "project_manager"
            else:
                role_in_project = memberships.get(project.id)
            project_tasks = [
                {
                    "id": task.id,
                    "title": task.title,
                    "status": task.status,
                    "priority": task.priority,
                    "due_date": task.due_date,
                    "hours_logged": round(float(hours_by_task.get(task.id) or 0), 2),
                }
                for task in tasks if task.project_id == project.id
            ]
            entries.append({
                "id": project.id,
                "name": project.name,
                "code": project.code,
                "status": project.status,
                "role_in_project": role_in_project,
                "tasks": project_tasks,
            })

        entries.sort(key=lambda e: (-len(e["tasks"]), e["name"].lower()))
        return {"success": True, "projects": entries}


user_service = UserService()
