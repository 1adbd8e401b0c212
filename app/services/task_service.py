import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional
from sqlalchemy.orm import Session
from app.core.permissions import PROJECT_MANAGER_ROLES, role_error
from app.core.responses import failure
from app.models.event import EntityType
from app.models.notification import NotificationType
from app.models.project import Project
from app.models.task import Task, TaskStatus, Timesheet, TimesheetStatus, TASK_TRANSITIONS, TIMESHEET_TRANSITIONS
from app.models.user import User
from app.services.event_service import event_service
from app.services.notification_service import notification_service
from app.services.project_service import project_service

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def calculate_cost(hourly_rate, hours) -> Decimal:
    """Cost of a timesheet at the user's current rate, rounded to cents."""
    return (Decimal(str(hourly_rate or 0)) * Decimal(str(hours))).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class TaskService:

    def _query(self, db: Session, organization_id: int):
        return db.query(Task).join(Project, Task.project_id == Project.id).filter(
            Project.organization_id == organization_id,
            Project.deleted_at.is_(None),
            Task.deleted_at.is_(None)
        )

    def _notify_assignee(self, db: Session, task: Task, organization_id: int, actor_id: int):
        if task.assignee_id and task.assignee_id != actor_id:
            notification_service.create_notification(
                db, organization_id, task.assignee_id, NotificationType.TASK_ASSIGNED.value,
                "New task assigned",
                f"You were assigned to '{task.title}'",
                {"task_id": task.id, "project_id": task.project_id}
            )

    def _check_assignee(self, db: Session, assignee_id: Optional[int], organization_id: int) -> Optional[Dict]:
        if assignee_id is None:
            return None
        assignee = db.query(User).filter(
            User.id == assignee_id,
            User.organization_id == organization_id,
            User.deleted_at.is_(None)
        ).first()
        if not assignee:
            return failure("Assignee not found in organization", "validation")
        return None

    def get_task(self, db: Session, task_id: int, organization_id: int, user: Optional[User] = None) -> Dict:
        """Fetch a task. With ``user``, tasks of projects hidden from that user are not found
        unless the user is the assignee."""
        task = self._query(db, organization_id).filter(Task.id == task_id).first()
        if not task:
            return failure("Task not found", "not_found")
        if user is not None and task.assignee_id != user.id \
                and not project_service.get_project(db, task.project_id, organization_id, user)["success"]:
            return failure("Task not found", "not_found")
        return {"success": True, "task": task}

    def list_tasks(
        self,
        db: Session,
        project_id: int,
        organization_id: int,
        user: User,
        status: Optional[str] = None,
        assignee_id: Optional[int] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Dict:
        project = project_service.get_project(db, project_id, organization_id, user)
        if not project["success"]:
            return project

        query = self._query(db, organization_id).filter(Task.project_id == project_id)
        if status:
            query = query.filter(Task.status == status)
        if assignee_id is not None:
            query = query.filter(Task.assignee_id == assignee_id)

        total = query.count()
        tasks = query.order_by(Task.priority.desc(), Task.created_at.desc()).offset(offset).limit(limit).all()
        return {"success": True, "tasks": tasks, "total": total}

    def create_task(self, db: Session, project_id: int, organization_id: int, data: Dict, actor: User) -> Dict:
        project = project_service.get_project(db, project_id, organization_id)
        if not project["success"]:
            return project
        error = self._check_assignee(db, data.get("assignee_id"), organization_id)
        if error:
            return error

        task = Task(project_id=project_id, status=TaskStatus.NEW.value, **data)
        db.add(task)
        db.flush()
        event_service.record(
            db, organization_id, EntityType.TASK.value, task.id, "task.created",
            {"project_id": project_id, "assignee_id": task.assignee_id, "actor_id": actor.id}
        )
        db.commit()
        db.refresh(task)
        logger.info(f"Task {task.id} created in project {project_id} by user {actor.id}")

        self._notify_assignee(db, task, organization_id, actor.id)
        return {"success": True, "task": task}

    def update_task(self, db: Session, task_id: int, organization_id: int, data: Dict, actor: User) -> Dict:
        result = self.get_task(db, task_id, organization_id)
        if not result["success"]:
            return result
        task = result["task"]

        error = self._check_assignee(db, data.get("assignee_id"), organization_id)
        if error:
            return error

        reassigned = "assignee_id" in data and data["assignee_id"] != task.assignee_id
        for field, value in data.items():
            setattr(task, field, value)
        event_service.record(
            db, organization_id, EntityType.TASK.value, task.id, "task.updated",
            {"fields": sorted(data.keys()), "actor_id": actor.id}
        )
        db.commit()
        db.refresh(task)

        if reassigned:
            self._notify_assignee(db, task, organization_id, actor.id)
        return {"success": True, "task": task}

    def delete_task(self, db: Session, task_id: int, organization_id: int, actor: User) -> Dict:
        result = self.get_task(db, task_id, organization_id)
        if not result["success"]:
            return result
        task = result["task"]

        task.deleted_at = datetime.utcnow()
        event_service.record(
            db, organization_id, EntityType.TASK.value, task.id, "task.deleted", {"actor_id": actor.id}
        )
        db.commit()
        return {"success": True}

    def change_status(self, db: Session, task_id: int, organization_id: int, new_status: str, actor: User) -> Dict:
        """Move a task along the status table. Members may only move their own tasks."""
        result = self.get_task(db, task_id, organization_id)
        if not result["success"]:
            return result
        task = result["task"]

        if actor.role not in PROJECT_MANAGER_ROLES and task.assignee_id != actor.id:
            return failure("Only the assignee or a project manager can change this task's status", "forbidden")

        current_status = task.status
        if new_status not in TASK_TRANSITIONS.get(current_status, []):
            return failure(f"Cannot transition from '{current_status}' to '{new_status}'", "invalid_state")

        updated = db.query(Task).filter(
            Task.id == task_id,
            Task.status == current_status
        ).update({"status": new_status, "updated_at": datetime.utcnow()}, synchronize_session=False)
        if updated == 0:
            db.rollback()
            return failure("Task status changed concurrently, reload and retry", "invalid_state")

        event_service.record(
            db, organization_id, EntityType.TASK.value, task_id, "task.status_changed",
            {"from": current_status, "to": new_status, "actor_id": actor.id}
        )
        db.commit()
        db.refresh(task)
        logger.info(f"Task {task_id} moved {current_status} -> {new_status} by user {actor.id}")
        return {"success": True, "task": task}

    def list_timesheets(self, db: Session, task_id: int, organization_id: int, user: Optional[User] = None) -> Dict:
        result = self.get_task(db, task_id, organization_id, user)
        if not result["success"]:
            return result

        timesheets = db.query(Timesheet).filter(Timesheet.task_id == task_id).order_by(Timesheet.start.desc()).all()
        return {"success": True, "timesheets": timesheets}

    def log_time(self, db: Session, task_id: int, organization_id: int, user: User, data: Dict) -> Dict:
        """Record time against a task, pricing it at the user's hourly rate."""
        result = self.get_task(db, task_id, organization_id)
        if not result["success"]:
            return result
        task = result["task"]

        if user.role not in PROJECT_MANAGER_ROLES and task.assignee_id != user.id \
                and not project_service.is_member(db, task.project_id, user.id):
            return failure("Only project members can log time on this task", "forbidden")

        seconds = (data["end"] - data["start"]).total_seconds()
        hours = (Decimal(str(seconds)) / Decimal(3600)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        timesheet = Timesheet(
            project_id=task.project_id,
            task_id=task.id,
            user_id=user.id,
            start=data["start"],
            end=data["end"],
            duration_hours=hours,
            cost_at_time=calculate_cost(user.hourly_rate, hours),
            billable=data.get("billable", True),
            notes=data.get("notes"),
            status=TimesheetStatus.DRAFT.value
        )
        db.add(timesheet)
        db.flush()
        event_service.record(
            db, organization_id, EntityType.TIMESHEET.value, timesheet.id, "timesheet.created",
            {"task_id": task.id, "hours": float(hours), "actor_id": user.id}
        )
        db.commit()
        db.refresh(timesheet)
        return {"success": True, "timesheet": timesheet}

    def get_timesheet(self, db: Session, timesheet_id: int, organization_id: int, user: Optional[User] = None) -> Dict:
        timesheet = db.query(Timesheet).join(Project, Timesheet.project_id == Project.id).filter(
            Timesheet.id == timesheet_id,
            Project.organization_id == organization_id,
            Project.deleted_at.is_(None)
        ).first()
        if not timesheet:
            return failure("Timesheet not found", "not_found")
        if user is not None and timesheet.user_id != user.id \
                and not project_service.get_project(db, timesheet.project_id, organization_id, user)["success"]:
            return failure("Timesheet not found", "not_found")
        return {"success": True, "timesheet": timesheet}

    def change_timesheet_status(
        self, db: Session, timesheet_id: int, organization_id: int, new_status: str, actor: User
    ) -> Dict:
        """draft -> submitted -> approved -> locked.

        The owner submits their own time; approving and locking need a project manager role.
        """
        result = self.get_timesheet(db, timesheet_id, organization_id, actor)
        if not result["success"]:
            return result
        timesheet = result["timesheet"]

        is_manager = actor.role in PROJECT_MANAGER_ROLES
        if new_status == TimesheetStatus.SUBMITTED.value:
            if timesheet.user_id != actor.id and not is_manager:
                return failure("Only the owner or a project manager can submit this timesheet", "forbidden")
        elif not is_manager:
            return failure(role_error(actor.role, PROJECT_MANAGER_ROLES), "forbidden")

        current_status = timesheet.status
        if new_status not in TIMESHEET_TRANSITIONS.get(current_status, []):
            return failure(f"Cannot transition from '{current_status}' to '{new_status}'", "invalid_state")

        updated = db.query(Timesheet).filter(
            Timesheet.id == timesheet_id,
            Timesheet.status == current_status
        ).update({"status": new_status, "updated_at": datetime.utcnow()}, synchronize_session=False)
        if updated == 0:
            db.rollback()
            return failure("Timesheet status changed concurrently, reload and retry", "invalid_state")

        event_service.record(
            db, organization_id, EntityType.TIMESHEET.value, timesheet_id, "timesheet.status_changed",
            {"from": current_status, "to": new_status, "actor_id": actor.id}
        )
        db.commit()
        db.refresh(timesheet)
        logger.info(f"Timesheet {timesheet_id} moved {current_status} -> {new_status} by user {actor.id}")
        return {"success": True, "timesheet": timesheet}

    def reprice_draft_timesheets(self, db: Session, user_id: int, hourly_rate) -> int:
        """Recompute ``cost_at_time`` of a user's draft timesheets. Does not commit."""
        drafts = db.query(Timesheet).filter(
            Timesheet.user_id == user_id,
            Timesheet.status == TimesheetStatus.DRAFT.value
        ).all()
        for timesheet in drafts:
            timesheet.cost_at_time = calculate_cost(hourly_rate, timesheet.duration_hours)
        return len(drafts)


task_service = TaskService()
