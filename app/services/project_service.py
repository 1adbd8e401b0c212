import logging
from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session, selectinload
from app.core.permissions import can_view_all_projects
from app.core.responses import failure
from app.models.event import EntityType
from app.models.project import Project, project_members
from app.models.user import User
from app.services.event_service import event_service

logger = logging.getLogger(__name__)


class ProjectService:

    def _query(self, db: Session, organization_id: int):
        return db.query(Project).options(selectinload(Project.members)).filter(
            Project.organization_id == organization_id,
            Project.deleted_at.is_(None)
        )

    def _org_user(self, db: Session, user_id: Optional[int], organization_id: int) -> Optional[User]:
        if user_id is None:
            return None
        return db.query(User).filter(
            User.id == user_id,
            User.organization_id == organization_id,
            User.deleted_at.is_(None)
        ).first()

    def is_member(self, db: Session, project_id: int, user_id: int) -> bool:
        row = db.query(project_members).filter(
            project_members.c.project_id == project_id,
            project_members.c.user_id == user_id
        ).first()
        return row is not None

    def get_project(self, db: Session, project_id: int, organization_id: int, user: Optional[User] = None) -> Dict:
        """Fetch a project. Members only see projects they belong to or manage."""
        project = self._query(db, organization_id).filter(Project.id == project_id).first()
        if not project:
            return failure("Project not found", "not_found")
        if user is not None and not can_view_all_projects(user.role):
            if project.project_manager_id != user.id and not self.is_member(db, project.id, user.id):
                return failure("Project not found", "not_found")
        return {"success": True, "project": project}

    def list_projects(
        self,
        db: Session,
        organization_id: int,
        user: User,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> Dict:
        query = self._query(db, organization_id)
        if not can_view_all_projects(user.role):
            member_ids = db.query(project_members.c.project_id).filter(project_members.c.user_id == user.id)
            query = query.filter((Project.id.in_(member_ids)) | (Project.project_manager_id == user.id))
        if status:
            query = query.filter(Project.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter((Project.name.ilike(pattern)) | (Project.code.ilike(pattern)))

        total = query.count()
        projects = query.order_by(Project.created_at.desc(), Project.id.desc()).offset(offset).limit(limit).all()
        return {"success": True, "projects": projects, "total": total}

    def create_project(self, db: Session, organization_id: int, data: Dict, actor_id: int) -> Dict:
        member_ids: List[int] = data.pop("member_ids", []) or []
        if data.get("project_manager_id") is not None and not self._org_user(db, data["project_manager_id"], organization_id):
            return failure("Project manager not found in organization", "validation")
        if data.get("start_date") and data.get("end_date") and data["end_date"] < data["start_date"]:
            return failure("End date must be after start date", "validation")

        members = []
        for member_id in member_ids:
            member = self._org_user(db, member_id, organization_id)
            if not member:
                return failure(f"User {member_id} not found in organization", "validation")
            members.append(member)

        try:
            project = Project(organization_id=organization_id, **data)
            project.members = members
            db.add(project)
            db.flush()
            event_service.record(
                db, organization_id, EntityType.PROJECT.value, project.id, "project.created",
                {"name": project.name, "actor_id": actor_id}
            )
            db.commit()
            db.refresh(project)
            logger.info(f"Project {project.id} created by user {actor_id}")
            return {"success": True, "project": project}
        except Exception as e:
            logger.error(f"Error creating project: {e}")
            db.rollback()
            return failure("Failed to create project", "error")

    def update_project(self, db: Session, project_id: int, organization_id: int, data: Dict, actor_id: int) -> Dict:
        result = self.get_project(db, project_id, organization_id)
        if not result["success"]:
            return result
        project = result["project"]

        if data.get("project_manager_id") is not None and not self._org_user(db, data["project_manager_id"], organization_id):
            return failure("Project manager not found in organization", "validation")
        start_date = data.get("start_date", project.start_date)
        end_date = data.get("end_date", project.end_date)
        if start_date and end_date and end_date < start_date:
            return failure("End date must be after start date", "validation")

        for field, value in data.items():
            setattr(project, field, value)
        event_service.record(
            db, organization_id, EntityType.PROJECT.value, project.id, "project.updated",
            {"fields": sorted(data.keys()), "actor_id": actor_id}
        )
        db.commit()
        db.refresh(project)
        return {"success": True, "project": project}

    def delete_project(self, db: Session, project_id: int, organization_id: int, actor_id: int) -> Dict:
        result = self.get_project(db, project_id, organization_id)
        if not result["success"]:
            return result
        project = result["project"]

        project.deleted_at = datetime.utcnow()
        event_service.record(
            db, organization_id, EntityType.PROJECT.value, project.id, "project.deleted", {"actor_id": actor_id}
        )
        db.commit()
        logger.info(f"Project {project_id} deleted by user {actor_id}")
        return {"success": True}

    def add_member(
        self,
        db: Session,
        project_id: int,
        organization_id: int,
        user_id: int,
        role_in_project: Optional[str],
        actor_id: int
    ) -> Dict:
        result = self.get_project(db, project_id, organization_id)
        if not result["success"]:
            return result
        project = result["project"]

        user = self._org_user(db, user_id, organization_id)
        if not user:
            return failure("User not found in organization", "not_found")
        if self.is_member(db, project_id, user_id):
            return failure("User is already a member of this project", "conflict")

        db.execute(project_members.insert().values(
            project_id=project_id,
            user_id=user_id,
            role_in_project=role_in_project,
            assigned_at=datetime.utcnow()
        ))
        event_service.record(
            db, organization_id, EntityType.PROJECT.value, project_id, "project.member_added",
            {"user_id": user_id, "actor_id": actor_id}
        )
        db.commit()
        db.refresh(project)
        return {"success": True, "project": project}

    def remove_member(self, db: Session, project_id: int, organization_id: int, user_id: int, actor_id: int) -> Dict:
        result = self.get_project(db, project_id, organization_id)
        if not result["success"]:
            return result
        project = result["project"]

        deleted = db.execute(project_members.delete().where(
            project_members.c.project_id == project_id,
            project_members.c.user_id == user_id
        )).rowcount
        if not deleted:
            return failure("User is not a member of this project", "not_found")

        event_service.record(
            db, organization_id, EntityType.PROJECT.value, project_id, "project.member_removed",
            {"user_id": user_id, "actor_id": actor_id}
        )
        db.commit()
        db.refresh(project)
        return {"success": True, "project": project}


project_service = ProjectService()
