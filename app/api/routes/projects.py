from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.api.deps import get_current_user, get_db, get_pagination, require_role, Pagination
from app.core.permissions import PROJECT_MANAGER_ROLES
from app.core.responses import paginated_response, success_response, unwrap
from app.models.user import User
from app.schemas.project import ProjectCreate, ProjectMemberAdd, ProjectResponse, ProjectUpdate
from app.schemas.task import TaskCreate, TaskResponse
from app.services.project_service import project_service
from app.services.task_service import task_service

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("")
async def list_projects(
    status: Optional[str] = None,
    search: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List projects. Members only see the projects they belong to."""
    result = project_service.list_projects(
        db, current_user.organization_id, current_user, status=status, search=search,
        limit=pagination.page_size, offset=pagination.offset
    )
    return paginated_response(
        [ProjectResponse.model_validate(p) for p in result["projects"]],
        pagination.page, pagination.page_size, result["total"]
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    project = unwrap(
        project_service.create_project(db, current_user.organization_id, project_data.model_dump(), current_user.id),
        "project"
    )
    return success_response(ProjectResponse.model_validate(project))


@router.get("/{project_id}")
async def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    project = unwrap(project_service.get_project(db, project_id, current_user.organization_id, current_user), "project")
    return success_response(ProjectResponse.model_validate(project))


@router.put("/{project_id}")
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    project = unwrap(
        project_service.update_project(
            db, project_id, current_user.organization_id, project_data.model_dump(exclude_unset=True), current_user.id
        ),
        "project"
    )
    return success_response(ProjectResponse.model_validate(project))


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    unwrap(project_service.delete_project(db, project_id, current_user.organization_id, current_user.id))
    return success_response({"id": project_id, "deleted": True})


@router.post("/{project_id}/members")
async def add_project_member(
    project_id: int,
    member: ProjectMemberAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    project = unwrap(
        project_service.add_member(
            db, project_id, current_user.organization_id, member.user_id, member.role_in_project, current_user.id
        ),
        "project"
    )
    return success_response(ProjectResponse.model_validate(project))


@router.delete("/{project_id}/members/{user_id}")
async def remove_project_member(
    project_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    project = unwrap(
        project_service.remove_member(db, project_id, current_user.organization_id, user_id, current_user.id),
        "project"
    )
    return success_response(ProjectResponse.model_validate(project))


@router.get("/{project_id}/tasks")
async def list_project_tasks(
    project_id: int,
    status: Optional[str] = None,
    assignee_id: Optional[int] = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = task_service.list_tasks(
        db, project_id, current_user.organization_id, current_user, status=status, assignee_id=assignee_id,
        limit=pagination.page_size, offset=pagination.offset
    )
    unwrap(result)
    return paginated_response(
        [TaskResponse.model_validate(t) for t in result["tasks"]],
        pagination.page, pagination.page_size, result["total"]
    )


@router.post("/{project_id}/tasks", status_code=status.HTTP_201_CREATED)
async def create_project_task(
    project_id: int,
    task_data: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    task = unwrap(
        task_service.create_task(db, project_id, current_user.organization_id, task_data.model_dump(), current_user),
        "task"
    )
    return success_response(TaskResponse.model_validate(task))
