from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.api.deps import get_current_user, get_db, require_role
from app.core.permissions import PROJECT_MANAGER_ROLES
from app.core.responses import success_response, unwrap
from app.models.user import User
from app.schemas.task import TaskResponse, TaskStatusUpdate, TaskUpdate, TimesheetCreate, TimesheetResponse
from app.services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get("/{task_id}")
async def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    task = unwrap(task_service.get_task(db, task_id, current_user.organization_id, current_user), "task")
    return success_response(TaskResponse.model_validate(task))


@router.put("/{task_id}")
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    task = unwrap(
        task_service.update_task(
            db, task_id, current_user.organization_id, task_data.model_dump(exclude_unset=True), current_user
        ),
        "task"
    )
    return success_response(TaskResponse.model_validate(task))


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(PROJECT_MANAGER_ROLES))
):
    unwrap(task_service.delete_task(db, task_id, current_user.organization_id, current_user))
    return success_response({"id": task_id, "deleted": True})


@router.patch("/{task_id}/status")
async def change_task_status(
    task_id: int,
    body: TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    task = unwrap(
        task_service.change_status(db, task_id, current_user.organization_id, body.status, current_user), "task"
    )
    return success_response(TaskResponse.model_validate(task))


@router.get("/{task_id}/timesheets")
async def list_task_timesheets(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = task_service.list_timesheets(db, task_id, current_user.organization_id, current_user)
    unwrap(result)
    return success_response([TimesheetResponse.model_validate(t) for t in result["timesheets"]])


@router.post("/{task_id}/timesheets", status_code=status.HTTP_201_CREATED)
async def log_task_time(
    task_id: int,
    entry: TimesheetCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    timesheet = unwrap(
        task_service.log_time(db, task_id, current_user.organization_id, current_user, entry.model_dump()),
        "timesheet"
    )
    return success_response(TimesheetResponse.model_validate(timesheet))
