from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_current_user, get_db
from app.core.responses import success_response, unwrap
from app.models.user import User
from app.schemas.task import TimesheetResponse, TimesheetStatusUpdate
from app.services.task_service import task_service

router = APIRouter(prefix="/timesheets", tags=["Timesheets"])


@router.get("/{timesheet_id}")
async def get_timesheet(
    timesheet_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    timesheet = unwrap(
        task_service.get_timesheet(db, timesheet_id, current_user.organization_id, current_user), "timesheet"
    )
    return success_response(TimesheetResponse.model_validate(timesheet))


@router.patch("/{timesheet_id}/status")
async def change_timesheet_status(
    timesheet_id: int,
    body: TimesheetStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Advance a timesheet through draft, submitted, approved and locked."""
    timesheet = unwrap(
        task_service.change_timesheet_status(
            db, timesheet_id, current_user.organization_id, body.status, current_user
        ),
        "timesheet"
    )
    return success_response(TimesheetResponse.model_validate(timesheet))
