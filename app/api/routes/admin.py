from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_db, require_role
from app.core.permissions import ADMIN
from app.core.responses import ServiceError, success_response
from app.models.user import User
from app.services.cleanup_service import cleanup_service

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/cleanup")
async def perform_cleanup(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role([ADMIN]))
):
    """Expire stale invitations and delete old read notifications now."""
    result = cleanup_service.manual_cleanup(db)
    if not result["success"]:
        raise ServiceError("Cleanup finished with errors", "error")
    return success_response(result["operations"], timestamp=result["timestamp"])


@router.get("/cleanup/status")
async def get_cleanup_status(current_user: User = Depends(require_role([ADMIN]))):
    return success_response(cleanup_service.get_cleanup_stats())
