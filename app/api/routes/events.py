from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_db, get_pagination, require_role, Pagination
from app.core.permissions import ADMIN
from app.core.responses import paginated_response
from app.models.user import User
from app.schemas.event import EventResponse
from app.services.event_service import event_service

router = APIRouter(prefix="/events", tags=["Audit"])


@router.get("")
async def list_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    event_type: Optional[str] = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role([ADMIN]))
):
    """Audit trail of the organization, newest first (admin only)."""
    result = event_service.list_events(
        db, current_user.organization_id, entity_type=entity_type, entity_id=entity_id,
        event_type=event_type, limit=pagination.page_size, offset=pagination.offset
    )
    return paginated_response(
        [EventResponse.model_validate(e) for e in result["events"]],
        pagination.page, pagination.page_size, result["total"]
    )
