from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.api.deps import check_identity_hints, get_current_user, get_db, require_role
from app.core.permissions import ADMIN
from app.core.responses import success_response, unwrap
from app.models.user import User
from app.schemas.notification import BroadcastRequest, NotificationResponse
from app.services.notification_service import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    result = notification_service.get_user_notifications(
        db, current_user.id, current_user.organization_id,
        unread_only=unread_only, type=type, limit=limit, offset=offset
    )
    return success_response(
        [NotificationResponse.model_validate(n) for n in result["notifications"]],
        meta={"total": result["total"], "unread_count": result["unread_count"], "limit": limit, "offset": offset}
    )


@router.get("/unread-count")
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(check_identity_hints)
):
    count = notification_service.get_unread_count(db, current_user.id, current_user.organization_id)
    return success_response({"count": count})


@router.post("/mark-all-read")
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = notification_service.mark_all_as_read(db, current_user.id, current_user.organization_id)
    return success_response({"updated": result["updated"]})


@router.post("/broadcast")
async def broadcast_notification(
    request: BroadcastRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role([ADMIN]))
):
    """Send a notification to every active user in the organization (admin only)."""
    result = notification_service.broadcast_to_organization(
        db, current_user.organization_id, request.type, request.title, request.message, request.data
    )
    unwrap(result)
    return success_response({"sent_count": result["sent_count"]})


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = unwrap(notification_service.mark_as_read(db, notification_id, current_user.id), "notification")
    return success_response(NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    unwrap(notification_service.delete_notification(db, notification_id, current_user.id))
    return success_response({"id": notification_id, "deleted": True})
