from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.api.deps import get_current_user, get_db
from app.core.responses import success_response, unwrap
from app.models.invitation import Invitation
from app.models.user import User
from app.schemas.invitation import InvitationCreate, InvitationCreated, InvitationDetail
from app.schemas.user import UserResponse
from app.services.invitation_service import invitation_service

router = APIRouter(prefix="/invitations", tags=["Invitations"])


def to_detail(invitation: Invitation) -> InvitationDetail:
    detail = InvitationDetail.model_validate(invitation)
    if invitation.organization:
        detail.organization_name = invitation.organization.name
    if invitation.invited_by:
        detail.invited_by_name = invitation.invited_by.name or invitation.invited_by.email
    return detail


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_invitation(
    invitation_data: InvitationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Invite an email address into the current organization."""
    invitation = unwrap(
        invitation_service.create_invitation(
            db, current_user.organization_id, current_user, invitation_data.email, invitation_data.role
        ),
        "invitation"
    )
    return success_response(InvitationCreated.model_validate(invitation))


@router.get("")
async def list_invitations(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = invitation_service.list_organization_invitations(db, current_user.organization_id, status)
    return success_response([to_detail(i) for i in result["invitations"]])


@router.get("/my-invitations")
async def list_my_invitations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Pending invitations for the signed-in user's email from other organizations."""
    result = invitation_service.list_my_invitations(db, current_user)
    return success_response([to_detail(i) for i in result["invitations"]])


@router.get("/token/{token}")
async def get_invitation_by_token(token: str, db: Session = Depends(get_db)):
    """Public lookup used by the signup page."""
    invitation = unwrap(invitation_service.get_by_token(db, token), "invitation")
    return success_response(to_detail(invitation))


@router.post("/{invitation_id}/accept")
async def accept_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    result = invitation_service.accept_invitation(db, invitation_id, current_user)
    invitation = unwrap(result, "invitation")
    return success_response({
        "invitation": to_detail(invitation),
        "user": UserResponse.model_validate(result["user"]),
    })


@router.post("/{invitation_id}/reject")
async def reject_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    invitation = unwrap(invitation_service.reject_invitation(db, invitation_id, current_user), "invitation")
    return success_response(to_detail(invitation))


@router.delete("/{invitation_id}")
async def revoke_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    unwrap(invitation_service.revoke_invitation(db, invitation_id, current_user.organization_id, current_user))
    return success_response({"id": invitation_id, "revoked": True})
