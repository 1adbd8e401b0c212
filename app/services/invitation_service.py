import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from app.core.config import settings
from app.core.permissions import ADMIN, get_allowed_invitation_roles
from app.core.responses import failure
from app.models.event import EntityType
from app.models.invitation import Invitation, InvitationStatus
from app.models.notification import NotificationType
from app.models.user import User
from app.services.event_service import event_service
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)


def _same_email(a: str, b: str) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


class InvitationService:
    """Organization invitations.

    An invitation is pending until it is accepted, rejected, revoked or
    passes ``expires_at``. Acceptance is a guarded update on
    ``status = 'pending'`` so only the first accept succeeds.
    """

    def create_invitation(self, db: Session, organization_id: int, inviter: User, email: str, role: str) -> Dict:
        allowed_roles = get_allowed_invitation_roles(inviter.role)
        if role not in allowed_roles:
            return failure(f"You don't have permission to invite users with role: {role}", "forbidden")

        email = email.strip().lower()
        existing_member = db.query(User).filter(
            func.lower(User.email) == email,
            User.organization_id == organization_id,
            User.deleted_at.is_(None)
        ).first()
        if existing_member:
            return failure("User with this email already exists in the organization", "conflict")

        existing = db.query(Invitation).filter(
            Invitation.organization_id == organization_id,
            Invitation.email == email
        ).first()
        if existing and existing.status == InvitationStatus.PENDING.value and not existing.is_expired:
            return failure("An invitation has already been sent to this email", "conflict")

        try:
            # Older invitations to the same address are replaced
            if existing:
                db.delete(existing)
                db.flush()

            invitation = Invitation(
                organization_id=organization_id,
                email=email,
                role=role,
                invited_by_id=inviter.id,
                expires_at=datetime.utcnow() + timedelta(days=settings.INVITATION_EXPIRE_DAYS)
            )
            db.add(invitation)
            db.flush()
            event_service.record(
                db, organization_id, EntityType.INVITATION.value, invitation.id, "invitation.created",
                {"email": email, "role": role, "invited_by_id": inviter.id}
            )
            db.commit()
            db.refresh(invitation)
            logger.info(f"Invitation {invitation.id} for {email} as {role} created by user {inviter.id}")
        except Exception as e:
            logger.error(f"Error creating invitation for {email}: {e}")
            db.rollback()
            return failure("Failed to create invitation", "error")

        account = db.query(User).filter(func.lower(User.email) == email, User.deleted_at.is_(None)).first()
        if account:
            organization_name = invitation.organization.name if invitation.organization else "an organization"
            notification_service.create_notification(
                db, account.organization_id, account.id, NotificationType.INVITATION_RECEIVED.value,
                "Organization invitation",
                f"{inviter.name or 'Admin'} invited you to join {organization_name} as {role}",
                {"invitation_id": invitation.id, "organization_id": organization_id, "role": role}
            )

        return {"success": True, "invitation": invitation}

    def get_invitation(self, db: Session, invitation_id: int) -> Dict:
        invitation = db.query(Invitation).options(
            joinedload(Invitation.organization), joinedload(Invitation.invited_by)
        ).filter(Invitation.id == invitation_id).first()
        if not invitation:
            return failure("Invitation not found", "not_found")
        return {"success": True, "invitation": invitation}

    def get_by_token(self, db: Session, token: str) -> Dict:
        invitation = db.query(Invitation).options(
            joinedload(Invitation.organization), joinedload(Invitation.invited_by)
        ).filter(Invitation.token == token).first()
        if not invitation:
            return failure("Invitation not found", "not_found")
        return {"success": True, "invitation": invitation}

    def list_organization_invitations(self, db: Session, organization_id: int, status: Optional[str] = None) -> Dict:
        query = db.query(Invitation).options(
            joinedload(Invitation.organization), joinedload(Invitation.invited_by)
        ).filter(Invitation.organization_id == organization_id)
        if status:
            query = query.filter(Invitation.status == status)
        invitations: List[Invitation] = query.order_by(Invitation.created_at.desc()).all()
        return {"success": True, "invitations": invitations}

    def list_my_invitations(self, db: Session, user: User) -> Dict:
        """Pending, unexpired invitations addressed to the user from other organizations."""
        invitations = db.query(Invitation).options(
            joinedload(Invitation.organization), joinedload(Invitation.invited_by)
        ).filter(
            func.lower(Invitation.email) == user.email.lower(),
            Invitation.status == InvitationStatus.PENDING.value,
            Invitation.expires_at > datetime.utcnow(),
            Invitation.organization_id != user.organization_id
        ).order_by(Invitation.created_at.desc()).all()
        return {"success": True, "invitations": invitations}

    def _check_redeemable(self, db: Session, invitation: Invitation, email: str) -> Optional[Dict]:
        if not _same_email(invitation.email, email):
            return failure("This invitation was sent to a different email address", "forbidden")
        if invitation.status != InvitationStatus.PENDING.value:
            return failure(f"Invitation is {invitation.status}", "invalid_state")
        if invitation.is_expired:
            invitation.status = InvitationStatus.EXPIRED.value
            db.commit()
            return failure("Invitation has expired", "invalid_state")
        return None

    def _mark(self, db: Session, invitation: Invitation, status: str) -> bool:
        values = {"status": status, "updated_at": datetime.utcnow()}
        if status == InvitationStatus.ACCEPTED.value:
            values["accepted_at"] = datetime.utcnow()
        updated = db.query(Invitation).filter(
            Invitation.id == invitation.id,
            Invitation.status == InvitationStatus.PENDING.value
        ).update(values, synchronize_session=False)
        return updated == 1

    def accept_invitation(self, db: Session, invitation_id: int, user: User) -> Dict:
        """Accept as the signed-in user: moves the user into the inviting organization."""
        result = self.get_invitation(db, invitation_id)
        if not result["success"]:
            return result
        invitation = result["invitation"]

        error = self._check_redeemable(db, invitation, user.email)
        if error:
            return error

        try:
            if not self._mark(db, invitation, InvitationStatus.ACCEPTED.value):
                db.rollback()
                return failure("Invitation is no longer pending", "invalid_state")

            previous_organization_id = user.organization_id
            user.organization_id = invitation.organization_id
            user.role = invitation.role
            event_service.record(
                db, invitation.organization_id, EntityType.INVITATION.value, invitation.id, "invitation.accepted",
                {"user_id": user.id, "email": invitation.email, "previous_organization_id": previous_organization_id}
            )
            db.commit()
            db.refresh(invitation)
            db.refresh(user)
            logger.info(f"Invitation {invitation.id} accepted by user {user.id}")
        except Exception as e:
            logger.error(f"Error accepting invitation {invitation_id}: {e}")
            db.rollback()
            return failure("Failed to accept invitation", "error")

        notification_service.create_notification(
            db, invitation.organization_id, invitation.invited_by_id, NotificationType.INVITATION_ACCEPTED.value,
            "Invitation accepted",
            f"{user.name or user.email} joined the organization as {invitation.role}",
            {"invitation_id": invitation.id, "user_id": user.id}
        )
        return {"success": True, "invitation": invitation, "user": user}

    def check_signup_token(self, db: Session, token: str, email: str) -> Dict:
        result = self.get_by_token(db, token)
        if not result["success"]:
            return result
        error = self._check_redeemable(db, result["invitation"], email)
        if error:
            return error
        return result

    def redeem_for_signup(self, db: Session, invitation: Invitation, new_user: User) -> Dict:
        """Mark the invitation accepted for a user created at signup.

        The caller owns the transaction and commits the new user together
        with the accepted invitation.
        """
        if not self._mark(db, invitation, InvitationStatus.ACCEPTED.value):
            return failure("Invitation is no longer pending", "invalid_state")
        event_service.record(
            db, invitation.organization_id, EntityType.INVITATION.value, invitation.id,
            "invitation.accepted", {"user_id": new_user.id, "email": new_user.email, "signup": True}
        )
        return {"success": True, "invitation": invitation}

    def reject_invitation(self, db: Session, invitation_id: int, user: User) -> Dict:
        result = self.get_invitation(db, invitation_id)
        if not result["success"]:
            return result
        invitation = result["invitation"]

        if not _same_email(invitation.email, user.email):
            return failure("This invitation was sent to a different email address", "forbidden")
        if invitation.status != InvitationStatus.PENDING.value:
            return failure(f"Invitation is {invitation.status}", "invalid_state")

        if not self._mark(db, invitation, InvitationStatus.REJECTED.value):
            db.rollback()
            return failure("Invitation is no longer pending", "invalid_state")
        event_service.record(
            db, invitation.organization_id, EntityType.INVITATION.value, invitation.id, "invitation.rejected",
            {"email": invitation.email}
        )
        db.commit()
        db.refresh(invitation)
        logger.info(f"Invitation {invitation.id} rejected by user {user.id}")
        return {"success": True, "invitation": invitation}

    def revoke_invitation(self, db: Session, invitation_id: int, organization_id: int, user: User) -> Dict:
        """Delete an invitation. Only the inviter or an admin may revoke."""
        invitation = db.query(Invitation).filter(
            Invitation.id == invitation_id,
            Invitation.organization_id == organization_id
        ).first()
        if not invitation:
            return failure("Invitation not found", "not_found")
        if invitation.invited_by_id != user.id and user.role != ADMIN:
            return failure("Only the inviter or an admin can revoke this invitation", "forbidden")

        db.delete(invitation)
        event_service.record(
            db, organization_id, EntityType.INVITATION.value, invitation_id, "invitation.revoked",
            {"actor_id": user.id}
        )
        db.commit()
        logger.info(f"Invitation {invitation_id} revoked by user {user.id}")
        return {"success": True}

    def expire_old_invitations(self, db: Session) -> int:
        count = db.query(Invitation).filter(
            Invitation.status == InvitationStatus.PENDING.value,
            Invitation.expires_at < datetime.utcnow()
        ).update({"status": InvitationStatus.EXPIRED.value}, synchronize_session=False)
        db.commit()
        if count:
            logger.info(f"Expired {count} invitations")
        return count


invitation_service = InvitationService()
