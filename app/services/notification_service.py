import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.responses import failure
from app.models.notification import Notification
from app.models.user import User

logger = logging.getLogger(__name__)


class NotificationService:
    """In-app notifications stored per user.

    Creating a notification is a side effect of other workflows, so
    ``create_notification`` and ``broadcast_to_organization`` never raise:
    a failure is logged and reported in the result.
    """

    def create_notification(
        self,
        db: Session,
        organization_id: int,
        user_id: int,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict] = None
    ) -> Dict:
        try:
            notification = Notification(
                organization_id=organization_id,
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                data=data or {}
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
            return {"success": True, "notification": notification}
        except Exception as e:
            logger.error(f"Error creating notification for user {user_id}: {e}")
            db.rollback()
            return failure("Failed to create notification", "error")

    def broadcast_to_organization(
        self,
        db: Session,
        organization_id: int,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict] = None
    ) -> Dict:
        """Send the same notification to every active user of the organization."""
        try:
            user_ids = [
                row.id for row in db.query(User.id).filter(
                    User.organization_id == organization_id,
                    User.is_active.is_(True),
                    User.deleted_at.is_(None)
                ).all()
            ]
            for user_id in user_ids:
                db.add(Notification(
                    organization_id=organization_id,
                    user_id=user_id,
                    type=type,
                    title=title,
                    message=message,
                    data=data or {}
                ))
            db.commit()
            logger.info(f"Broadcast '{title}' to {len(user_ids)} users of organization {organization_id}")
            return {"success": True, "sent_count": len(user_ids)}
        except Exception as e:
            logger.error(f"Error broadcasting to organization {organization_id}: {e}")
            db.rollback()
            return failure("Failed to broadcast notification", "error")

    def get_user_notifications(
        self,
        db: Session,
        user_id: int,
        organization_id: int,
        unread_only: bool = False,
        type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Dict:
        query = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.organization_id == organization_id
        )
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        if type:
            query = query.filter(Notification.type == type)

        total = query.count()
        notifications: List[Notification] = query.order_by(
            Notification.created_at.desc(), Notification.id.desc()
        ).offset(offset).limit(limit).all()

        return {
            "success": True,
            "notifications": notifications,
            "total": total,
            "unread_count": self.get_unread_count(db, user_id, organization_id)
        }

    def get_unread_count(self, db: Session, user_id: int, organization_id: int) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.organization_id == organization_id,
            Notification.is_read.is_(False)
        ).count()

    def mark_as_read(self, db: Session, notification_id: int, user_id: int) -> Dict:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            return failure("Notification not found", "not_found")

        notification.is_read = True
        db.commit()
        db.refresh(notification)
        return {"success": True, "notification": notification}

    def mark_all_as_read(self, db: Session, user_id: int, organization_id: int) -> Dict:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.organization_id == organization_id,
            Notification.is_read.is_(False)
        ).update({"is_read": True}, synchronize_session=False)
        db.commit()
        return {"success": True, "updated": updated}

    def delete_notification(self, db: Session, notification_id: int, user_id: int) -> Dict:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            return failure("Notification not found", "not_found")

        db.delete(notification)
        db.commit()
        return {"success": True}

    def delete_old_notifications(self, db: Session, days_old: int = 90) -> Dict:
        """Delete read notifications older than ``days_old`` days."""
        cutoff = datetime.utcnow() - timedelta(days=days_old)
        try:
            deleted = db.query(Notification).filter(
                Notification.is_read.is_(True),
                Notification.created_at < cutoff
            ).delete(synchronize_session=False)
            db.commit()
            if deleted:
                logger.info(f"Deleted {deleted} notifications older than {days_old} days")
            return {"success": True, "deleted": deleted}
        except Exception as e:
            logger.error(f"Error deleting old notifications: {e}")
            db.rollback()
            return failure("Failed to delete old notifications", "error")


notification_service = NotificationService()
