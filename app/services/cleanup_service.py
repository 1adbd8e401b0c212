import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import SessionLocal
from app.services.invitation_service import invitation_service
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)


class CleanupService:
    """Periodic housekeeping: expire stale invitations, drop old read notifications."""

    def __init__(self):
        self.cleanup_interval = settings.CLEANUP_INTERVAL_HOURS  # hours
        self.notification_max_age = settings.NOTIFICATION_RETENTION_DAYS  # days
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.last_run: Optional[datetime] = None

    def start_scheduler(self):
        """Start the automatic cleanup scheduler"""
        if self.running:
            return

        self.running = True
        self._stop_event.clear()
        self.thread = threading.Thread(target=self._scheduler_loop, daemon=True)
        self.thread.start()
        logger.info("Cleanup scheduler started")

    def stop_scheduler(self):
        """Stop the automatic cleanup scheduler"""
        self.running = False
        self._stop_event.set()
        if self.thread:
            self.thread.join(timeout=5)
            self.thread = None
        logger.info("Cleanup scheduler stopped")

    def _scheduler_loop(self):
        while self.running:
            db = SessionLocal()
            try:
                self.perform_cleanup(db)
            except Exception as e:
                logger.error(f"Error in cleanup scheduler: {e}")
            finally:
                db.close()
            self._stop_event.wait(self.cleanup_interval * 3600)

    def perform_cleanup(self, db: Session) -> Dict:
        """Perform all cleanup operations"""
        results = {
            "success": True,
            "timestamp": datetime.utcnow().isoformat(),
            "operations": {}
        }

        try:
            results["operations"]["invitations_expired"] = invitation_service.expire_old_invitations(db)
        except Exception as e:
            logger.error(f"Error expiring invitations: {e}")
            db.rollback()
            results["success"] = False
            results["operations"]["invitations_expired"] = 0

        notifications = notification_service.delete_old_notifications(db, self.notification_max_age)
        results["operations"]["notifications_deleted"] = notifications.get("deleted", 0)
        if not notifications["success"]:
            results["success"] = False

        self.last_run = datetime.utcnow()
        logger.info(f"Cleanup finished: {results['operations']}")
        return results

    def get_cleanup_stats(self) -> Dict:
        return {
            "scheduler_running": self.running,
            "cleanup_interval_hours": self.cleanup_interval,
            "notification_max_age_days": self.notification_max_age,
            "last_run": self.last_run,
            "next_cleanup": self.last_run + timedelta(hours=self.cleanup_interval) if self.running and self.last_run else None
        }

    def manual_cleanup(self, db: Session) -> Dict:
        """Trigger manual cleanup"""
        logger.info("Manual cleanup triggered")
        return self.perform_cleanup(db)


# Global cleanup service instance
cleanup_service = CleanupService()
