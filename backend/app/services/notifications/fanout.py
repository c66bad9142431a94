"""
Notification Fan-out Engine

Turns one lifecycle event into recipient-scoped notifications, each paired
with exactly one audit entry describing the same event.

AUTHORITY MODEL:
- SYSTEM: notify_report_created, notify_comment_added, notify_status_changed
  (invoked by the outbox after the triggering mutation has committed)
- RECIPIENT: mark_read, mark_all_read, delete, delete_all
  (scoped to the caller's own notifications)

No notification ever targets the user whose action caused it.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import (
    AuditEventType, NotificationAuditDB, NotificationDB, NotificationType,
    ReportDB, ReportStatus, UserDB, UserRole, utcnow,
)
from ..reporting.access import MANAGE_NOTIFICATIONS, require_capability
from ..reporting.errors import NotFound, UnknownReportType
from ..reporting import registry

logger = logging.getLogger(__name__)


# Status-specific copy for the submitter
STATUS_MESSAGES = {
    ReportStatus.IN_REVIEW.value: (
        "Report Under Review",
        "Your report is now under review.",
        NotificationType.INFO,
    ),
    ReportStatus.CLOSED.value: (
        "Report Approved & Closed",
        "Your report has been approved and closed.",
        NotificationType.SUCCESS,
    ),
    ReportStatus.REJECTED.value: (
        "Report Rejected",
        "Your report has been rejected.",
        NotificationType.ERROR,
    ),
}


class NotificationFanout:
    """
    Creates notifications and their audit trail.

    The notify_* methods add rows to the session without committing; the
    outbox commits them together with the delivery marker. The recipient
    operations commit their own changes.
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _admin_ids(self) -> List[str]:
        rows = self.db.query(UserDB.id).filter(UserDB.role == UserRole.ADMIN.value).order_by(UserDB.id).all()
        return [r.id for r in rows]

    def _audit(
        self,
        event_type: AuditEventType,
        user_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        related_report_id: Optional[str] = None,
        notification_id: Optional[str] = None,
        message: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> NotificationAuditDB:
        entry = NotificationAuditDB(
            id=str(uuid4()),
            event_type=event_type.value,
            user_id=user_id,
            target_user_id=target_user_id,
            related_report_id=related_report_id,
            notification_id=notification_id,
            message=message,
            meta=meta,
            created_at=utcnow(),
        )
        self.db.add(entry)
        return entry

    def _notify(
        self,
        recipient_id: str,
        actor_id: Optional[str],
        title: str,
        message: str,
        notification_type: NotificationType,
        related_report_id: Optional[str],
        event_type: AuditEventType,
        audit_message: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Optional[NotificationDB]:
        """One notification plus its paired audit entry. Skips self-notification."""
        if recipient_id == actor_id:
            return None

        now = utcnow()
        notification = NotificationDB(
            id=str(uuid4()),
            user_id=recipient_id,
            title=title,
            message=message,
            type=notification_type.value,
            is_read=False,
            related_report_id=related_report_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(notification)
        self._audit(
            event_type,
            user_id=actor_id,
            target_user_id=recipient_id,
            related_report_id=related_report_id,
            notification_id=notification.id,
            message=audit_message,
            meta=meta,
        )
        return notification

    # =========================================================================
    # LIFECYCLE EVENTS
    # =========================================================================

    def notify_report_created(self, report_id: str, submitter_id: str, report_type: str) -> int:
        """Every admin except the submitter learns a report awaits review."""
        try:
            label = registry.resolve(report_type).label
        except UnknownReportType:
            label = "report"

        created = 0
        for admin_id in self._admin_ids():
            if self._notify(
                recipient_id=admin_id,
                actor_id=submitter_id,
                title="New Report Submitted",
                message=f"A new {label} requires review.",
                notification_type=NotificationType.INFO,
                related_report_id=report_id,
                event_type=AuditEventType.NEW_REPORT_NOTIFY,
                audit_message="Notify admin about new report",
                meta={"reportType": report_type},
            ):
                created += 1

        logger.info(f"Report {report_id} created: notified {created} admin(s)")
        return created

    def notify_comment_added(self, report_id: str, commenter_id: str, comment_id: str) -> int:
        """Admins (except the commenter) and the submitter (if not the commenter)."""
        row = self.db.query(ReportDB.submitted_by).filter(ReportDB.id == report_id).first()
        submitter_id = row.submitted_by if row else None
        if submitter_id is None:
            logger.warning(f"Comment {comment_id} references unknown report {report_id}")

        meta = {"commentId": comment_id}
        admin_ids = self._admin_ids()
        created = 0

        for admin_id in admin_ids:
            if self._notify(
                recipient_id=admin_id,
                actor_id=commenter_id,
                title="New Comment",
                message="A new comment was added to a report you oversee.",
                notification_type=NotificationType.INFO,
                related_report_id=report_id,
                event_type=AuditEventType.NEW_COMMENT_NOTIFY_ADMIN,
                audit_message="Notify admin about new comment",
                meta=meta,
            ):
                created += 1

        # An admin submitter was already told above
        if submitter_id and submitter_id not in admin_ids:
            if self._notify(
                recipient_id=submitter_id,
                actor_id=commenter_id,
                title="New Comment on Your Report",
                message="A new comment was added to your report.",
                notification_type=NotificationType.INFO,
                related_report_id=report_id,
                event_type=AuditEventType.NEW_COMMENT_NOTIFY_SUBMITTER,
                audit_message="Notify submitter about new comment",
                meta=meta,
            ):
                created += 1

        return created

    def notify_status_changed(
        self,
        report_id: str,
        submitter_id: str,
        new_status: str,
        actor_id: Optional[str] = None,
    ) -> int:
        """One notification to the submitter, unless they changed it themselves."""
        title, message, notification_type = STATUS_MESSAGES.get(
            new_status,
            ("Report Status Updated", f"Your report status changed to {new_status}.", NotificationType.INFO),
        )
        notification = self._notify(
            recipient_id=submitter_id,
            actor_id=actor_id,
            title=title,
            message=message,
            notification_type=notification_type,
            related_report_id=report_id,
            event_type=AuditEventType.STATUS_NOTIFY,
            audit_message=f"Status -> {new_status}",
            meta={"status": new_status},
        )
        return 1 if notification else 0

    # =========================================================================
    # RECIPIENT OPERATIONS
    # =========================================================================

    def list_for(self, user: UserDB) -> List[NotificationDB]:
        require_capability(user, MANAGE_NOTIFICATIONS)
        return self.db.query(NotificationDB).filter(
            NotificationDB.user_id == user.id
        ).order_by(NotificationDB.created_at.desc(), NotificationDB.id.asc()).all()

    def unread_count(self, user: UserDB) -> int:
        require_capability(user, MANAGE_NOTIFICATIONS)
        return self.db.query(NotificationDB).filter(
            NotificationDB.user_id == user.id,
            NotificationDB.is_read.is_(False),
        ).count()

    def _owned(self, notification_id: str, user: UserDB) -> NotificationDB:
        # Another user's notification is indistinguishable from a missing one
        notification = self.db.query(NotificationDB).filter(
            NotificationDB.id == notification_id,
            NotificationDB.user_id == user.id,
        ).first()
        if notification is None:
            raise NotFound("Notification not found")
        return notification

    def mark_read(self, notification_id: str, user: UserDB) -> NotificationDB:
        require_capability(user, MANAGE_NOTIFICATIONS)
        notification = self._owned(notification_id, user)
        if not notification.is_read:
            notification.is_read = True
            notification.updated_at = utcnow()
        self._audit(
            AuditEventType.MARK_READ,
            user_id=user.id,
            target_user_id=user.id,
            related_report_id=notification.related_report_id,
            notification_id=notification.id,
            message="Notification marked as read",
        )
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, user: UserDB) -> int:
        require_capability(user, MANAGE_NOTIFICATIONS)
        updated = self.db.query(NotificationDB).filter(
            NotificationDB.user_id == user.id,
            NotificationDB.is_read.is_(False),
        ).update({"is_read": True, "updated_at": utcnow()}, synchronize_session=False)
        self._audit(
            AuditEventType.MARK_ALL_READ,
            user_id=user.id,
            target_user_id=user.id,
            message="All notifications marked as read",
            meta={"updated": updated},
        )
        self.db.commit()
        return updated

    def delete(self, notification_id: str, user: UserDB) -> None:
        require_capability(user, MANAGE_NOTIFICATIONS)
        notification = self._owned(notification_id, user)
        self._audit(
            AuditEventType.DELETE,
            user_id=user.id,
            target_user_id=user.id,
            related_report_id=notification.related_report_id,
            notification_id=notification.id,
            message="Notification deleted",
        )
        self.db.delete(notification)
        self.db.commit()

    def delete_all(self, user: UserDB) -> int:
        require_capability(user, MANAGE_NOTIFICATIONS)
        deleted = self.db.query(NotificationDB).filter(
            NotificationDB.user_id == user.id
        ).delete(synchronize_session=False)
        self._audit(
            AuditEventType.DELETE_ALL,
            user_id=user.id,
            target_user_id=user.id,
            message="All notifications deleted",
            meta={"deleted": deleted},
        )
        self.db.commit()
        return deleted
