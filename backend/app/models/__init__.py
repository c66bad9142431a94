"""Air Safety Reporting - Data Models"""
from .db_models import (
    # Enums
    UserRole, ReportStatus, NotificationType, AuditEventType,
    OutboxEventType, OutboxStatus,
    # Tables
    UserDB, ReportDB, CommentDB,
    NotificationDB, NotificationAuditDB, NotificationOutboxDB,
    utcnow,
)

__all__ = [
    "UserRole", "ReportStatus", "NotificationType", "AuditEventType",
    "OutboxEventType", "OutboxStatus",
    "UserDB", "ReportDB", "CommentDB",
    "NotificationDB", "NotificationAuditDB", "NotificationOutboxDB",
    "utcnow",
]
