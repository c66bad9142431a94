"""
Air Safety Reporting - SQLAlchemy ORM Models
Relational models for users, reports, comments and notifications
"""
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, ForeignKey, Boolean, Index
from sqlalchemy.orm import relationship
from ..database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    """Roles resolved for a verified caller."""
    ADMIN = "admin"
    CAPTAIN = "captain"
    FIRST_OFFICER = "first_officer"


class ReportStatus(str, Enum):
    """Lifecycle states of a safety report."""
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    CLOSED = "closed"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    """Severity shown with a notification."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class AuditEventType(str, Enum):
    """Event types recorded in the notification audit log."""
    NEW_REPORT_NOTIFY = "new_report_notify"
    NEW_COMMENT_NOTIFY_ADMIN = "new_comment_notify_admin"
    NEW_COMMENT_NOTIFY_SUBMITTER = "new_comment_notify_submitter"
    STATUS_NOTIFY = "status_notify"
    MARK_READ = "mark_read"
    MARK_ALL_READ = "mark_all_read"
    DELETE = "delete"
    DELETE_ALL = "delete_all"


class OutboxEventType(str, Enum):
    """Lifecycle events that fan out into notifications."""
    REPORT_CREATED = "report_created"
    COMMENT_ADDED = "comment_added"
    STATUS_CHANGED = "status_changed"


class OutboxStatus(str, Enum):
    """Delivery state of an outbox entry."""
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


# =============================================================================
# USERS
# =============================================================================

class UserDB(Base):
    """User account. Identity and role are the only parts the core reads."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(50), nullable=False, default=UserRole.CAPTAIN.value)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    reports = relationship("ReportDB", back_populates="submitter")


# =============================================================================
# REPORTS
# =============================================================================

class ReportDB(Base):
    """
    Persisted safety report of any kind.

    One table for every kind; report_type is the discriminator and the
    kind-specific fixed columns are the union of every descriptor mapping.
    Fields that are not promoted to a column live in extra_data.
    """
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True)  # UUID
    report_type = Column(String(50), nullable=False, index=True)
    status = Column(String(50), nullable=False, default=ReportStatus.SUBMITTED.value, index=True)
    submitted_by = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)

    # Common fields
    description = Column(Text, nullable=False, default="")

    # Flight details (asr, cdf, captain)
    flight_number = Column(String(20), nullable=True)
    aircraft_type = Column(String(100), nullable=True)
    route = Column(String(200), nullable=True)
    event_date_time = Column(String(50), nullable=True)  # As submitted, ISO 8601
    contributing_factors = Column(Text, nullable=True)
    corrective_actions = Column(Text, nullable=True)

    # Occurrence (or, asr, rir, chr)
    location = Column(String(200), nullable=True)
    phase_of_flight = Column(String(100), nullable=True)
    risk_level = Column(String(50), nullable=True)  # low, medium, high, critical
    follow_up_actions = Column(Text, nullable=True)

    # Ramp incident (rir)
    ground_crew_names = Column(Text, nullable=True)
    vehicle_involved = Column(String(200), nullable=True)
    damage_type = Column(String(200), nullable=True)
    corrective_steps = Column(Text, nullable=True)

    # Nonconformity (ncr)
    department = Column(String(100), nullable=True)
    nonconformity_type = Column(String(200), nullable=True)
    root_cause = Column(Text, nullable=True)
    responsible_person = Column(String(200), nullable=True)
    preventive_actions = Column(Text, nullable=True)

    # Commander's discretion (cdf)
    discretion_reason = Column(Text, nullable=True)
    time_extension = Column(String(100), nullable=True)
    crew_fatigue_details = Column(Text, nullable=True)
    final_decision = Column(Text, nullable=True)

    # Confidential hazard (chr)
    potential_impact = Column(Text, nullable=True)
    prevention_suggestions = Column(Text, nullable=True)

    # Variant fields as JSON text; decoded per row so one bad value
    # cannot break a listing
    extra_data = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow)

    # Relationships
    submitter = relationship("UserDB", back_populates="reports")
    comments = relationship("CommentDB", back_populates="report", order_by="CommentDB.created_at")


class CommentDB(Base):
    """Comment on a report. Immutable once written."""
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True)  # UUID
    report_id = Column(String(36), ForeignKey("reports.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    report = relationship("ReportDB", back_populates="comments")
    user = relationship("UserDB")


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationDB(Base):
    """Recipient-scoped notification. Only its owner may read, mark or delete it."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default=NotificationType.INFO.value)
    is_read = Column(Boolean, nullable=False, default=False)
    # Logical reference only
    related_report_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class NotificationAuditDB(Base):
    """
    Immutable record of every notification event.
    Append-only - never updated or deleted.
    """
    __tablename__ = "notification_audit"

    id = Column(String(36), primary_key=True)  # UUID
    event_type = Column(String(50), nullable=False, index=True)
    user_id = Column(String(36), nullable=True)  # Acting user
    target_user_id = Column(String(36), nullable=True)
    related_report_id = Column(String(36), nullable=True)
    notification_id = Column(String(36), nullable=True)
    message = Column(Text, nullable=True)

    # Event metadata (named to avoid the reserved 'metadata' attribute)
    meta = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)


class NotificationOutboxDB(Base):
    """
    Intent to notify, written in the same transaction as the mutation
    that caused it and drained afterwards.
    """
    __tablename__ = "notification_outbox"
    __table_args__ = (
        Index("ix_notification_outbox_status_created", "status", "created_at"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    event_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default=OutboxStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    delivered_at = Column(DateTime, nullable=True)
