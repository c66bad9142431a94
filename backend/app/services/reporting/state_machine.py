"""
Report Status State Machine

Deterministic review workflow for safety reports:

    submitted → in_review → closed
        │           │
        └───────────┴────→ rejected

closed and rejected are terminal. "closed" is the approval outcome; there
is no separate "approved" status.

The new status is written with a conditional update against the status that
was validated, so two reviewers racing on the same report cannot both win:
the loser gets StaleState instead of silently overwriting.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    OutboxEventType, ReportDB, ReportStatus, UserDB, utcnow,
)
from ..notifications.outbox import NotificationOutbox
from .access import REVIEW_REPORTS, require_capability
from .errors import InvalidTransition, NotFound, PersistenceFailure, StaleState

logger = logging.getLogger(__name__)


# =============================================================================
# STATE CONFIGURATION
# =============================================================================

STATE_CONFIG: Dict[ReportStatus, Dict[str, Any]] = {
    ReportStatus.SUBMITTED: {
        "description": "Report received, awaiting triage",
        "allowed_transitions": [ReportStatus.IN_REVIEW, ReportStatus.REJECTED],
    },
    ReportStatus.IN_REVIEW: {
        "description": "Safety office investigating",
        "allowed_transitions": [ReportStatus.CLOSED, ReportStatus.REJECTED],
    },
    ReportStatus.CLOSED: {
        "description": "Investigation complete, report approved and closed",
        "allowed_transitions": [],  # Terminal state
    },
    ReportStatus.REJECTED: {
        "description": "Report rejected by the safety office",
        "allowed_transitions": [],  # Terminal state
    },
}


def _as_status(value: Any) -> Optional[ReportStatus]:
    try:
        return ReportStatus(value)
    except (ValueError, TypeError):
        return None


def allowed_transitions(current: Any) -> List[str]:
    """Status values reachable from current, in table order."""
    status = _as_status(current)
    if status is None:
        return []
    return [s.value for s in STATE_CONFIG[status]["allowed_transitions"]]


def can_transition(current: Any, requested: Any) -> Tuple[bool, str]:
    """
    Check if a status transition is allowed.

    Returns (allowed, reason)
    """
    allowed = allowed_transitions(current)
    requested_value = requested.value if isinstance(requested, ReportStatus) else requested
    if requested_value in allowed:
        return True, "OK"
    if not allowed:
        return False, f"{current} is terminal"
    return False, f"{current} → {requested_value} not allowed (expected one of {', '.join(allowed)})"


def is_terminal(status: Any) -> bool:
    return _as_status(status) is not None and not allowed_transitions(status)


class ReportStatusMachine:
    """Applies review decisions to reports."""

    def __init__(self, db: Session, outbox: Optional[NotificationOutbox] = None):
        self.db = db
        self.outbox = outbox or NotificationOutbox(db)

    def transition(self, report_id: str, requested_status: str, caller: Optional[UserDB]) -> ReportDB:
        """
        Move a report to requested_status.

        Raises:
            Unauthorized / Forbidden: caller cannot review reports
            NotFound: no report has this id
            InvalidTransition: requested_status not reachable from the current status
            StaleState: the status changed after it was read
            PersistenceFailure: the store rejected the write
        """
        require_capability(caller, REVIEW_REPORTS)
        actor_id = caller.id
        if isinstance(requested_status, ReportStatus):
            requested_status = requested_status.value

        row = self.db.query(ReportDB.status, ReportDB.submitted_by).filter(
            ReportDB.id == report_id
        ).first()
        if row is None:
            raise NotFound("Report not found")
        current_status, submitter_id = row.status, row.submitted_by

        allowed, reason = can_transition(current_status, requested_status)
        if not allowed:
            logger.info(f"Rejected transition for report {report_id}: {reason}")
            raise InvalidTransition(current_status, str(requested_status), allowed_transitions(current_status))

        try:
            result = self.db.execute(
                update(ReportDB)
                .where(ReportDB.id == report_id, ReportDB.status == current_status)
                .values(status=requested_status, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(
                    f"Stale status update on report {report_id}: expected {current_status}"
                )
                raise StaleState(report_id, current_status)

            entry = self.outbox.enqueue(
                OutboxEventType.STATUS_CHANGED,
                {
                    "report_id": report_id,
                    "submitter_id": submitter_id,
                    "new_status": requested_status,
                    "actor_id": actor_id,
                },
            )
            entry_id = entry.id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating status of report {report_id}: {e}")
            raise PersistenceFailure("Failed to update report status")

        logger.info(f"Report {report_id}: {current_status} → {requested_status} by {actor_id}")

        self.outbox.drain_best_effort(ids=[entry_id])

        report = self.db.get(ReportDB, report_id)
        self.db.refresh(report)
        return report
