"""
Report Comments

Discussion thread attached to a report. Anyone who can see a report may
comment on it; the comment and its comment_added outbox entry commit
together and notifications follow after the commit.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import CommentDB, OutboxEventType, UserDB, utcnow
from ..notifications.outbox import NotificationOutbox
from .access import COMMENT, require_capability
from .errors import PersistenceFailure, ValidationError
from .reader import ReportReader, serialize_comment

logger = logging.getLogger(__name__)


class CommentService:

    def __init__(self, db: Session, outbox: Optional[NotificationOutbox] = None):
        self.db = db
        self.outbox = outbox or NotificationOutbox(db)
        self.reader = ReportReader(db)

    def add_comment(self, report_id: str, content: Any, caller: Optional[UserDB]) -> Dict[str, Any]:
        """
        Add a comment to a report the caller can see.

        Raises:
            Unauthorized / Forbidden: caller may not comment
            NotFound: report missing or outside the caller's scope
            ValidationError: empty content
            PersistenceFailure: the store rejected the write
        """
        require_capability(caller, COMMENT)
        caller_id = caller.id
        report = self.reader.visible_report(report_id, caller)

        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Comment content is required")

        comment = CommentDB(
            id=str(uuid4()),
            report_id=report.id,
            user_id=caller_id,
            content=content.strip(),
            created_at=utcnow(),
        )
        try:
            self.db.add(comment)
            entry = self.outbox.enqueue(
                OutboxEventType.COMMENT_ADDED,
                {"report_id": report.id, "commenter_id": caller_id, "comment_id": comment.id},
            )
            entry_id = entry.id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving comment on report {report_id}: {e}")
            raise PersistenceFailure("Failed to add comment")

        logger.info(f"Comment {comment.id} added to report {report_id} by {caller_id}")
        self.outbox.drain_best_effort(ids=[entry_id])

        self.db.refresh(comment)
        return serialize_comment(comment, self.db.get(UserDB, caller_id), report, caller)

    def list_comments(self, report_id: str, caller: Optional[UserDB]) -> List[Dict[str, Any]]:
        """Comments on a visible report, oldest first."""
        return self.reader.get_report(report_id, caller)["comments"]
