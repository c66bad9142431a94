"""
Notification Outbox

Notification intents are written in the same transaction as the mutation
that caused them (report insert, comment insert, status update) and drained
afterwards. Delivery runs one event per transaction: the notifications and
audit rows of an event commit together with the outbox row being marked
delivered, or not at all.

A failing event stays pending with its attempt count raised, so a later
drain (request handler or the internal scheduler endpoint) retries it.
Drain failures are logged and never reach the caller of the primary write.
"""
import logging
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import (
    NotificationOutboxDB, OutboxEventType, OutboxStatus, utcnow,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


class NotificationOutbox:
    """Writes and drains notification intents."""

    def __init__(self, db: Session, fanout=None):
        self.db = db
        self._fanout = fanout

    @property
    def fanout(self):
        if self._fanout is None:
            from .fanout import NotificationFanout
            self._fanout = NotificationFanout(self.db)
        return self._fanout

    # =========================================================================
    # WRITE SIDE
    # =========================================================================

    def enqueue(self, event_type: OutboxEventType, payload: Dict[str, Any]) -> NotificationOutboxDB:
        """
        Record an intent to notify. Adds to the current transaction,
        never commits: the caller commits it with its own mutation.
        """
        entry = NotificationOutboxDB(
            id=str(uuid4()),
            event_type=event_type.value,
            payload=payload,
            status=OutboxStatus.PENDING.value,
            attempts=0,
            created_at=utcnow(),
        )
        self.db.add(entry)
        return entry

    # =========================================================================
    # DRAIN SIDE
    # =========================================================================

    def _handlers(self) -> Dict[str, Callable[[Dict[str, Any]], int]]:
        fanout = self.fanout
        return {
            OutboxEventType.REPORT_CREATED.value: lambda p: fanout.notify_report_created(
                p["report_id"], p["submitter_id"], p["report_type"]
            ),
            OutboxEventType.COMMENT_ADDED.value: lambda p: fanout.notify_comment_added(
                p["report_id"], p["commenter_id"], p["comment_id"]
            ),
            OutboxEventType.STATUS_CHANGED.value: lambda p: fanout.notify_status_changed(
                p["report_id"], p["submitter_id"], p["new_status"], p.get("actor_id")
            ),
        }

    def pending(self, limit: int = 100, ids: Optional[List[str]] = None) -> List[NotificationOutboxDB]:
        query = self.db.query(NotificationOutboxDB).filter(
            NotificationOutboxDB.status == OutboxStatus.PENDING.value
        )
        if ids is not None:
            query = query.filter(NotificationOutboxDB.id.in_(ids))
        return query.order_by(
            NotificationOutboxDB.created_at.asc(),
            NotificationOutboxDB.id.asc(),
        ).limit(limit).all()

    def deliver(self, entry: NotificationOutboxDB) -> bool:
        """
        Deliver a single outbox entry in its own transaction.

        Returns True when delivered. On failure the partial notification
        writes are rolled back and the entry records the attempt.
        """
        entry_id = entry.id
        event_type = entry.event_type
        handler = self._handlers().get(event_type)

        try:
            if handler is None:
                raise ValueError(f"No handler for outbox event {event_type}")
            created = handler(dict(entry.payload or {}))
            entry.status = OutboxStatus.DELIVERED.value
            entry.delivered_at = utcnow()
            entry.attempts = (entry.attempts or 0) + 1
            self.db.commit()
            logger.info(f"Outbox {event_type} {entry_id} delivered: {created} notification(s)")
            return True
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Outbox {event_type} {entry_id} delivery failed: {e}")
            self._record_failure(entry_id, str(e))
            return False

    def _record_failure(self, entry_id: str, error: str) -> None:
        try:
            entry = self.db.get(NotificationOutboxDB, entry_id)
            if entry is None:
                return
            entry.attempts = (entry.attempts or 0) + 1
            entry.last_error = error[:1000]
            if entry.attempts >= MAX_ATTEMPTS:
                entry.status = OutboxStatus.FAILED.value
                logger.error(f"Outbox {entry.event_type} {entry_id} gave up after {entry.attempts} attempts")
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Could not record outbox failure for {entry_id}: {e}")

    def drain(self, limit: int = 100, ids: Optional[List[str]] = None) -> Dict[str, int]:
        """Deliver pending entries, oldest first."""
        delivered = 0
        failed = 0
        for entry in self.pending(limit=limit, ids=ids):
            if self.deliver(entry):
                delivered += 1
            else:
                failed += 1
        return {"delivered": delivered, "failed": failed}

    def drain_best_effort(self, ids: Optional[List[str]] = None) -> Dict[str, int]:
        """drain() that never raises. Used right after a primary commit."""
        try:
            return self.drain(ids=ids)
        except Exception as e:
            try:
                self.db.rollback()
            except Exception:
                logger.exception("Rollback after failed outbox drain also failed")
            logger.warning(f"Notification drain failed: {e}")
            return {"delivered": 0, "failed": 0}
