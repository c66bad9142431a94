"""
Tests for notification fan-out, the outbox and recipient operations.

1. Recipients per event, never the actor
2. One audit row per notification
3. Failed deliveries stay pending and are retried
4. Recipients only touch their own notifications
"""
from unittest.mock import MagicMock

import pytest

from app.models.db_models import (
    NotificationAuditDB, NotificationDB, NotificationOutboxDB, OutboxEventType,
    OutboxStatus,
)
from app.services.notifications import MAX_ATTEMPTS, NotificationFanout, NotificationOutbox
from app.services.reporting import CommentService, ReportWriter
from app.services.reporting.errors import NotFound, ValidationError


def recipients(db):
    return sorted(n.user_id for n in db.query(NotificationDB).all())


def audits_of(db, event_type):
    return db.query(NotificationAuditDB).filter(NotificationAuditDB.event_type == event_type).all()


# =============================================================================
# TEST: LIFECYCLE FAN-OUT
# =============================================================================

class TestReportCreatedFanout:

    def test_every_admin_notified(self, db, admin, second_admin, captain):
        ReportWriter(db).create_report({"reportType": "or", "location": "Stand 4"}, captain)

        assert recipients(db) == sorted([admin.id, second_admin.id])
        note = db.query(NotificationDB).first()
        assert note.title == "New Report Submitted"
        assert "Occurrence Report" in note.message
        assert len(audits_of(db, "new_report_notify")) == 2

    def test_admin_submitter_excluded(self, db, admin, second_admin):
        ReportWriter(db).create_report({"reportType": "or", "location": "Stand 4"}, admin)
        assert recipients(db) == [second_admin.id]

    def test_audit_pairs_with_notification(self, db, admin, captain):
        ReportWriter(db).create_report({"reportType": "chr", "potentialImpact": "FOD"}, captain)

        note = db.query(NotificationDB).one()
        audit = db.query(NotificationAuditDB).one()
        assert audit.notification_id == note.id
        assert audit.user_id == captain.id
        assert audit.target_user_id == admin.id
        assert audit.related_report_id == note.related_report_id


class TestCommentFanout:

    def test_admin_comment_notifies_submitter_and_other_admins(
        self, db, admin, second_admin, captain, insert_report
    ):
        report = insert_report(captain)
        CommentService(db).add_comment(report.id, "Please attach the tech log.", admin)

        assert recipients(db) == sorted([second_admin.id, captain.id])
        submitter_note = db.query(NotificationDB).filter(NotificationDB.user_id == captain.id).one()
        assert submitter_note.title == "New Comment on Your Report"
        assert len(audits_of(db, "new_comment_notify_admin")) == 1
        assert len(audits_of(db, "new_comment_notify_submitter")) == 1

    def test_own_report_comment_notifies_admins_only(self, db, admin, second_admin, captain, insert_report):
        report = insert_report(captain)
        CommentService(db).add_comment(report.id, "Adding detail", captain)

        assert recipients(db) == sorted([admin.id, second_admin.id])
        assert audits_of(db, "new_comment_notify_submitter") == []

    def test_content_is_trimmed(self, db, captain, insert_report):
        report = insert_report(captain)
        comment = CommentService(db).add_comment(report.id, "  spaced out  ", captain)
        assert comment["content"] == "spaced out"
        assert comment["user"]["id"] == captain.id

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_comment_rejected(self, db, captain, insert_report, content):
        report = insert_report(captain)
        with pytest.raises(ValidationError):
            CommentService(db).add_comment(report.id, content, captain)
        assert db.query(NotificationOutboxDB).count() == 0

    def test_cannot_comment_on_foreign_report(self, db, captain, first_officer, insert_report):
        report = insert_report(first_officer)
        with pytest.raises(NotFound):
            CommentService(db).add_comment(report.id, "Hello", captain)


# =============================================================================
# TEST: OUTBOX
# =============================================================================

class TestOutbox:

    def _enqueue(self, db, captain, report):
        outbox = NotificationOutbox(db)
        entry = outbox.enqueue(
            OutboxEventType.REPORT_CREATED,
            {"report_id": report.id, "submitter_id": captain.id, "report_type": "asr"},
        )
        db.commit()
        return entry.id

    def test_failed_delivery_retried_later(self, db, admin, captain, insert_report):
        report = insert_report(captain)
        entry_id = self._enqueue(db, captain, report)

        broken = MagicMock()
        broken.notify_report_created.side_effect = RuntimeError("boom")
        assert NotificationOutbox(db, fanout=broken).drain() == {"delivered": 0, "failed": 1}

        entry = db.get(NotificationOutboxDB, entry_id)
        assert entry.status == OutboxStatus.PENDING.value
        assert entry.attempts == 1

        assert NotificationOutbox(db).drain() == {"delivered": 1, "failed": 0}
        entry = db.get(NotificationOutboxDB, entry_id)
        assert entry.status == OutboxStatus.DELIVERED.value
        assert entry.delivered_at is not None
        assert recipients(db) == [admin.id]

    def test_partial_fanout_rolled_back(self, db, admin, second_admin, captain, insert_report):
        """Notifications written before the failure do not survive it."""
        report = insert_report(captain)
        self._enqueue(db, captain, report)

        fanout = NotificationFanout(db)
        real_notify = fanout._notify
        calls = []

        def flaky(**kwargs):
            calls.append(kwargs["recipient_id"])
            if len(calls) == 2:
                raise RuntimeError("second recipient failed")
            return real_notify(**kwargs)

        fanout._notify = flaky
        NotificationOutbox(db, fanout=fanout).drain()

        assert db.query(NotificationDB).count() == 0
        assert db.query(NotificationAuditDB).count() == 0

    def test_gives_up_after_max_attempts(self, db, captain, insert_report):
        report = insert_report(captain)
        entry_id = self._enqueue(db, captain, report)
        db.get(NotificationOutboxDB, entry_id).attempts = MAX_ATTEMPTS - 1
        db.commit()

        broken = MagicMock()
        broken.notify_report_created.side_effect = RuntimeError("boom")
        NotificationOutbox(db, fanout=broken).drain()

        assert db.get(NotificationOutboxDB, entry_id).status == OutboxStatus.FAILED.value
        assert NotificationOutbox(db).pending() == []

    def test_unknown_event_type_fails(self, db):
        entry = NotificationOutboxDB(id="e1", event_type="mystery", payload={}, status="pending", attempts=0)
        db.add(entry)
        db.commit()

        assert NotificationOutbox(db).drain() == {"delivered": 0, "failed": 1}
        assert "No handler" in db.get(NotificationOutboxDB, "e1").last_error

    def test_drain_only_selected_ids(self, db, admin, captain, insert_report):
        first = self._enqueue(db, captain, insert_report(captain))
        second = self._enqueue(db, captain, insert_report(captain))

        NotificationOutbox(db).drain(ids=[first])

        assert db.get(NotificationOutboxDB, first).status == OutboxStatus.DELIVERED.value
        assert db.get(NotificationOutboxDB, second).status == OutboxStatus.PENDING.value


# =============================================================================
# TEST: RECIPIENT OPERATIONS
# =============================================================================

class TestRecipientOperations:

    @pytest.fixture
    def notified(self, db, admin, captain):
        writer = ReportWriter(db)
        writer.create_report({"reportType": "or", "location": "A"}, captain)
        writer.create_report({"reportType": "or", "location": "B"}, captain)
        return NotificationFanout(db)

    def test_list_and_unread_count(self, notified, admin):
        assert len(notified.list_for(admin)) == 2
        assert notified.unread_count(admin) == 2

    def test_mark_read(self, db, notified, admin):
        note = notified.list_for(admin)[0]
        assert notified.mark_read(note.id, admin).is_read is True
        assert notified.unread_count(admin) == 1
        assert len(audits_of(db, "mark_read")) == 1

    def test_mark_all_read_idempotent(self, db, notified, admin):
        assert notified.mark_all_read(admin) == 2
        assert notified.mark_all_read(admin) == 0
        assert notified.unread_count(admin) == 0
        assert all(n.is_read for n in notified.list_for(admin))
        assert len(audits_of(db, "mark_all_read")) == 2

    def test_foreign_notification_not_found(self, notified, admin, captain):
        note = notified.list_for(admin)[0]
        with pytest.raises(NotFound):
            notified.mark_read(note.id, captain)
        with pytest.raises(NotFound):
            notified.delete(note.id, captain)

    def test_delete_and_delete_all(self, db, notified, admin):
        note = notified.list_for(admin)[0]
        notified.delete(note.id, admin)
        assert len(notified.list_for(admin)) == 1
        assert notified.delete_all(admin) == 1
        assert notified.list_for(admin) == []
        assert len(audits_of(db, "delete")) == 1
        assert len(audits_of(db, "delete_all")) == 1
