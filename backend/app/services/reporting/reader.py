"""
Polymorphic Report Reader

Reads reports of every kind and normalizes each row to one canonical,
kind-tagged shape:

    {id, reportType, status, isAnonymous, description,
     <descriptor fixed fields>, extraData, submittedBy, submitter,
     createdAt, updatedAt}

Guarantees:
- callers only ever see rows inside their access scope
- anonymous reports never expose the submitter's identity, whoever asks
- a row whose extraData cannot be decoded is still returned (extraData=None)
- listings are ordered by createdAt descending, ties broken by id ascending
"""
import json
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.db_models import CommentDB, ReportDB, ReportStatus, UserDB
from . import registry
from .access import can_view_report, report_scope, require_report_access
from .errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

ANONYMOUS_SUBMITTER = {"id": None, "displayName": "Anonymous"}


# =============================================================================
# HELPERS
# =============================================================================

def decode_extra_data(raw: Any, report_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Decode a stored extraData value. Anything undecodable becomes None."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        return raw
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Unreadable extraData on report {report_id}: {e}")
        return None
    if not isinstance(value, dict):
        logger.warning(f"extraData on report {report_id} is {type(value).__name__}, expected object")
        return None
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_user(user: Optional[UserDB]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
    }


def hides_submitter(report: ReportDB, caller: UserDB) -> bool:
    """Anonymous reports hide their submitter from everyone but the submitter."""
    return bool(report.is_anonymous) and report.submitted_by != caller.id


def serialize_comment(
    comment: CommentDB,
    author: Optional[UserDB],
    report: ReportDB,
    caller: UserDB,
) -> Dict[str, Any]:
    serialized = {
        "id": comment.id,
        "reportId": comment.report_id,
        "userId": comment.user_id,
        "content": comment.content,
        "createdAt": _iso(comment.created_at),
        "user": serialize_user(author),
    }
    # The submitter commenting on their own anonymous report stays anonymous
    if comment.user_id == report.submitted_by and hides_submitter(report, caller):
        serialized["userId"] = None
        serialized["user"] = dict(ANONYMOUS_SUBMITTER)
    return serialized


def canonicalize(
    report: ReportDB,
    submitter: Optional[UserDB],
    caller: UserDB,
) -> Dict[str, Any]:
    """Project a stored row onto the canonical report shape for this caller."""
    descriptor = registry.resolve_storage(report.report_type)
    report_type = descriptor.type_code if descriptor else report.report_type

    canonical: Dict[str, Any] = {
        "id": report.id,
        "reportType": report_type,
        "status": report.status,
        "isAnonymous": bool(report.is_anonymous),
        "description": report.description or "",
    }
    if descriptor is not None:
        for mapping in descriptor.fields:
            canonical[mapping.canonical] = getattr(report, mapping.column)

    canonical["extraData"] = decode_extra_data(report.extra_data, report.id)

    if report.is_anonymous:
        # The id stays with the owner only; it would identify the submitter to anyone else
        canonical["submittedBy"] = report.submitted_by if report.submitted_by == caller.id else None
        canonical["submitter"] = dict(ANONYMOUS_SUBMITTER)
    else:
        canonical["submittedBy"] = report.submitted_by
        canonical["submitter"] = serialize_user(submitter)

    canonical["createdAt"] = _iso(report.created_at)
    canonical["updatedAt"] = _iso(report.updated_at)
    return canonical


# =============================================================================
# READER
# =============================================================================

class ReportReader:
    """Scoped, kind-agnostic queries over reports."""

    def __init__(self, db: Session):
        self.db = db

    def _users_by_id(self, user_ids: Iterable[str]) -> Dict[str, UserDB]:
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        return {u.id: u for u in self.db.query(UserDB).filter(UserDB.id.in_(ids)).all()}

    def _descriptors(self, type_filter: Optional[str]) -> List[registry.ReportTypeDescriptor]:
        if type_filter:
            return [registry.resolve(type_filter)]
        return list(registry.list_all())

    def _scoped_query(self, caller: UserDB, descriptors: List[registry.ReportTypeDescriptor]):
        query = self.db.query(ReportDB).filter(
            ReportDB.report_type.in_([d.storage for d in descriptors])
        )
        scope = report_scope(caller)
        if scope is not None:
            query = query.filter(scope)
        return query

    def list_reports(
        self,
        caller: UserDB,
        type_filter: Optional[str] = None,
        status_filter: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Canonical reports visible to the caller, newest first.

        Raises:
            Unauthorized / Forbidden: caller cannot read reports
            UnknownReportType: type_filter is not registered
            ValidationError: status_filter is not a known status
        """
        require_report_access(caller)
        descriptors = self._descriptors(type_filter)

        query = self._scoped_query(caller, descriptors)
        if status_filter:
            if status_filter not in {s.value for s in ReportStatus}:
                raise ValidationError(f"Unknown status: {status_filter}")
            query = query.filter(ReportDB.status == status_filter)

        rows = query.order_by(ReportDB.created_at.desc(), ReportDB.id.asc()).all()
        users = self._users_by_id(r.submitted_by for r in rows)

        return [canonicalize(r, users.get(r.submitted_by), caller) for r in rows]

    def visible_report(self, report_id: str, caller: UserDB) -> ReportDB:
        require_report_access(caller)
        report = self.db.get(ReportDB, report_id)
        # Reports outside the caller's scope are reported as missing
        if report is None or not can_view_report(caller, report):
            raise NotFound("Report not found")
        return report

    def get_report(self, report_id: str, caller: UserDB) -> Dict[str, Any]:
        """Canonical report with its comments, oldest comment first."""
        report = self.visible_report(report_id, caller)
        comments = self.db.query(CommentDB).filter(
            CommentDB.report_id == report.id
        ).order_by(CommentDB.created_at.asc(), CommentDB.id.asc()).all()

        users = self._users_by_id([report.submitted_by] + [c.user_id for c in comments])
        canonical = canonicalize(report, users.get(report.submitted_by), caller)
        canonical["comments"] = [serialize_comment(c, users.get(c.user_id), report, caller) for c in comments]
        return canonical

    def get_stats(self, caller: UserDB) -> Dict[str, Any]:
        """Counts by status and by type within the caller's scope."""
        require_report_access(caller)
        descriptors = list(registry.list_all())
        query = self._scoped_query(caller, descriptors)

        rows = query.with_entities(
            ReportDB.report_type, ReportDB.status, func.count(ReportDB.id)
        ).group_by(ReportDB.report_type, ReportDB.status).all()

        by_type: Counter = Counter({d.type_code: 0 for d in descriptors})
        by_status: Counter = Counter({s.value: 0 for s in ReportStatus})
        total = 0
        for storage, status, count in rows:
            descriptor = registry.resolve_storage(storage)
            by_type[descriptor.type_code if descriptor else storage] += count
            by_status[status] += count
            total += count

        return {"total": total, "byStatus": dict(by_status), "byType": dict(by_type)}
