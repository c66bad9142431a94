"""
Report Writer (Ingestion)

Persists a new report under the kind its payload names.

Fixed fields are copied to their columns through the registry mapping.
Everything else the form collected travels in extraData, stored as JSON in
its own column. Description text is stored exactly as submitted.

The report row and its report_created outbox entry commit together; the
notification fan-out runs after that commit and cannot undo it.
"""
import json
import logging
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    OutboxEventType, ReportDB, ReportStatus, UserDB, utcnow,
)
from ..notifications.outbox import NotificationOutbox
from . import registry
from .access import CREATE_REPORT, require_capability
from .errors import MissingRequiredField, PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _column_value(value: Any) -> Optional[str]:
    """Fixed columns hold text. Scalars are stored as submitted."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    raise ValidationError(f"Fixed fields must be scalar values, got {type(value).__name__}")


class ReportWriter:
    """Creates reports of any registered kind."""

    def __init__(self, db: Session, outbox: Optional[NotificationOutbox] = None):
        self.db = db
        self.outbox = outbox or NotificationOutbox(db)

    def _encode_extra_data(self, descriptor: registry.ReportTypeDescriptor, extra_data: Any) -> str:
        if extra_data is None:
            extra_data = {}
        if descriptor.extra_data_policy == "object" and not isinstance(extra_data, dict):
            raise ValidationError("extraData must be an object")
        try:
            return json.dumps(extra_data, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"extraData is not JSON serializable: {e}")

    def _missing_fields(self, descriptor: registry.ReportTypeDescriptor, payload: Mapping[str, Any]) -> List[str]:
        return [name for name in descriptor.required_fields if _is_blank(payload.get(name))]

    def create_report(self, payload: Mapping[str, Any], caller: Optional[UserDB]) -> ReportDB:
        """
        Persist a new report.

        Args:
            payload: {reportType, description, isAnonymous, <fixed fields>, extraData}
            caller: Verified user submitting the report

        Returns:
            The stored report row (status "submitted")

        Raises:
            Unauthorized / Forbidden: caller may not create reports
            UnknownReportType: reportType is not registered
            MissingRequiredField: a required fixed field is absent or blank
            ValidationError: extraData, isAnonymous or a fixed field has the wrong shape
            PersistenceFailure: the store rejected the write
        """
        require_capability(caller, CREATE_REPORT)
        caller_id = caller.id
        descriptor = registry.resolve(payload.get("reportType"))

        missing = self._missing_fields(descriptor, payload)
        if missing:
            raise MissingRequiredField(descriptor.type_code, missing)

        description = payload.get("description") or ""
        if not isinstance(description, str):
            raise ValidationError("description must be text")

        is_anonymous = payload.get("isAnonymous")
        if is_anonymous is not None and not isinstance(is_anonymous, bool):
            raise ValidationError("isAnonymous must be true or false")

        columns: Dict[str, Optional[str]] = {
            mapping.column: _column_value(payload.get(mapping.canonical))
            for mapping in descriptor.fields
        }
        extra_data = self._encode_extra_data(descriptor, payload.get("extraData"))

        now = utcnow()
        report = ReportDB(
            id=str(uuid4()),
            report_type=descriptor.storage,
            status=ReportStatus.SUBMITTED.value,
            submitted_by=caller_id,
            is_anonymous=bool(is_anonymous),
            description=description,
            extra_data=extra_data,
            created_at=now,
            updated_at=now,
            **columns,
        )

        try:
            self.db.add(report)
            entry = self.outbox.enqueue(
                OutboxEventType.REPORT_CREATED,
                {
                    "report_id": report.id,
                    "submitter_id": caller_id,
                    "report_type": descriptor.type_code,
                },
            )
            entry_id = entry.id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving {descriptor.type_code} report for user {caller_id}: {e}")
            raise PersistenceFailure("Failed to create report")

        logger.info(f"Report {report.id} ({descriptor.type_code}) submitted by {caller_id}")

        self.outbox.drain_best_effort(ids=[entry_id])
        self.db.refresh(report)
        return report
