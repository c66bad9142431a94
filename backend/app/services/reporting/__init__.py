"""
Reporting domain: report kinds, ingestion, review workflow, scoped reads.
"""
from .access import (
    CAPABILITIES, COMMENT, CREATE_REPORT, MANAGE_NOTIFICATIONS, MANAGE_USERS,
    READ_ALL_REPORTS, READ_OWN_REPORTS, REVIEW_REPORTS,
    can_view_report, capabilities_for, has_capability, report_scope,
    require_capability, require_report_access,
)
from .comments import CommentService
from .errors import (
    Forbidden, InvalidTransition, MissingRequiredField, NotFound,
    PersistenceFailure, ReportingError, StaleState, Unauthorized,
    UnknownReportType, ValidationError,
)
from .reader import ReportReader, canonicalize, decode_extra_data
from .registry import FieldMapping, ReportTypeDescriptor
from .state_machine import (
    STATE_CONFIG, ReportStatusMachine, allowed_transitions, can_transition, is_terminal,
)
from .writer import ReportWriter

__all__ = [
    # Access
    "CAPABILITIES", "COMMENT", "CREATE_REPORT", "MANAGE_NOTIFICATIONS", "MANAGE_USERS",
    "READ_ALL_REPORTS", "READ_OWN_REPORTS", "REVIEW_REPORTS",
    "can_view_report", "capabilities_for", "has_capability", "report_scope",
    "require_capability", "require_report_access",
    # Errors
    "Forbidden", "InvalidTransition", "MissingRequiredField", "NotFound",
    "PersistenceFailure", "ReportingError", "StaleState", "Unauthorized",
    "UnknownReportType", "ValidationError",
    # Registry
    "FieldMapping", "ReportTypeDescriptor",
    # Services
    "CommentService", "ReportReader", "ReportStatusMachine", "ReportWriter",
    "canonicalize", "decode_extra_data",
    # Workflow
    "STATE_CONFIG", "allowed_transitions", "can_transition", "is_terminal",
]
