"""
Reporting Errors

Every failure the reporting core can surface to a caller. Each error carries
the HTTP status the API layer answers with and a client-safe detail.
"""
from typing import Any, List, Optional


class ReportingError(Exception):
    """Base class for reporting core failures."""
    status_code = 500

    def __init__(self, message: str, detail: Any = None):
        super().__init__(message)
        self.message = message
        self._detail = detail

    @property
    def detail(self) -> Any:
        """Body returned to the client."""
        return self._detail if self._detail is not None else self.message


class Unauthorized(ReportingError):
    """No verifiable identity on the request."""
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Forbidden(ReportingError):
    """Identity present, capability missing."""
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class ValidationError(ReportingError):
    """Malformed input."""
    status_code = 400


class UnknownReportType(ValidationError):
    """Report type code is not registered."""

    def __init__(self, type_code: Optional[str]):
        self.type_code = type_code
        super().__init__(f"Unknown report type: {type_code}")


class MissingRequiredField(ValidationError):
    """A descriptor-mandated fixed field is absent or blank."""

    def __init__(self, type_code: str, fields: List[str]):
        self.type_code = type_code
        self.fields = fields
        super().__init__(
            f"Missing required field(s) for {type_code}: {', '.join(fields)}",
            detail={
                "message": "Missing required fields",
                "reportType": type_code,
                "fields": fields,
            },
        )


class NotFound(ReportingError):
    """Report, comment or notification id cannot be resolved for the caller."""
    status_code = 404


class InvalidTransition(ReportingError):
    """Requested status is not reachable from the current one."""
    status_code = 400

    def __init__(self, current_status: str, requested_status: str, allowed: List[str]):
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = allowed
        super().__init__(
            f"Invalid status transition: {current_status} -> {requested_status}",
            detail={
                "message": "Invalid status transition",
                "currentStatus": current_status,
                "attemptedStatus": requested_status,
                "validTransitions": allowed,
            },
        )


class StaleState(ReportingError):
    """The report changed between the status read and the conditional update."""
    status_code = 409

    def __init__(self, report_id: str, expected_status: str):
        self.report_id = report_id
        self.expected_status = expected_status
        super().__init__(
            "Report status changed concurrently, reload and retry",
            detail={
                "message": "Report status changed concurrently, reload and retry",
                "expectedStatus": expected_status,
            },
        )


class PersistenceFailure(ReportingError):
    """Store error on a primary mutation. Never exposes storage detail."""
    status_code = 500

    def __init__(self, message: str = "Failed to save changes"):
        super().__init__(message)
