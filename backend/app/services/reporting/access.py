"""
Access Control Filter

Capability table per role, plus the query scope a caller may read reports in.
Gates are checked before any mutation so a refused call has no side effects.
"""
from typing import FrozenSet, Optional

from ...models.db_models import ReportDB, UserDB, UserRole
from .errors import Forbidden, Unauthorized


# Capabilities
CREATE_REPORT = "create_report"
READ_OWN_REPORTS = "read_own_reports"
READ_ALL_REPORTS = "read_all_reports"
REVIEW_REPORTS = "review_reports"
COMMENT = "comment"
MANAGE_NOTIFICATIONS = "manage_notifications"
MANAGE_USERS = "manage_users"

_CREW: FrozenSet[str] = frozenset({
    CREATE_REPORT,
    READ_OWN_REPORTS,
    COMMENT,
    MANAGE_NOTIFICATIONS,
})

CAPABILITIES = {
    UserRole.ADMIN.value: _CREW | {READ_ALL_REPORTS, REVIEW_REPORTS, MANAGE_USERS},
    UserRole.CAPTAIN.value: _CREW,
    UserRole.FIRST_OFFICER.value: _CREW,
}


def capabilities_for(role: Optional[str]) -> FrozenSet[str]:
    """Capabilities of a role. Unknown roles get none."""
    return CAPABILITIES.get((role or "").lower(), frozenset())


def has_capability(role: Optional[str], capability: str) -> bool:
    return capability in capabilities_for(role)


def require_capability(user: Optional[UserDB], capability: str) -> UserDB:
    """
    Gate an operation on a capability.

    Raises Unauthorized when there is no verified caller at all and
    Forbidden when the caller's role lacks the capability.
    """
    if user is None:
        raise Unauthorized()
    if not has_capability(user.role, capability):
        raise Forbidden()
    return user


def require_report_access(user: Optional[UserDB]) -> UserDB:
    """Caller must be able to read at least their own reports."""
    if user is None:
        raise Unauthorized()
    caps = capabilities_for(user.role)
    if READ_ALL_REPORTS not in caps and READ_OWN_REPORTS not in caps:
        raise Forbidden()
    return user


def report_scope(user: UserDB):
    """
    SQL criterion restricting reports to what the caller may read.

    Returns None when the caller reads every report.
    """
    require_report_access(user)
    if has_capability(user.role, READ_ALL_REPORTS):
        return None
    return ReportDB.submitted_by == user.id


def can_view_report(user: UserDB, report: ReportDB) -> bool:
    if has_capability(user.role, READ_ALL_REPORTS):
        return True
    return has_capability(user.role, READ_OWN_REPORTS) and report.submitted_by == user.id
