"""Access policy — who may see or change what.

Learn: Pure functions, no I/O, no exceptions. Every predicate takes the
current identity (or None when nobody is logged in) and returns a plain
answer, so views can call them freely while rendering. None is the
unauthenticated case and is denied everything that is not public.

Two roles only:
- citizen → sees their own reports in full, everyone else's redacted
- admin   → sees and triages everything, scoped to their department by default
"""

from typing import Any, Optional, Union

from civicportal.schemas.issue import Issue
from civicportal.schemas.user import PublicUser, Role

ALL_DEPARTMENTS = "all"
REDACTED_REPORTER = "Citizen"


def _is_admin(identity: Optional[PublicUser]) -> bool:
    return identity is not None and identity.role == Role.ADMIN


def _same_id(a: Any, b: Any) -> bool:
    # Backends mix numeric and string ids for the same record
    return a is not None and b is not None and str(a) == str(b)


def is_owner(identity: Optional[PublicUser], issue: Optional[Issue]) -> bool:
    return identity is not None and _same_id(identity.id, getattr(issue, "user_id", None))


def can_view_owner_details(identity: Optional[PublicUser], issue: Issue) -> bool:
    """Admins and the reporter see who filed an issue."""
    return _is_admin(identity) or is_owner(identity, issue)


def reporter_label(
    identity: Optional[PublicUser],
    issue: Issue,
    reporter_name: Optional[str] = None,
) -> str:
    """Name to show as the issue's reporter for this viewer."""
    if issue is None or not can_view_owner_details(identity, issue):
        return REDACTED_REPORTER
    return reporter_name or issue.user_name or f"User #{issue.user_id}"


def can_mutate_status(identity: Optional[PublicUser], issue: Issue) -> bool:
    return _is_admin(identity)


def can_assign(identity: Optional[PublicUser], issue: Issue) -> bool:
    return _is_admin(identity)


def can_view_user_details(identity: Optional[PublicUser]) -> bool:
    """Full profiles of other users are admin-only."""
    return _is_admin(identity)


def default_department_scope(identity: Optional[PublicUser]) -> Union[int, str]:
    """Department an admin's console opens on: their own, else all."""
    if _is_admin(identity) and identity.department_id not in (None, ""):
        return identity.department_id
    return ALL_DEPARTMENTS
