"""Issue listing and triage, filtered and gated by the access policy.

Learn: The issues collection returns everything; scoping happens here.
filter_issues() is a pure function (the same rules whether the list
came from the backend or a cache), IssueService wraps it with the
current session, files new citizen reports and does the admin-only
writes.

Department scoping in the admin console:
- explicit department filter → that department
- otherwise the admin's own departmentId, if set
- otherwise all departments
Departments are matched by id only.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

import structlog

from civicportal.access.policy import (
    ALL_DEPARTMENTS,
    can_assign,
    can_mutate_status,
    default_department_scope,
    is_owner,
    reporter_label,
)
from civicportal.clients.issues import IssueCollection
from civicportal.errors import (
    AccessDeniedError,
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from civicportal.schemas.issue import ISSUE_STATUSES, PRIORITY_LEVELS, Issue, IssueReport
from civicportal.schemas.user import PublicUser
from civicportal.session.context import SessionContext

logger = structlog.get_logger()

ALL = "all"
REQUIRED_REPORT_FIELDS = ("title", "description", "location", "category_id")


@dataclass
class IssueFilters:
    """Dashboard filters. "all" disables a filter."""

    status: str = ALL
    category_id: Union[int, str] = ALL
    department_id: Union[int, str] = ALL
    search: str = ""
    only_mine: bool = False
    admin_mode: bool = False


@dataclass
class IssueView:
    """An issue as one particular viewer may see it."""

    issue: Issue
    reporter: str
    can_change_status: bool
    can_assign: bool


def _same_number(a: Any, b: Any) -> bool:
    try:
        return float(a) == float(b)
    except (TypeError, ValueError):
        return str(a) == str(b)


def _department_scope(identity: Optional[PublicUser], filters: IssueFilters) -> Optional[str]:
    if not filters.admin_mode:
        return None
    if filters.department_id != ALL:
        return str(filters.department_id)
    scope = default_department_scope(identity)
    return None if scope == ALL_DEPARTMENTS else str(scope)


def filter_issues(
    identity: Optional[PublicUser],
    issues: Iterable[Issue],
    filters: Optional[IssueFilters] = None,
) -> list[Issue]:
    """Apply dashboard filters for this viewer, keeping input order."""
    filters = filters or IssueFilters()
    department = _department_scope(identity, filters)
    term = filters.search.strip().lower()

    matched = []
    for issue in issues:
        if filters.only_mine and not is_owner(identity, issue):
            continue
        if department is not None and str(issue.department_id) != department:
            continue
        if filters.status != ALL and issue.status != filters.status:
            continue
        if filters.category_id != ALL and not _same_number(issue.category_id, filters.category_id):
            continue
        if term and not (
            term in issue.title.lower()
            or term in issue.description.lower()
            or term in issue.location_text.lower()
        ):
            continue
        matched.append(issue)
    return matched


class IssueService:
    """Issue reads and admin triage for the current session."""

    def __init__(self, issues: IssueCollection, session: SessionContext):
        self.issues = issues
        self.session = session

    async def list_issues(self, filters: Optional[IssueFilters] = None) -> list[IssueView]:
        filters = filters or IssueFilters()
        viewer = self.session.get_current_user()
        if filters.admin_mode and not self.session.is_admin():
            raise AccessDeniedError()
        if filters.only_mine and viewer is None:
            return []

        issues = await self.issues.list_all()
        return [
            IssueView(
                issue=issue,
                reporter=reporter_label(viewer, issue),
                can_change_status=can_mutate_status(viewer, issue),
                can_assign=can_assign(viewer, issue),
            )
            for issue in filter_issues(viewer, issues, filters)
        ]

    async def report(self, report: IssueReport) -> Issue:
        """File a new issue owned by the logged-in user.

        The reporter, status and timestamps are stamped here; the caller
        cannot choose them.
        """
        viewer = self.session.get_current_user()
        if viewer is None:
            raise AuthenticationError("Please log in to report an issue")

        for name in REQUIRED_REPORT_FIELDS:
            value = getattr(report, name)
            if value is None or not str(value).strip():
                raise ValidationError(f"{name} is required")
        if report.priority not in PRIORITY_LEVELS:
            allowed = ", ".join(PRIORITY_LEVELS)
            raise ValidationError(f"Unknown priority '{report.priority}'. Allowed: {allowed}")

        now = datetime.now(timezone.utc).isoformat()
        issue = await self.issues.create({
            "title": report.title.strip(),
            "description": report.description.strip(),
            "location": report.location.strip(),
            "categoryId": report.category_id,
            "priority": report.priority,
            "departmentId": report.department_id,
            "userId": viewer.id,
            "userName": viewer.name,
            "status": "submitted",
            "createdAt": now,
            "updatedAt": now,
            "upvotes": 0,
            "feedback": [],
        })
        logger.info("issues.reported", issue_id=str(issue.id), by=str(viewer.id))
        return issue

    async def update_status(self, issue_id: Any, status: str) -> Issue:
        if status not in ISSUE_STATUSES:
            allowed = ", ".join(ISSUE_STATUSES)
            raise ValidationError(f"Unknown status '{status}'. Allowed: {allowed}")
        issue = await self._get(issue_id)
        viewer = self.session.get_current_user()
        if not can_mutate_status(viewer, issue):
            raise AccessDeniedError()

        updated = await self.issues.update(issue.id, {"status": status})
        logger.info(
            "issues.status_changed",
            issue_id=str(issue.id),
            from_status=issue.status,
            to_status=status,
            by=str(viewer.id),
        )
        return updated

    async def assign(
        self,
        issue_id: Any,
        department_id: Union[int, str],
        assigned_to: Optional[Union[int, str]] = None,
    ) -> Issue:
        """Route an issue to a department (and optionally a person)."""
        if department_id in (None, ""):
            raise ValidationError("departmentId is required")
        issue = await self._get(issue_id)
        viewer = self.session.get_current_user()
        if not can_assign(viewer, issue):
            raise AccessDeniedError()

        changes: dict[str, Any] = {"departmentId": department_id}
        if assigned_to is not None:
            changes["assignedTo"] = assigned_to
        updated = await self.issues.update(issue.id, changes)
        logger.info(
            "issues.assigned",
            issue_id=str(issue.id),
            department_id=str(department_id),
            by=str(viewer.id),
        )
        return updated

    async def _get(self, issue_id: Any) -> Issue:
        issue = await self.issues.get(issue_id)
        if issue is None:
            raise NotFoundError(f"Issue {issue_id} not found")
        return issue
