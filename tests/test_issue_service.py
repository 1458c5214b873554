"""Tests for issue filtering, reporting and admin triage."""

import pytest

from civicportal.errors import (
    AccessDeniedError,
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from civicportal.schemas.issue import Issue, IssueReport
from civicportal.schemas.user import LoginRequest, PublicUser, Role
from civicportal.services.issue_service import IssueFilters, IssueService, filter_issues
from fake_backend import add_issue, add_user

ADMIN = PublicUser(id=1, email="admin@demo.com", role=Role.ADMIN, department_id=2)
CITIZEN = PublicUser(id=5, email="citizen@demo.com")

ISSUES = [
    Issue(id=1, title="Pothole on Main Road", userId=5, departmentId=2, categoryId=1, status="Pending"),
    Issue(id=2, title="Garbage pile", description="near the market", userId=6,
          departmentId=3, categoryId="2", status="Resolved"),
    Issue(id=3, title="Streetlight out", location={"address": "Lake View Colony"}, userId=5,
          departmentId="2", categoryId=3, status="in-progress"),
]


def _ids(issues):
    return [i.id for i in issues]


# ─── filter_issues ───────────────────────────────────────


def test_no_filters_keeps_everything_in_order():
    assert _ids(filter_issues(CITIZEN, ISSUES)) == [1, 2, 3]


def test_only_mine():
    assert _ids(filter_issues(CITIZEN, ISSUES, IssueFilters(only_mine=True))) == [1, 3]
    assert filter_issues(None, ISSUES, IssueFilters(only_mine=True)) == []


def test_status_is_exact():
    assert _ids(filter_issues(CITIZEN, ISSUES, IssueFilters(status="Resolved"))) == [2]
    assert filter_issues(CITIZEN, ISSUES, IssueFilters(status="resolved")) == []


def test_category_matches_numeric_and_string_ids():
    assert _ids(filter_issues(CITIZEN, ISSUES, IssueFilters(category_id=2))) == [2]
    assert _ids(filter_issues(CITIZEN, ISSUES, IssueFilters(category_id="1"))) == [1]


def test_search_covers_title_description_and_location():
    assert _ids(filter_issues(CITIZEN, ISSUES, IssueFilters(search="POTHOLE"))) == [1]
    assert _ids(filter_issues(CITIZEN, ISSUES, IssueFilters(search="market"))) == [2]
    assert _ids(filter_issues(CITIZEN, ISSUES, IssueFilters(search="lake view"))) == [3]


def test_admin_mode_defaults_to_own_department():
    assert _ids(filter_issues(ADMIN, ISSUES, IssueFilters(admin_mode=True))) == [1, 3]


def test_admin_mode_explicit_department_wins():
    filters = IssueFilters(admin_mode=True, department_id=3)
    assert _ids(filter_issues(ADMIN, ISSUES, filters)) == [2]


def test_admin_without_department_sees_all():
    chief = PublicUser(id=9, email="chief@demo.com", role=Role.ADMIN)
    assert _ids(filter_issues(chief, ISSUES, IssueFilters(admin_mode=True))) == [1, 2, 3]


def test_department_filter_ignored_outside_admin_mode():
    assert _ids(filter_issues(ADMIN, ISSUES, IssueFilters(department_id=3))) == [1, 2, 3]


# ─── IssueService ────────────────────────────────────────


@pytest.fixture()
def issue_service(issue_collection, context):
    return IssueService(issue_collection, context)


async def _login(context, backend_app, role="citizen", department_id=None):
    email = f"{role}@demo.com"
    add_user(backend_app, email, "secret1", role=role, department_id=department_id)
    await context.init()
    result = await context.login(LoginRequest(email=email, password="secret1"))
    assert result.success
    return result.user


@pytest.mark.asyncio
async def test_list_issues_redacts_reporters(issue_service, context, backend_app):
    user = await _login(context, backend_app)
    add_issue(backend_app, userId=user.id, userName="Me")
    add_issue(backend_app, userId=99, userName="Someone Else")

    views = await issue_service.list_issues()

    assert [v.reporter for v in views] == ["Me", "Citizen"]
    assert not any(v.can_change_status or v.can_assign for v in views)


@pytest.mark.asyncio
async def test_list_mine_when_anonymous_is_empty(issue_service, context, backend_app):
    await context.init()
    add_issue(backend_app)

    assert await issue_service.list_issues(IssueFilters(only_mine=True)) == []


@pytest.mark.asyncio
async def test_admin_console_requires_admin(issue_service, context, backend_app):
    await _login(context, backend_app)

    with pytest.raises(AccessDeniedError):
        await issue_service.list_issues(IssueFilters(admin_mode=True))


@pytest.mark.asyncio
async def test_admin_console_scoped_to_department(issue_service, context, backend_app):
    await _login(context, backend_app, role="admin", department_id=2)
    add_issue(backend_app, departmentId=2, userName="Asha")
    add_issue(backend_app, departmentId=4)

    views = await issue_service.list_issues(IssueFilters(admin_mode=True))

    assert [v.issue.id for v in views] == [1]
    assert views[0].reporter == "Asha"
    assert views[0].can_change_status and views[0].can_assign


@pytest.mark.asyncio
async def test_admin_updates_status(issue_service, context, backend_app):
    await _login(context, backend_app, role="admin")
    add_issue(backend_app)

    updated = await issue_service.update_status(1, "in-progress")

    assert updated.status == "in-progress"
    assert updated.updated_at is not None
    assert backend_app.state.db["issues"][0]["status"] == "in-progress"


@pytest.mark.asyncio
async def test_citizen_cannot_update_status(issue_service, context, backend_app):
    user = await _login(context, backend_app)
    add_issue(backend_app, userId=user.id)

    with pytest.raises(AccessDeniedError):
        await issue_service.update_status(1, "closed")
    assert backend_app.state.db["issues"][0]["status"] == "Pending"


@pytest.mark.asyncio
async def test_unknown_status_rejected(issue_service, context, backend_app):
    await _login(context, backend_app, role="admin")
    add_issue(backend_app)

    with pytest.raises(ValidationError):
        await issue_service.update_status(1, "done")


@pytest.mark.asyncio
async def test_missing_issue(issue_service, context, backend_app):
    await _login(context, backend_app, role="admin")

    with pytest.raises(NotFoundError):
        await issue_service.update_status(404, "closed")


@pytest.mark.asyncio
async def test_admin_assigns_department(issue_service, context, backend_app):
    await _login(context, backend_app, role="admin")
    add_issue(backend_app)

    updated = await issue_service.assign(1, 4, assigned_to="Ward officer")

    assert updated.department_id == 4
    assert updated.assigned_to == "Ward officer"


@pytest.mark.asyncio
async def test_assign_requires_department(issue_service, context, backend_app):
    await _login(context, backend_app, role="admin")
    add_issue(backend_app)

    with pytest.raises(ValidationError):
        await issue_service.assign(1, "")


@pytest.mark.asyncio
async def test_citizen_cannot_assign(issue_service, context, backend_app):
    await _login(context, backend_app)
    add_issue(backend_app)

    with pytest.raises(AccessDeniedError):
        await issue_service.assign(1, 4)


# ─── Reporting ───────────────────────────────────────────


def _pothole(**overrides):
    fields = {
        "title": " Pothole near school ",
        "description": "Deep enough to damage a scooter",
        "location": "Harmu Road",
        "category_id": 1,
    }
    fields.update(overrides)
    return IssueReport(**fields)


@pytest.mark.asyncio
async def test_report_stamps_reporter_and_status(issue_service, context, backend_app):
    user = await _login(context, backend_app)

    issue = await issue_service.report(_pothole(priority="high"))

    assert issue.id == 1
    assert issue.title == "Pothole near school"
    assert issue.user_id == user.id
    assert issue.user_name == "Citizen"
    assert issue.status == "submitted"
    assert issue.priority == "high"
    assert issue.created_at is not None
    assert issue.created_at == issue.updated_at

    record = backend_app.state.db["issues"][0]
    assert record["userId"] == user.id
    assert record["categoryId"] == 1
    mine = await issue_service.list_issues(IssueFilters(only_mine=True))
    assert [v.issue.id for v in mine] == [1]
    assert mine[0].reporter == "Citizen"


@pytest.mark.asyncio
async def test_report_requires_login(issue_service, context, backend_app):
    await context.init()

    with pytest.raises(AuthenticationError):
        await issue_service.report(_pothole())
    assert backend_app.state.db["issues"] == []


@pytest.mark.asyncio
async def test_report_requires_fields(issue_service, context, backend_app):
    await _login(context, backend_app)

    with pytest.raises(ValidationError, match="title is required"):
        await issue_service.report(_pothole(title="   "))
    with pytest.raises(ValidationError, match="category_id is required"):
        await issue_service.report(_pothole(category_id=None))
    assert backend_app.state.db["issues"] == []


@pytest.mark.asyncio
async def test_report_rejects_unknown_priority(issue_service, context, backend_app):
    await _login(context, backend_app)

    with pytest.raises(ValidationError):
        await issue_service.report(_pothole(priority="urgent"))


@pytest.mark.asyncio
async def test_report_ignores_caller_supplied_owner_and_status(issue_service, context, backend_app):
    user = await _login(context, backend_app)
    report = IssueReport.model_validate({
        "title": "Garbage pile",
        "description": "Not collected for a week",
        "location": "Market Lane",
        "categoryId": "2",
        "status": "Resolved",
        "userId": 99,
    })

    issue = await issue_service.report(report)

    assert issue.status == "submitted"
    assert issue.user_id == user.id
    assert issue.category_id == "2"
