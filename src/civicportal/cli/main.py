"""Civic CLI — log in, report-tracking and admin triage from the terminal.

Usage:
    civic register                            # Create a citizen account (prompts)
    civic login citizen@demo.com              # Log in (password prompted)
    civic whoami                              # Who is logged in
    civic profile --phone 9876543210          # Update your own profile
    civic report --title "Pothole" ...        # Report an issue (prompts for the rest)
    civic issues --mine                       # Your reports
    civic issues --admin --status Pending     # Admin console (defaults to your department)
    civic set-status 42 in-progress           # Admin: change status
    civic assign 42 3 --to "Ward officer"     # Admin: route to a department
    civic user 7                              # Admin: full profile of a user
    civic logout
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import click
import structlog

from civicportal import __version__
from civicportal.app import Portal, open_portal
from civicportal.config import Settings
from civicportal.errors import AuthResult, PortalError
from civicportal.schemas.issue import ISSUE_STATUSES, PRIORITY_LEVELS, IssueReport
from civicportal.schemas.user import LoginRequest, ProfileUpdate, RegisterRequest
from civicportal.services.issue_service import IssueFilters


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop: normal CLI invocation
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


@asynccontextmanager
async def _portal(ctx: click.Context) -> AsyncIterator[Portal]:
    """Open a portal for one command; tests inject a factory via ctx.obj."""
    factory = ctx.obj.get("portal_factory") or open_portal
    async with factory(ctx.obj["settings"]) as portal:
        yield portal


def _report(result: AuthResult) -> None:
    """Print an AuthResult; exit non-zero on failure."""
    if result.success:
        click.secho(result.message, fg="green")
        return
    click.secho(f"Error: {result.message}", fg="red", err=True)
    sys.exit(1)


def _fail(error: PortalError) -> None:
    click.secho(f"Error: {error.message}", fg="red", err=True)
    sys.exit(1)


def _require_login(portal: Portal) -> None:
    if not portal.session.is_authenticated():
        click.secho("Not logged in. Run: civic login <email>", fg="red", err=True)
        sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _as_id(value: str):
    """Numeric ids go to the backend as numbers."""
    return int(value) if value.isdigit() else value


def _status_color(status: str) -> str:
    """Map issue statuses to click colors."""
    colors = {
        "submitted": "white",
        "Pending": "yellow",
        "acknowledged": "cyan",
        "in-progress": "blue",
        "Resolved": "green",
        "closed": "magenta",
    }
    return colors.get(status, "white")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="civic")
@click.option("--api-url", envvar="CIVIC_API_BASE_URL", help="REST backend URL")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs on stderr")
@click.pass_context
def main(ctx: click.Context, api_url: Optional[str], verbose: bool):
    """Civic — report and track civic issues."""
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        overrides = {"api_base_url": api_url} if api_url else {}
        ctx.obj["settings"] = Settings(**overrides)
    _configure_logging(verbose or ctx.obj["settings"].debug)


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.password_option("--password", "-p", confirmation_prompt=False)
@click.pass_context
def login(ctx: click.Context, email: str, password: str):
    """Log in with EMAIL (password is prompted)."""
    _run(_login_impl(ctx, email, password))


async def _login_impl(ctx: click.Context, email: str, password: str):
    async with _portal(ctx) as portal:
        result = await portal.session.login(LoginRequest(email=email, password=password))
        _report(result)
        click.echo(f"Welcome, {result.user.name} ({result.user.role.value})")


@main.command()
@click.option("--name", prompt=True)
@click.option("--email", prompt=True)
@click.option("--phone", prompt=True)
@click.password_option("--password")
@click.option("--location", prompt=True, help="Town or ward")
@click.option("--address", prompt=True)
@click.pass_context
def register(ctx: click.Context, **fields: str):
    """Create a citizen account and log in."""
    _run(_register_impl(ctx, RegisterRequest(**fields)))


async def _register_impl(ctx: click.Context, candidate: RegisterRequest):
    async with _portal(ctx) as portal:
        result = await portal.session.register(candidate)
        _report(result)
        click.echo(f"Logged in as {result.user.email}")


@main.command()
@click.pass_context
def logout(ctx: click.Context):
    """Forget the stored session."""
    _run(_logout_impl(ctx))


async def _logout_impl(ctx: click.Context):
    async with _portal(ctx) as portal:
        await portal.session.logout()
        click.echo("Logged out")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the user record as JSON")
@click.pass_context
def whoami(ctx: click.Context, as_json: bool):
    """Show the logged-in user."""
    _run(_whoami_impl(ctx, as_json))


async def _whoami_impl(ctx: click.Context, as_json: bool):
    async with _portal(ctx) as portal:
        user = portal.session.get_current_user()
        if user is None:
            click.echo("Not logged in")
            return
        if as_json:
            click.echo(json.dumps(user.to_wire(), indent=2))
            return
        click.secho(user.name, bold=True)
        click.echo(f"  Email:    {user.email}")
        click.echo(f"  Phone:    {user.phone}")
        click.echo(f"  Role:     {user.role.value}")
        click.echo(f"  Location: {user.location}")
        if user.department_id is not None:
            click.echo(f"  Department: {user.department_id}")


@main.command()
@click.option("--name")
@click.option("--phone")
@click.option("--location")
@click.option("--address")
@click.pass_context
def profile(ctx: click.Context, **fields: Optional[str]):
    """Update your own profile."""
    _run(_profile_impl(ctx, ProfileUpdate(**fields)))


async def _profile_impl(ctx: click.Context, updates: ProfileUpdate):
    async with _portal(ctx) as portal:
        _require_login(portal)
        _report(await portal.session.update_profile(updates))


# ---------------------------------------------------------------------------
# Issue commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--status", "status_", default="all", help="Exact status, or 'all'")
@click.option("--category", default="all", help="Category id, or 'all'")
@click.option("--department", default="all", help="Department id (admin view), or 'all'")
@click.option("--search", "-s", default="", help="Text in title, description or location")
@click.option("--mine", is_flag=True, help="Only issues you reported")
@click.option("--admin", "admin_mode", is_flag=True, help="Admin console view")
@click.pass_context
def issues(ctx: click.Context, status_: str, category: str, department: str,
           search: str, mine: bool, admin_mode: bool):
    """List issues visible to you."""
    filters = IssueFilters(
        status=status_,
        category_id=category,
        department_id=department,
        search=search,
        only_mine=mine,
        admin_mode=admin_mode,
    )
    _run(_issues_impl(ctx, filters))


async def _issues_impl(ctx: click.Context, filters: IssueFilters):
    async with _portal(ctx) as portal:
        if filters.only_mine or filters.admin_mode:
            _require_login(portal)
        try:
            views = await portal.issue_service.list_issues(filters)
        except PortalError as e:
            _fail(e)

        if filters.admin_mode and filters.department_id == "all":
            scope = portal.session.get_current_user().department_id
            if scope is not None:
                click.echo(f"Defaulting to department {scope} (use --department to change)")
        if not views:
            click.echo("No issues found")
            return

        rows = [
            {
                "id": v.issue.id,
                "status": v.issue.status,
                "priority": v.issue.priority or "-",
                "title": v.issue.title,
                "reporter": v.reporter,
                "department": v.issue.department_id if v.issue.department_id is not None else "-",
            }
            for v in views
        ]
        _print_table(rows, [
            ("ID", "id", 8),
            ("STATUS", "status", 12),
            ("PRIORITY", "priority", 9),
            ("TITLE", "title", 40),
            ("REPORTER", "reporter", 18),
            ("DEPT", "department", 5),
        ])


@main.command()
@click.option("--title", prompt=True)
@click.option("--description", prompt=True)
@click.option("--location", prompt=True, help="Street, landmark or ward")
@click.option("--category", prompt=True, help="Category id")
@click.option("--priority", type=click.Choice(PRIORITY_LEVELS), default="medium", show_default=True)
@click.option("--department", default=None, help="Department id, if known")
@click.pass_context
def report(ctx: click.Context, title: str, description: str, location: str,
           category: str, priority: str, department: Optional[str]):
    """Report a new civic issue."""
    new_issue = IssueReport(
        title=title,
        description=description,
        location=location,
        category_id=_as_id(category),
        priority=priority,
        department_id=_as_id(department) if department else None,
    )
    _run(_report_issue_impl(ctx, new_issue))


async def _report_issue_impl(ctx: click.Context, new_issue: IssueReport):
    async with _portal(ctx) as portal:
        _require_login(portal)
        try:
            issue = await portal.issue_service.report(new_issue)
        except PortalError as e:
            _fail(e)
        status_str = click.style(issue.status, fg=_status_color(issue.status))
        click.echo(f"Issue #{issue.id} reported ({status_str})")


@main.command("set-status")
@click.argument("issue_id")
@click.argument("status", type=click.Choice(ISSUE_STATUSES))
@click.pass_context
def set_status(ctx: click.Context, issue_id: str, status: str):
    """Admin: change the STATUS of ISSUE_ID."""
    _run(_set_status_impl(ctx, issue_id, status))


async def _set_status_impl(ctx: click.Context, issue_id: str, status: str):
    async with _portal(ctx) as portal:
        _require_login(portal)
        try:
            issue = await portal.issue_service.update_status(issue_id, status)
        except PortalError as e:
            _fail(e)
        status_str = click.style(issue.status, fg=_status_color(issue.status))
        click.echo(f"Issue #{issue.id}: {status_str}")


@main.command()
@click.argument("issue_id")
@click.argument("department_id")
@click.option("--to", "assigned_to", help="Person or team within the department")
@click.pass_context
def assign(ctx: click.Context, issue_id: str, department_id: str, assigned_to: Optional[str]):
    """Admin: route ISSUE_ID to DEPARTMENT_ID."""
    _run(_assign_impl(ctx, issue_id, department_id, assigned_to))


async def _assign_impl(ctx: click.Context, issue_id: str, department_id: str,
                       assigned_to: Optional[str]):
    async with _portal(ctx) as portal:
        _require_login(portal)
        dept = _as_id(department_id)
        try:
            issue = await portal.issue_service.assign(issue_id, dept, assigned_to)
        except PortalError as e:
            _fail(e)
        click.echo(f"Issue #{issue.id} assigned to department {issue.department_id}")


@main.command()
@click.argument("user_id")
@click.pass_context
def user(ctx: click.Context, user_id: str):
    """Admin: show the full profile of USER_ID."""
    _run(_user_impl(ctx, user_id))


async def _user_impl(ctx: click.Context, user_id: str):
    async with _portal(ctx) as portal:
        _require_login(portal)
        try:
            details = await portal.credentials.get_user_details_for_admin(
                portal.session.get_current_user(), user_id
            )
        except PortalError as e:
            _fail(e)
        if details is None:
            click.echo(f"User {user_id} not found")
            return
        click.echo(json.dumps(details.to_wire(), indent=2))


if __name__ == "__main__":
    main()
