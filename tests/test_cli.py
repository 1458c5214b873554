"""Tests for the civic CLI.

Learn: Click's CliRunner invokes commands in-process. The group reads
its settings and portal factory from ctx.obj when present, so each test
points the CLI at the fake backend and a shared MemoryStore; the stored
session then carries over between invocations just like the session
file does for a real user.
"""

from contextlib import asynccontextmanager

import pytest
from click.testing import CliRunner
from httpx import ASGITransport, AsyncClient

from civicportal.app import open_portal
from civicportal.cli.main import main
from civicportal.storage.memory import MemoryStore
from fake_backend import add_issue, add_user


@pytest.fixture()
def cli_obj(test_settings, backend_app):
    backend = MemoryStore()

    @asynccontextmanager
    async def factory(cfg):
        transport = ASGITransport(app=backend_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            async with open_portal(cfg, http_client=client, backend=backend) as portal:
                yield portal

    return {"settings": test_settings, "portal_factory": factory}


@pytest.fixture()
def civic(cli_obj):
    runner = CliRunner()

    def invoke(*args: str):
        return runner.invoke(main, list(args), obj=cli_obj)

    return invoke


def test_register_whoami_logout(civic):
    result = civic(
        "register",
        "--name", "Asha Kumari",
        "--email", "a@x.com",
        "--phone", "9876543210",
        "--password", "secret1",
        "--location", "Ranchi",
        "--address", "12 Station Road",
    )
    assert result.exit_code == 0, result.output
    assert "Registration successful!" in result.output
    assert "Logged in as a@x.com" in result.output

    result = civic("whoami")
    assert result.exit_code == 0
    assert "Asha Kumari" in result.output
    assert "citizen" in result.output

    result = civic("logout")
    assert result.exit_code == 0
    assert "Logged out" in result.output

    result = civic("whoami")
    assert "Not logged in" in result.output


def test_login_and_whoami_json(civic, backend_app):
    add_user(backend_app, "citizen@demo.com", "secret1")

    result = civic("login", "citizen@demo.com", "-p", "secret1")
    assert result.exit_code == 0, result.output
    assert "Login successful!" in result.output

    result = civic("whoami", "--json")
    assert '"email": "citizen@demo.com"' in result.output
    assert "passwordHash" not in result.output


def test_login_wrong_password(civic, backend_app):
    add_user(backend_app, "citizen@demo.com", "secret1")

    result = civic("login", "citizen@demo.com", "-p", "wrong")

    assert result.exit_code == 1
    assert "Error: Invalid email or password" in result.output


def test_profile_requires_login(civic):
    result = civic("profile", "--location", "Dhanbad")

    assert result.exit_code == 1
    assert "Not logged in" in result.output


def test_issues_redacted_for_citizens(civic, backend_app):
    add_user(backend_app, "citizen@demo.com", "secret1")
    add_issue(backend_app, title="Broken streetlight", userId=99, userName="Ravi")
    civic("login", "citizen@demo.com", "-p", "secret1")

    result = civic("issues")

    assert result.exit_code == 0, result.output
    assert "Broken streetlight" in result.output
    assert "Ravi" not in result.output
    assert "Citizen" in result.output


def test_admin_console_defaults_to_department(civic, backend_app):
    add_user(backend_app, "admin@demo.com", "admin1", role="admin", department_id=2)
    add_issue(backend_app, title="Pothole near school", departmentId=2)
    add_issue(backend_app, title="Garbage pile", departmentId=5)
    civic("login", "admin@demo.com", "-p", "admin1")

    result = civic("issues", "--admin")

    assert result.exit_code == 0, result.output
    assert "Defaulting to department 2" in result.output
    assert "Pothole near school" in result.output
    assert "Garbage pile" not in result.output


def test_admin_console_denied_to_citizens(civic, backend_app):
    add_user(backend_app, "citizen@demo.com", "secret1")
    civic("login", "citizen@demo.com", "-p", "secret1")

    result = civic("issues", "--admin")

    assert result.exit_code == 1
    assert "Access denied" in result.output


def test_admin_set_status_and_assign(civic, backend_app):
    add_user(backend_app, "admin@demo.com", "admin1", role="admin")
    add_issue(backend_app)
    civic("login", "admin@demo.com", "-p", "admin1")

    result = civic("set-status", "1", "Resolved")
    assert result.exit_code == 0, result.output
    assert "Issue #1" in result.output
    assert backend_app.state.db["issues"][0]["status"] == "Resolved"

    result = civic("assign", "1", "4", "--to", "Ward officer")
    assert result.exit_code == 0, result.output
    assert "assigned to department 4" in result.output
    assert backend_app.state.db["issues"][0]["assignedTo"] == "Ward officer"


def test_set_status_rejects_unknown_status(civic):
    result = civic("set-status", "1", "done")

    assert result.exit_code == 2


def test_user_details_admin_only(civic, backend_app):
    add_user(backend_app, "admin@demo.com", "admin1", role="admin")
    add_user(backend_app, "citizen@demo.com", "secret1")

    civic("login", "citizen@demo.com", "-p", "secret1")
    result = civic("user", "1")
    assert result.exit_code == 1
    assert "Access denied" in result.output

    civic("login", "admin@demo.com", "-p", "admin1")
    result = civic("user", "2")
    assert result.exit_code == 0, result.output
    assert "citizen@demo.com" in result.output
    assert "passwordHash" not in result.output


def test_report_issue(civic, backend_app):
    add_user(backend_app, "citizen@demo.com", "secret1")
    civic("login", "citizen@demo.com", "-p", "secret1")

    result = civic(
        "report",
        "--title", "Broken streetlight",
        "--description", "Dark since Monday",
        "--location", "Lake View Colony",
        "--category", "3",
    )

    assert result.exit_code == 0, result.output
    assert "Issue #1 reported" in result.output
    record = backend_app.state.db["issues"][0]
    assert record["userId"] == 1
    assert record["categoryId"] == 3
    assert record["status"] == "submitted"
    assert record["priority"] == "medium"

    result = civic("issues", "--mine")
    assert "Broken streetlight" in result.output


def test_report_requires_login(civic, backend_app):
    result = civic(
        "report",
        "--title", "Broken streetlight",
        "--description", "Dark since Monday",
        "--location", "Lake View Colony",
        "--category", "3",
    )

    assert result.exit_code == 1
    assert "Not logged in" in result.output
    assert backend_app.state.db["issues"] == []
