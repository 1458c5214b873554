"""Test fixtures — a fake REST backend and the session stack wired to it.

Learn: Every test gets a fresh in-memory backend (FastAPI app) reached
through httpx's ASGITransport, plus a fresh MemoryStore for the local
session record. Nothing leaks between tests and nothing hits the
network. bcrypt runs at 4 rounds to keep the suite fast.
"""

import httpx
import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient

from civicportal.auth.tokens import TokenSigner
from civicportal.clients.identity import IdentityCollection
from civicportal.clients.issues import IssueCollection
from civicportal.config import Settings
from civicportal.services.credential_service import CredentialService
from civicportal.session.context import SessionContext
from civicportal.session.store import SessionStore
from civicportal.storage.memory import MemoryStore
from fake_backend import create_backend

TEST_SECRET = "test-session-secret-for-the-fake-backend"


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI reconfigures structlog onto its own streams; undo that."""
    yield
    structlog.reset_defaults()


@pytest.fixture()
def test_settings():
    return Settings(
        session_secret=TEST_SECRET,
        bcrypt_rounds=4,
        storage_backend="memory",
    )


@pytest.fixture()
def backend_app():
    return create_backend()


@pytest_asyncio.fixture()
async def http_client(backend_app):
    transport = ASGITransport(app=backend_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def offline_client():
    """HTTP client whose every request fails to connect."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def memory_backend():
    return MemoryStore()


@pytest.fixture()
def signer():
    return TokenSigner(secret=TEST_SECRET, algorithm="HS256", expire_minutes=60)


@pytest.fixture()
def identities(http_client):
    return IdentityCollection(http_client)


@pytest.fixture()
def issue_collection(http_client):
    return IssueCollection(http_client)


@pytest.fixture()
def store(memory_backend, identities, signer):
    return SessionStore(
        memory_backend,
        identities,
        signer=signer,
        user_key="civic_user",
        token_key="civic_token",
    )


@pytest.fixture()
def credentials(identities, store):
    return CredentialService(identities, store, bcrypt_rounds=4)


@pytest.fixture()
def context(credentials, store):
    return SessionContext(credentials, store)
