"""Portal factory — wires settings, clients, storage and services together.

Learn: Factory pattern, like an app factory for a web server.
create_portal() builds every component with explicit collaborators, and
open_portal() is the lifespan: anything before `yield` runs at startup
(session revalidation), after `yield` at shutdown (close the HTTP
client and the storage backend).

    async with open_portal() as portal:
        if portal.session.is_admin():
            views = await portal.issue_service.list_issues(IssueFilters(admin_mode=True))

Resources passed in by the caller (an httpx client, a storage backend)
are not closed on shutdown; the caller owns them.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx
import structlog

from civicportal import __version__
from civicportal.auth.tokens import TokenSigner
from civicportal.clients.base import create_http_client
from civicportal.clients.identity import IdentityCollection
from civicportal.clients.issues import IssueCollection
from civicportal.config import Settings, settings
from civicportal.services.credential_service import CredentialService
from civicportal.services.issue_service import IssueService
from civicportal.session.context import SessionContext
from civicportal.session.store import SessionStore
from civicportal.storage import KeyValueStore, create_store

logger = structlog.get_logger()


@dataclass
class Portal:
    settings: Settings
    http_client: httpx.AsyncClient
    backend: KeyValueStore
    identities: IdentityCollection
    issues: IssueCollection
    store: SessionStore
    credentials: CredentialService
    session: SessionContext
    issue_service: IssueService
    _closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def start(self) -> None:
        logger.info(
            "civicportal.starting",
            version=__version__,
            environment=self.settings.environment,
            storage=self.backend.name,
        )
        await self.session.init()

    async def close(self) -> None:
        logger.info("civicportal.shutdown")
        await self.session.dispose()
        for closer in reversed(self._closers):
            await closer()
        self._closers.clear()


def create_portal(
    cfg: Optional[Settings] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    backend: Optional[KeyValueStore] = None,
) -> Portal:
    """Build a portal. Nothing touches the network until start()."""
    cfg = cfg or settings
    closers: list[Callable[[], Awaitable[None]]] = []

    if http_client is None:
        http_client = create_http_client(cfg.api_base_url, cfg.request_timeout_seconds)
        closers.append(http_client.aclose)
    if backend is None:
        backend = create_store(cfg=cfg)
        closers.append(backend.close)

    identities = IdentityCollection(http_client)
    issues = IssueCollection(http_client)
    store = SessionStore(
        backend,
        identities,
        signer=TokenSigner(
            secret=cfg.session_secret,
            algorithm=cfg.session_algorithm,
            expire_minutes=cfg.session_expire_minutes,
        ),
        user_key=cfg.user_storage_key,
        token_key=cfg.token_storage_key,
    )
    credentials = CredentialService(identities, store, bcrypt_rounds=cfg.bcrypt_rounds)
    session = SessionContext(credentials, store)

    return Portal(
        settings=cfg,
        http_client=http_client,
        backend=backend,
        identities=identities,
        issues=issues,
        store=store,
        credentials=credentials,
        session=session,
        issue_service=IssueService(issues, session),
        _closers=closers,
    )


@asynccontextmanager
async def open_portal(
    cfg: Optional[Settings] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    backend: Optional[KeyValueStore] = None,
) -> AsyncIterator[Portal]:
    """Startup and shutdown lifecycle around a portal."""
    portal = create_portal(cfg, http_client=http_client, backend=backend)
    await portal.start()
    try:
        yield portal
    finally:
        await portal.close()
