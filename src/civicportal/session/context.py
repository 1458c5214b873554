"""Session context — the application's single answer to "who is logged in?".

Learn: State machine with three states:

    UNKNOWN ──init()──▶ AUTHENTICATED ◀──login/register── ANONYMOUS
                   └──▶ ANONYMOUS     ──logout/failed revalidation──▶

The context starts UNKNOWN. init() loads the stored session and
revalidates it against the backend before anything AUTHENTICATED is
exposed; readers that must not guess can await wait_until_resolved().

There is no module-level instance. The application builds one (see
civicportal.app), calls init() at startup and dispose() at shutdown,
and passes it to whatever needs it.

is_authenticated()/is_admin()/is_citizen() are computed from the
current state on every call, so they can never drift from it.

Overlapping operations: if two logins are in flight, the one that
completes last wins. The credential service persists as its final
await, and the context applies the result right after, so the stored
record and the in-memory state always describe the same session.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

import structlog

from civicportal.errors import AuthenticationError, AuthResult, PortalError
from civicportal.schemas.user import (
    LoginRequest,
    ProfileUpdate,
    PublicUser,
    RegisterRequest,
    Role,
    Session,
)
from civicportal.services.credential_service import CredentialService
from civicportal.session.events import (
    SESSION_ANONYMOUS,
    SESSION_LOGGED_IN,
    SESSION_LOGGED_OUT,
    SESSION_PROFILE_UPDATED,
    SESSION_REGISTERED,
    SESSION_RESTORED,
)
from civicportal.session.store import SessionStore

logger = structlog.get_logger()

Listener = Callable[[str, Optional[PublicUser]], None]


class SessionState(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class SessionContext:
    """Holds the current session and notifies subscribers of changes."""

    def __init__(self, credentials: CredentialService, store: SessionStore):
        self.credentials = credentials
        self.store = store
        self._state = SessionState.UNKNOWN
        self._session: Optional[Session] = None
        self._resolved = asyncio.Event()
        self._listeners: list[Listener] = []
        # Bumped on every state change; lets init() yield to a newer login
        self._generation = 0
        self._initialized = False

    # ─── Lifecycle ────────────────────────────────────────

    async def init(self) -> SessionState:
        """Restore and revalidate the stored session. Runs once."""
        if self._initialized:
            await self._resolved.wait()
            return self._state
        self._initialized = True
        generation = self._generation

        try:
            # The store must not rewrite a record a newer login/logout owns
            session = await self.store.restore(
                is_current=lambda: self._generation == generation
            )
        except PortalError:
            logger.exception("session.restore_failed")
            session = None

        if self._generation != generation:
            # A login/logout finished while we were revalidating; it is newer
            return self._state

        if session is None:
            self._apply(None, SESSION_ANONYMOUS)
        else:
            self._apply(session, SESSION_RESTORED)
        logger.info("session.initialized", state=self._state.value)
        return self._state

    async def dispose(self) -> None:
        """Drop in-memory state and subscribers. The stored record stays."""
        self._listeners.clear()
        self._session = None
        self._state = SessionState.UNKNOWN
        self._resolved.clear()
        self._initialized = False
        logger.info("session.disposed")

    async def __aenter__(self) -> "SessionContext":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    async def wait_until_resolved(self) -> SessionState:
        """Suspend until init() (or a login) has left the UNKNOWN state."""
        await self._resolved.wait()
        return self._state

    # ─── Operations ───────────────────────────────────────

    async def login(self, credentials: LoginRequest) -> AuthResult:
        result = await self.credentials.login(credentials)
        if result.success:
            self._apply(result.session, SESSION_LOGGED_IN)
        return result

    async def register(self, candidate: RegisterRequest) -> AuthResult:
        result = await self.credentials.register(candidate)
        if result.success:
            self._apply(result.session, SESSION_REGISTERED)
        return result

    async def logout(self) -> None:
        await self.credentials.logout()
        self._apply(None, SESSION_LOGGED_OUT)

    async def update_profile(self, updates: ProfileUpdate) -> AuthResult:
        session = self._session
        if self._state != SessionState.AUTHENTICATED or session is None:
            return AuthResult.failed(
                AuthenticationError("Please log in to update your profile")
            )
        result = await self.credentials.update_profile(session, updates)
        if result.success:
            self._apply(result.session, SESSION_PROFILE_UPDATED)
        return result

    # ─── Reads ────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session if self._state == SessionState.AUTHENTICATED else None

    def get_current_user(self) -> Optional[PublicUser]:
        session = self.session
        return session.user if session else None

    def is_authenticated(self) -> bool:
        return self.get_current_user() is not None

    def is_admin(self) -> bool:
        user = self.get_current_user()
        return user is not None and user.role == Role.ADMIN

    def is_citizen(self) -> bool:
        user = self.get_current_user()
        return user is not None and user.role == Role.CITIZEN

    # ─── Subscriptions ────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(event_type, user) on every state change.

        Returns a function that removes the subscription.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, session: Optional[Session], event_type: str) -> None:
        self._session = session
        self._state = SessionState.AUTHENTICATED if session else SessionState.ANONYMOUS
        self._generation += 1
        self._resolved.set()

        user = session.user if session else None
        for listener in list(self._listeners):
            try:
                listener(event_type, user)
            except Exception:
                logger.exception("session.listener_failed", event_type=event_type)
