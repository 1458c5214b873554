"""Session store — the local record of who is logged in.

Learn: Two keyed entries, written together:
- civic_user  → JSON of the sanitized user (never the password hash)
- civic_token → signed session token

Reading is forgiving and self-healing: if either entry is missing or the
user JSON is malformed, load() reports "no session" and wipes what is
left, so a half-written or hand-edited record cannot wedge the app.

The store is the only component that writes these keys.
"""

import json
from typing import Callable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from civicportal.auth.tokens import TokenError, TokenSigner
from civicportal.clients.identity import IdentityCollection
from civicportal.config import settings
from civicportal.errors import StorageError, TransportError
from civicportal.schemas.user import PublicUser, Session
from civicportal.storage.base import KeyValueStore

logger = structlog.get_logger()

WriteGuard = Callable[[], bool]


def _always() -> bool:
    return True


class SessionStore:
    """Persists, loads and revalidates the current session."""

    def __init__(
        self,
        backend: KeyValueStore,
        identities: IdentityCollection,
        signer: Optional[TokenSigner] = None,
        user_key: Optional[str] = None,
        token_key: Optional[str] = None,
    ):
        self.backend = backend
        self.identities = identities
        self.signer = signer or TokenSigner()
        self.user_key = user_key or settings.user_storage_key
        self.token_key = token_key or settings.token_storage_key

    def issue(self, user: PublicUser) -> Session:
        """Create a session with a freshly signed token."""
        return Session(user=user, token=self.signer.issue(user))

    async def persist(self, session: Session) -> None:
        """Write user and token in one atomic backend write.

        Raises StorageError if the write fails; nothing is half-written.
        """
        # Round-trip through PublicUser so only sanitized fields are written
        user = PublicUser.model_validate(session.user.model_dump())
        await self.backend.set_many({
            self.user_key: json.dumps(user.to_wire()),
            self.token_key: session.token,
        })
        logger.info("session.persisted", user_id=str(user.id), backend=self.backend.name)

    async def load(self) -> Optional[Session]:
        """Return the stored session, or None if absent or unreadable."""
        return await self._load(_always)

    async def _load(self, is_current: WriteGuard) -> Optional[Session]:
        try:
            raw_user = await self.backend.get(self.user_key)
            token = await self.backend.get(self.token_key)
        except StorageError:
            logger.warning("session.load_failed", backend=self.backend.name)
            return None

        if raw_user is None and token is None:
            return None
        if raw_user is None or not token:
            logger.warning("session.incomplete_record", backend=self.backend.name)
            await self._discard(is_current)
            return None

        try:
            user = PublicUser.model_validate(json.loads(raw_user))
        except (ValueError, TypeError, PydanticValidationError):
            # json.JSONDecodeError is a ValueError
            logger.warning("session.corrupt_record", backend=self.backend.name)
            await self._discard(is_current)
            return None
        return Session(user=user, token=token)

    async def clear(self) -> None:
        """Remove the stored session. Safe to call when there is none.

        A failed delete is retried once before StorageError propagates.
        """
        try:
            await self.backend.delete(self.user_key, self.token_key)
        except StorageError:
            logger.warning("session.clear_retry", backend=self.backend.name)
            await self.backend.delete(self.user_key, self.token_key)
        logger.info("session.cleared", backend=self.backend.name)

    async def revalidate(self, session: Session) -> bool:
        """Confirm a stored session still belongs to a live identity.

        A bad token or a deleted identity clears the store; a backend
        outage only denies the session for now and keeps the record for
        the next start. On success the stored user is refreshed.
        """
        return await self._refresh(session, _always) is not None

    async def restore(self, is_current: Optional[WriteGuard] = None) -> Optional[Session]:
        """Load the stored session and revalidate it.

        Returns the session with the user record refreshed from the
        backend, or None.

        is_current is asked before every write (refresh or discard). Once
        it returns False a newer login or logout owns the record, and
        restore() leaves the store untouched.
        """
        is_current = is_current or _always
        session = await self._load(is_current)
        if session is None:
            return None
        return await self._refresh(session, is_current)

    async def _refresh(self, session: Session, is_current: WriteGuard) -> Optional[Session]:
        try:
            payload = self.signer.verify(session.token)
        except TokenError as e:
            logger.info("session.token_rejected", reason=str(e))
            await self._discard(is_current)
            return None

        if payload["sub"] != str(session.user.id):
            logger.warning("session.subject_mismatch", user_id=str(session.user.id))
            await self._discard(is_current)
            return None

        try:
            identity = await self.identities.get(session.user.id)
        except TransportError:
            logger.warning("session.revalidate_unreachable", user_id=str(session.user.id))
            return None

        if identity is None:
            logger.info("session.identity_gone", user_id=str(session.user.id))
            await self._discard(is_current)
            return None

        refreshed = Session(user=identity.sanitize(), token=session.token)
        if not is_current():
            logger.info("session.refresh_superseded", user_id=str(session.user.id))
            return refreshed
        try:
            await self.persist(refreshed)
        except StorageError:
            # The stored copy is stale but still valid; keep going
            logger.warning("session.refresh_not_saved", user_id=str(session.user.id))
        return refreshed

    async def _discard(self, is_current: WriteGuard) -> None:
        if not is_current():
            return
        try:
            await self.clear()
        except StorageError:
            logger.error("session.clear_failed", backend=self.backend.name)
