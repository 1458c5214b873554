"""Credential service — registration, login, logout, profile updates.

Learn: Every public method returns an AuthResult instead of raising.
Internally the steps raise typed PortalErrors (ValidationError,
ConflictError, AuthenticationError, TransportError, StorageError) and
the public wrapper turns whichever one fires into a failed result with
a user-facing message. Nothing from httpx or the storage backend leaks
out.

Ordering guarantee: a successful result is only returned after the
session has been persisted, and persisting is the last await, so the
caller can apply the result to its own state without another
suspension point in between.
"""

import re
from datetime import datetime, timezone
from typing import Optional

import structlog

from civicportal.access.policy import can_view_user_details
from civicportal.auth.password import hash_password, verify_password
from civicportal.clients.identity import IdentityCollection
from civicportal.errors import (
    AccessDeniedError,
    AuthenticationError,
    AuthResult,
    ConflictError,
    PortalError,
    StorageError,
    ValidationError,
)
from civicportal.schemas.user import (
    Identity,
    LoginRequest,
    ProfileUpdate,
    PublicUser,
    RegisterRequest,
    Role,
    Session,
    UserId,
)
from civicportal.session.store import SessionStore

logger = structlog.get_logger()

REQUIRED_REGISTRATION_FIELDS = ("name", "email", "phone", "password", "location", "address")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_TAKEN = "Email already registered. Please use a different email or login."
PHONE_TAKEN = "Phone number already registered. Please use a different number."
ACCOUNT_CREATED_NOT_SAVED = (
    "Account created, but your session could not be saved. Please log in."
)

# Hash checked against when the email is unknown, so both failure paths cost one bcrypt round
_dummy_hashes: dict[Optional[int], str] = {}


def _unknown_user_hash(rounds: Optional[int] = None) -> str:
    if rounds not in _dummy_hashes:
        _dummy_hashes[rounds] = hash_password("civicportal-unknown-user", rounds)
    return _dummy_hashes[rounds]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CredentialService:
    """Validates credentials against the identity collection and
    establishes sessions in the session store."""

    def __init__(
        self,
        identities: IdentityCollection,
        store: SessionStore,
        bcrypt_rounds: Optional[int] = None,
    ):
        self.identities = identities
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds

    # ─── Register ────────────────────────────────────────

    async def register(self, candidate: RegisterRequest) -> AuthResult:
        """Create a citizen account and log it in."""
        try:
            session = await self._register(candidate)
        except PortalError as e:
            logger.info("credentials.register_failed", reason=type(e).__name__)
            return AuthResult.failed(e)
        logger.info("credentials.registered", user_id=str(session.user.id))
        return AuthResult.ok("Registration successful!", session)

    async def _register(self, candidate: RegisterRequest) -> Session:
        fields: dict[str, str] = {}
        for name in REQUIRED_REGISTRATION_FIELDS:
            value = getattr(candidate, name)
            if value is None or not value.strip():
                raise ValidationError(f"{name} is required")
            fields[name] = value if name == "password" else value.strip()

        email = fields["email"].lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please enter a valid email address")

        if await self.identities.find_by_email(email) is not None:
            raise ConflictError(EMAIL_TAKEN)
        if await self.identities.find_by_phone(fields["phone"]) is not None:
            raise ConflictError(PHONE_TAKEN)

        identity = await self.identities.create({
            "name": fields["name"],
            "email": email,
            "phone": fields["phone"],
            "passwordHash": hash_password(fields["password"], self.bcrypt_rounds),
            "role": Role.CITIZEN.value,
            "location": fields["location"],
            "address": fields["address"],
            "isVerified": False,
            "createdAt": _now(),
            "lastLoginAt": None,
        })

        session = self.store.issue(identity.sanitize())
        try:
            await self.store.persist(session)
        except StorageError as e:
            # The account exists now; a retry would only hit EMAIL_TAKEN
            logger.error("credentials.register_session_not_saved", user_id=str(identity.id))
            raise StorageError(ACCOUNT_CREATED_NOT_SAVED) from e
        return session

    # ─── Login ───────────────────────────────────────────

    async def login(self, credentials: LoginRequest) -> AuthResult:
        """Check email/password, stamp lastLoginAt, persist the session."""
        try:
            session = await self._login(credentials)
        except PortalError as e:
            logger.info("credentials.login_failed", reason=type(e).__name__)
            return AuthResult.failed(e)
        logger.info("credentials.logged_in", user_id=str(session.user.id))
        return AuthResult.ok("Login successful!", session)

    async def _login(self, credentials: LoginRequest) -> Session:
        email = (credentials.email or "").strip().lower()
        password = credentials.password or ""
        if not email or not password:
            raise ValidationError("Email and password are required")

        identity = await self.identities.find_by_email(email)
        # Unknown email and wrong password must be indistinguishable
        if identity is None:
            verify_password(password, _unknown_user_hash(self.bcrypt_rounds))
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not verify_password(password, identity.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS)

        updated = await self.identities.update(identity.id, {"lastLoginAt": _now()})
        session = self.store.issue(updated.sanitize())
        await self.store.persist(session)
        return session

    # ─── Logout ──────────────────────────────────────────

    async def logout(self) -> None:
        """Forget the local session. Never fails."""
        try:
            await self.store.clear()
        except StorageError:
            # The record survives on disk and will be restored on next start
            logger.error("credentials.logout_clear_failed")

    # ─── Profile ─────────────────────────────────────────

    async def update_profile(self, session: Session, updates: ProfileUpdate) -> AuthResult:
        """Change the logged-in user's own name, phone, location or address."""
        try:
            refreshed = await self._update_profile(session, updates)
        except PortalError as e:
            logger.info("credentials.profile_update_failed", reason=type(e).__name__)
            return AuthResult.failed(e)
        logger.info("credentials.profile_updated", user_id=str(refreshed.user.id))
        return AuthResult.ok("Profile updated", refreshed)

    async def _update_profile(self, session: Session, updates: ProfileUpdate) -> Session:
        changes = updates.changes()
        if not changes:
            raise ValidationError("No profile changes provided")
        for name, value in changes.items():
            if not value:
                raise ValidationError(f"{name} cannot be empty")

        if "phone" in changes:
            holder = await self.identities.find_by_phone(changes["phone"])
            if holder is not None and str(holder.id) != str(session.user.id):
                raise ConflictError(PHONE_TAKEN)

        updated = await self.identities.update(session.user.id, changes)
        refreshed = Session(user=updated.sanitize(), token=session.token)
        await self.store.persist(refreshed)
        return refreshed

    # ─── Admin lookups ───────────────────────────────────

    async def get_user_details_for_admin(
        self, viewer: Optional[PublicUser], user_id: UserId
    ) -> Optional[PublicUser]:
        """Full (sanitized) profile of any user. Admins only.

        Raises AccessDeniedError for anyone else; TransportError if the
        backend is down. Returns None if the user does not exist.
        """
        if not can_view_user_details(viewer):
            raise AccessDeniedError()
        identity: Optional[Identity] = await self.identities.get(user_id)
        return identity.sanitize() if identity else None
