"""Error taxonomy and the structured result returned to callers.

Learn: Services raise these internally and convert them into an
AuthResult at their public boundary, so the CLI (or any UI) gets a
success flag and a message it can show as-is. Raw transport exceptions
never reach the caller.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from civicportal.schemas.user import PublicUser, Session


class PortalError(Exception):
    """Base for every error surfaced to the user."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(PortalError):
    """Missing or malformed input. Shown verbatim, never retried."""

    default_message = "Invalid input"


class ConflictError(PortalError):
    """Email or phone already registered."""

    default_message = "Already registered"


class AuthenticationError(PortalError):
    """Invalid credentials. Deliberately generic."""

    default_message = "Invalid email or password"


class AccessDeniedError(PortalError):
    """Authenticated, but the role does not allow the action."""

    default_message = "Access denied. Admin privileges required."


class NotFoundError(PortalError):
    default_message = "Not found"


class TransportError(PortalError):
    """The REST backend is unreachable or answered with a failure status."""

    default_message = "Unable to reach the server. Please try again."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(PortalError):
    """The local session record could not be written."""

    default_message = "Could not save your session. Please try again."


@dataclass
class AuthResult:
    """Outcome of a credential operation."""

    success: bool
    message: str
    user: Optional["PublicUser"] = None
    error: Optional[PortalError] = None
    session: Optional["Session"] = None

    @classmethod
    def ok(cls, message: str, session: "Session") -> "AuthResult":
        return cls(success=True, message=message, user=session.user, session=session)

    @classmethod
    def failed(cls, error: PortalError) -> "AuthResult":
        return cls(success=False, message=error.message, error=error)
