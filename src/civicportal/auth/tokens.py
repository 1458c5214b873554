"""Signed session tokens.

Learn: The token stored next to the cached user is a JWT signed with
the portal secret. It carries the user id and role and expires after
session_expire_minutes. At startup the session store verifies the
signature and expiry and checks that the subject matches the cached
user before asking the backend whether the identity still exists.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from civicportal.config import settings
from civicportal.schemas.user import PublicUser


class TokenError(Exception):
    """Raised when token creation/verification fails."""


class TokenSigner:
    """Issues and verifies session tokens with one secret/algorithm."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ):
        self.secret = secret or settings.session_secret
        self.algorithm = algorithm or settings.session_algorithm
        self.expire_minutes = expire_minutes or settings.session_expire_minutes

    def issue(self, user: PublicUser) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "role": user.role.value,
            "type": "session",
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict:
        """Verify and decode a session token.

        Returns the payload dict on success.
        Raises TokenError on failure.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenError("Session has expired")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid session token: {e}")
        if payload.get("type") != "session" or not payload.get("sub"):
            raise TokenError("Not a session token")
        return payload
