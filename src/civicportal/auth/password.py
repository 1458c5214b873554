"""Password hashing utilities.

Learn: Uses bcrypt for password hashing. bcrypt generates and embeds a
random salt in every hash ("$2b$<rounds>$<salt><digest>"), and checkpw
compares in constant time. The plain password never reaches the
identity collection; only the hash is stored.
"""

from typing import Optional

import bcrypt

from civicportal.config import settings


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt.

    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored hash.

    Records without a hash (or with something that is not a bcrypt
    hash) never match.
    """
    if not password_hash:
        return False
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False
