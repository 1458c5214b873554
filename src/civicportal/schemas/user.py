"""Pydantic schemas for identities and sessions.

Learn: The REST backend speaks camelCase JSON (createdAt, departmentId),
Python code uses snake_case. alias_generator=to_camel plus
populate_by_name lets the same model accept both and serialize back to
the wire format with by_alias=True.

Identity is the full stored record and is only ever handled inside the
credential service. Everything that leaves it is a PublicUser, which
has no field for the password secret at all, so a sanitized user
cannot carry one by construction.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

UserId = Union[int, str]


class Role(str, Enum):
    CITIZEN = "citizen"
    ADMIN = "admin"


# ─── Stored identities ───────────────────────────────────


class PublicUser(BaseModel):
    """Sanitized identity: safe to persist locally and show in the UI."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: UserId
    name: str = ""
    email: str
    phone: str = ""
    role: Role = Role.CITIZEN
    location: str = ""
    address: str = ""
    department_id: Optional[UserId] = None
    is_verified: bool = False
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_wire(self) -> dict:
        """camelCase JSON-ready dict, as stored by the backend."""
        return self.model_dump(mode="json", by_alias=True)


class Identity(PublicUser):
    """Full identity record including the password hash."""

    password_hash: Optional[str] = None

    def sanitize(self) -> PublicUser:
        return PublicUser.model_validate(self.model_dump(exclude={"password_hash"}))


class Session(BaseModel):
    """A sanitized user plus the signed session token."""

    user: PublicUser
    token: str


# ─── Requests ────────────────────────────────────────────


class RegisterRequest(BaseModel):
    """Registration form. All fields are required; the service reports
    the first missing one by name."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None

    def changes(self) -> dict:
        """Only the fields that were actually provided, stripped."""
        return {
            key: value.strip()
            for key, value in self.model_dump(exclude_none=True, by_alias=True).items()
        }
