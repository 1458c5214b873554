from civicportal.schemas.issue import ISSUE_STATUSES, Issue, IssueReport
from civicportal.schemas.user import (
    Identity,
    LoginRequest,
    ProfileUpdate,
    PublicUser,
    RegisterRequest,
    Role,
    Session,
)

__all__ = [
    "ISSUE_STATUSES",
    "Identity",
    "Issue",
    "IssueReport",
    "LoginRequest",
    "ProfileUpdate",
    "PublicUser",
    "RegisterRequest",
    "Role",
    "Session",
]
