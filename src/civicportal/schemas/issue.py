"""Pydantic schema for issues as served by the issues collection.

Only the fields the access rules and list filters need are typed;
anything else the backend sends (photos, upvotes, feedback) is kept
as extra data and passed through untouched.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Status values as stored by the backend (mixed case is historical)
ISSUE_STATUSES = (
    "submitted",
    "Pending",
    "acknowledged",
    "in-progress",
    "Resolved",
    "closed",
)

PRIORITY_LEVELS = ("low", "medium", "high", "critical")


class Issue(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: Union[int, str]
    title: str = ""
    description: str = ""
    location: Union[str, dict[str, Any], None] = None
    category_id: Optional[Union[int, str]] = None
    user_id: Optional[Union[int, str]] = None
    user_name: Optional[str] = None
    department_id: Optional[Union[int, str]] = None
    assigned_to: Optional[Union[int, str]] = None
    status: str = "Pending"
    priority: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def location_text(self) -> str:
        """Location as plain text; object locations carry an address."""
        if isinstance(self.location, str):
            return self.location
        if isinstance(self.location, dict):
            return str(self.location.get("address") or "")
        return ""


class IssueReport(BaseModel):
    """A citizen's new report. Ownership and status are stamped by the
    service, never taken from the caller."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    category_id: Optional[Union[int, str]] = None
    priority: str = "medium"
    department_id: Optional[Union[int, str]] = None
