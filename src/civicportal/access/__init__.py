from civicportal.access.policy import (
    ALL_DEPARTMENTS,
    REDACTED_REPORTER,
    can_assign,
    can_mutate_status,
    can_view_owner_details,
    can_view_user_details,
    default_department_scope,
    is_owner,
    reporter_label,
)

__all__ = [
    "ALL_DEPARTMENTS",
    "REDACTED_REPORTER",
    "can_assign",
    "can_mutate_status",
    "can_view_owner_details",
    "can_view_user_details",
    "default_department_scope",
    "is_owner",
    "reporter_label",
]
