"""Wire schemas for grants, invites and the co-parent roster."""

from .access import (
    PERMISSION_LABELS,
    AccessGrant,
    CoParent,
    CoParentInviteRequest,
    Companion,
    PendingInvite,
    PermissionKey,
    Role,
    RoleKind,
    is_primary_role,
    normalize_link_status,
)

__all__ = [
    "PERMISSION_LABELS",
    "AccessGrant",
    "CoParent",
    "CoParentInviteRequest",
    "Companion",
    "PendingInvite",
    "PermissionKey",
    "Role",
    "RoleKind",
    "is_primary_role",
    "normalize_link_status",
]
