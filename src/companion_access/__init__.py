"""Companion access control: grants, fallback resolution, invites and gating."""

from .schemas.access import AccessGrant, CoParent, Companion, PendingInvite, PermissionKey, Role, RoleKind
from .services import (
    AccessRecordStore,
    AccessService,
    AuthorizationGate,
    InviteLifecycle,
    RosterService,
    authorize,
    priority,
    sort_by_role,
)

__all__ = [
    "AccessGrant",
    "AccessRecordStore",
    "AccessService",
    "AuthorizationGate",
    "CoParent",
    "Companion",
    "InviteLifecycle",
    "PendingInvite",
    "PermissionKey",
    "Role",
    "RoleKind",
    "RosterService",
    "authorize",
    "priority",
    "sort_by_role",
]
