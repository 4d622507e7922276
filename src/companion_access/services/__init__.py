"""Access-control services."""

from .access_service import AccessService
from .access_store import AccessRecordStore, AccessState, Slice
from .authorization_gate import AuthorizationGate, logging_notifier, platform_notifier
from .invite_service import InviteLifecycle, InviteState
from .permission_service import AccessSource, ResolvedAccess, authorize, resolve_access
from .role_ranking import UNRANKED_PRIORITY, priority, sort_by_role
from .roster_service import RosterService

__all__ = [
    "AccessRecordStore",
    "AccessService",
    "AccessSource",
    "AccessState",
    "AuthorizationGate",
    "InviteLifecycle",
    "InviteState",
    "ResolvedAccess",
    "RosterService",
    "Slice",
    "UNRANKED_PRIORITY",
    "authorize",
    "logging_notifier",
    "platform_notifier",
    "priority",
    "resolve_access",
    "sort_by_role",
]
