"""Permission checking — pure functions over an AccessState.

This is the ONE place where companion permission rules are defined.
Everything that gates an action goes through ``authorize``.

Design:
    - A grant is looked up through an ordered chain of layers:
      companion-specific grant → default grant → global fallback cache.
      The first layer that yields a grant decides; later layers are not
      consulted even if the winning grant denies.
    - A role containing "PRIMARY" allows every permission.
    - Any other role allows exactly the keys whose value is ``True``.
    - A grant without a permission map allows nothing.
    - No caller or no companion = no access.
    - Ids and keys that are not strings are malformed input = no access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from ..schemas.access import AccessGrant, is_primary_role

if TYPE_CHECKING:
    from .access_store import AccessState

logger = logging.getLogger(__name__)


class AccessSource(str, Enum):
    """Which lookup layer produced the effective grant."""
    COMPANION = "companion"
    DEFAULT = "default"
    GLOBAL_CACHE = "global_cache"


@dataclass(frozen=True)
class ResolvedAccess:
    role: Optional[str]
    permissions: Optional[Dict[str, Any]]
    source: AccessSource

    @property
    def is_primary(self) -> bool:
        return is_primary_role(self.role)

    def allows(self, permission_key: str) -> bool:
        if self.is_primary:
            return True
        if self.permissions is None:
            return False
        return self.permissions.get(permission_key) is True


def _from_grant(grant: AccessGrant, source: AccessSource) -> ResolvedAccess:
    return ResolvedAccess(role=grant.role, permissions=grant.permissions, source=source)


def _companion_layer(state: AccessState, companion_id: Optional[str]) -> Optional[ResolvedAccess]:
    if not isinstance(companion_id, str) or not companion_id:
        return None
    grant = state.access_by_companion_id.get(companion_id)
    return _from_grant(grant, AccessSource.COMPANION) if grant is not None else None


def _default_layer(state: AccessState, companion_id: Optional[str]) -> Optional[ResolvedAccess]:
    if state.default_access is None:
        return None
    return _from_grant(state.default_access, AccessSource.DEFAULT)


def _global_cache_layer(state: AccessState, companion_id: Optional[str]) -> Optional[ResolvedAccess]:
    if state.last_fetched_role is None:
        return None
    return ResolvedAccess(
        role=state.last_fetched_role,
        permissions=state.last_fetched_permissions,
        source=AccessSource.GLOBAL_CACHE,
    )


# Evaluated in order; the first non-None result wins.
LOOKUP_CHAIN: Tuple[Callable[[AccessState, Optional[str]], Optional[ResolvedAccess]], ...] = (
    _companion_layer,
    _default_layer,
    _global_cache_layer,
)


def resolve_access(state: AccessState, companion_id: Optional[str]) -> Optional[ResolvedAccess]:
    """Find the effective grant for *companion_id*, or None if no layer applies.

    Read-only: never fabricates a grant. With no companion id the chain
    starts at the default grant.
    """
    for lookup in LOOKUP_CHAIN:
        resolved = lookup(state, companion_id)
        if resolved is not None:
            return resolved
    return None


def authorize(
    state: AccessState,
    companion_id: Optional[str],
    permission_key: Optional[str] = None,
) -> bool:
    """Check whether the caller may exercise *permission_key* on *companion_id*.

    Args:
        state: Current access snapshot.
        companion_id: The companion the action targets.
        permission_key: Required permission, or None when the action only
            needs an identified caller and companion.

    Returns:
        True if permitted, False otherwise. Never raises.
    """
    if not isinstance(companion_id, str) or not companion_id or not state.caller_id:
        return False
    if permission_key is None:
        return True
    if not isinstance(permission_key, str):
        return False

    resolved = resolve_access(state, companion_id)
    if resolved is None:
        logger.debug("No grant applies", extra={"companion_id": companion_id})
        return False

    allowed = resolved.allows(permission_key)
    logger.debug(
        "Authorize %s on %s via %s: %s",
        permission_key, companion_id, resolved.source.value, allowed,
    )
    return allowed
