"""Role ordering for companion lists.

Primary owners first, then co-parents, then viewers; unrecognized or missing
roles go last. Sorting is stable so companions that tie keep the order the
caller gave them and do not jump around between renders.
"""

from __future__ import annotations

from operator import attrgetter
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional, TypeVar, Union

from ..schemas.access import Role, RoleKind
from .permission_service import resolve_access

if TYPE_CHECKING:
    from .access_store import AccessState

T = TypeVar("T")

_ROLE_PRIORITY: Dict[RoleKind, int] = {
    RoleKind.PRIMARY_OWNER: 0,
    RoleKind.COPARENT: 1,
    RoleKind.VIEWER: 2,
}

# Larger than every known role.
UNRANKED_PRIORITY = len(_ROLE_PRIORITY)


def priority(role: Union[Role, str, None]) -> int:
    """Rank *role*; lower sorts first. Never raises."""
    parsed = role if isinstance(role, Role) else Role.parse(role)
    if parsed is None:
        return UNRANKED_PRIORITY
    return _ROLE_PRIORITY.get(parsed.kind, UNRANKED_PRIORITY)


def role_for(state: AccessState, companion_id: Optional[str]) -> Optional[str]:
    """The role the caller holds for *companion_id* through the lookup chain."""
    resolved = resolve_access(state, companion_id)
    return resolved.role if resolved is not None else None


def sort_by_role(
    state: AccessState,
    companions: Iterable[T],
    key: Callable[[T], Optional[str]] = attrgetter("id"),
) -> list[T]:
    """Return *companions* ordered by the caller's role on each.

    Args:
        state: Current access snapshot.
        companions: Items to order; not modified.
        key: Extracts the companion id from an item.
    """
    return sorted(companions, key=lambda item: priority(role_for(state, key(item))))
