"""Access record store — immutable state, pure reducer, thin dispatcher.

Every change to the caller's grants, invite inbox and co-parent roster is an
event. ``apply(state, event)`` returns the next ``AccessState`` without
touching the previous one; ``AccessRecordStore`` holds the current snapshot
and is the single owner that dispatches events against it.

Merge rules for access snapshots:
    - Grants with a companion id replace the stored grant for that id.
    - The global fallback cache (last_fetched_role / last_fetched_permissions)
      is overwritten on every snapshot from the first grant that carries a
      role, or the first grant if none does.
    - The default grant (companion_id None) is recorded once. Later snapshots
      never replace it, so a stale fetch cannot make it flicker.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from ..exceptions import InvalidGrantError
from ..schemas.access import AccessGrant, CoParent, PendingInvite

logger = logging.getLogger(__name__)


class Slice(str, Enum):
    """Independently tracked fetch categories. Values name the state flag."""
    ROSTER = "loading"
    INVITES = "invites_loading"
    ACCESS = "access_loading"


def _empty_map() -> Mapping[str, AccessGrant]:
    return MappingProxyType({})


@dataclass(frozen=True)
class AccessState:
    caller_id: Optional[str] = None
    access_by_companion_id: Mapping[str, AccessGrant] = field(default_factory=_empty_map)
    default_access: Optional[AccessGrant] = None
    last_fetched_role: Optional[str] = None
    last_fetched_permissions: Optional[Dict[str, Any]] = None
    pending_invites: Tuple[PendingInvite, ...] = ()
    co_parents: Tuple[CoParent, ...] = ()
    selected_co_parent_id: Optional[str] = None
    loading: bool = False
    invites_loading: bool = False
    access_loading: bool = False
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CallerSet:
    caller_id: Optional[str]


@dataclass(frozen=True)
class AccessSnapshotApplied:
    updates: Tuple[AccessGrant, ...]


@dataclass(frozen=True)
class GrantUpserted:
    companion_id: str
    role: Optional[str]
    permissions: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class GrantRemoved:
    companion_id: str


@dataclass(frozen=True)
class PendingInvitesSet:
    invites: Tuple[PendingInvite, ...]


@dataclass(frozen=True)
class InviteRemoved:
    token: str


@dataclass(frozen=True)
class CoParentsSet:
    co_parents: Tuple[CoParent, ...]


@dataclass(frozen=True)
class CoParentUpserted:
    co_parent: CoParent
    append_if_missing: bool = True


@dataclass(frozen=True)
class CoParentRemoved:
    co_parent_id: str


@dataclass(frozen=True)
class CoParentSelected:
    co_parent_id: Optional[str]


@dataclass(frozen=True)
class FetchStarted:
    slice: Slice


@dataclass(frozen=True)
class FetchSucceeded:
    slice: Slice


@dataclass(frozen=True)
class FetchFailed:
    slice: Slice
    message: str


@dataclass(frozen=True)
class ErrorCleared:
    pass


@dataclass(frozen=True)
class StateReset:
    pass


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

Reducer = Callable[[AccessState, Any], AccessState]
_REDUCERS: Dict[type, Reducer] = {}


def _reduces(event_type: type) -> Callable[[Reducer], Reducer]:
    def register(fn: Reducer) -> Reducer:
        _REDUCERS[event_type] = fn
        return fn
    return register


def apply(state: AccessState, event: Any) -> AccessState:
    """Return the state that results from applying *event* to *state*.

    Raises:
        TypeError: if *event* is not an access event.
        InvalidGrantError: if a grant upsert names no companion.
    """
    reducer = _REDUCERS.get(type(event))
    if reducer is None:
        raise TypeError(f"Unknown access event: {type(event).__name__}")
    return reducer(state, event)


@_reduces(CallerSet)
def _set_caller(state: AccessState, event: CallerSet) -> AccessState:
    return dataclasses.replace(state, caller_id=event.caller_id or None)


@_reduces(AccessSnapshotApplied)
def _apply_snapshot(state: AccessState, event: AccessSnapshotApplied) -> AccessState:
    updates = event.updates

    by_companion = dict(state.access_by_companion_id)
    for grant in updates:
        if grant.companion_id is not None:
            by_companion[grant.companion_id] = grant

    first = next((g for g in updates if g.role), updates[0] if updates else None)

    default_access = state.default_access
    if default_access is None:
        default_access = next((g for g in updates if g.companion_id is None), None)

    return dataclasses.replace(
        state,
        access_by_companion_id=MappingProxyType(by_companion),
        default_access=default_access,
        last_fetched_role=first.role if first else None,
        last_fetched_permissions=first.permissions if first else None,
    )


@_reduces(GrantUpserted)
def _upsert_grant(state: AccessState, event: GrantUpserted) -> AccessState:
    if not event.companion_id:
        raise InvalidGrantError()
    by_companion = dict(state.access_by_companion_id)
    by_companion[event.companion_id] = AccessGrant(
        companion_id=event.companion_id,
        role=event.role,
        permissions=event.permissions,
    )
    return dataclasses.replace(state, access_by_companion_id=MappingProxyType(by_companion))


@_reduces(GrantRemoved)
def _remove_grant(state: AccessState, event: GrantRemoved) -> AccessState:
    if event.companion_id not in state.access_by_companion_id:
        return state
    by_companion = {
        cid: grant for cid, grant in state.access_by_companion_id.items()
        if cid != event.companion_id
    }
    return dataclasses.replace(state, access_by_companion_id=MappingProxyType(by_companion))


@_reduces(PendingInvitesSet)
def _set_invites(state: AccessState, event: PendingInvitesSet) -> AccessState:
    return dataclasses.replace(state, pending_invites=tuple(event.invites))


@_reduces(InviteRemoved)
def _remove_invite(state: AccessState, event: InviteRemoved) -> AccessState:
    remaining = tuple(i for i in state.pending_invites if i.token != event.token)
    if len(remaining) == len(state.pending_invites):
        return state
    return dataclasses.replace(state, pending_invites=remaining)


@_reduces(CoParentsSet)
def _set_co_parents(state: AccessState, event: CoParentsSet) -> AccessState:
    return dataclasses.replace(state, co_parents=tuple(event.co_parents))


@_reduces(CoParentUpserted)
def _upsert_co_parent(state: AccessState, event: CoParentUpserted) -> AccessState:
    incoming = event.co_parent
    if any(cp.id == incoming.id for cp in state.co_parents):
        co_parents = tuple(incoming if cp.id == incoming.id else cp for cp in state.co_parents)
    elif event.append_if_missing:
        co_parents = state.co_parents + (incoming,)
    else:
        return state
    return dataclasses.replace(state, co_parents=co_parents)


@_reduces(CoParentRemoved)
def _remove_co_parent(state: AccessState, event: CoParentRemoved) -> AccessState:
    return dataclasses.replace(
        state,
        co_parents=tuple(cp for cp in state.co_parents if cp.id != event.co_parent_id),
    )


@_reduces(CoParentSelected)
def _select_co_parent(state: AccessState, event: CoParentSelected) -> AccessState:
    return dataclasses.replace(state, selected_co_parent_id=event.co_parent_id)


@_reduces(FetchStarted)
def _fetch_started(state: AccessState, event: FetchStarted) -> AccessState:
    return dataclasses.replace(state, **{event.slice.value: True})


@_reduces(FetchSucceeded)
def _fetch_succeeded(state: AccessState, event: FetchSucceeded) -> AccessState:
    return dataclasses.replace(state, **{event.slice.value: False})


@_reduces(FetchFailed)
def _fetch_failed(state: AccessState, event: FetchFailed) -> AccessState:
    return dataclasses.replace(state, error=event.message, **{event.slice.value: False})


@_reduces(ErrorCleared)
def _clear_error(state: AccessState, event: ErrorCleared) -> AccessState:
    return dataclasses.replace(state, error=None)


@_reduces(StateReset)
def _reset(state: AccessState, event: StateReset) -> AccessState:
    return AccessState()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class AccessRecordStore:
    """Holds the current AccessState and applies events to it.

    The store has a single logical owner; dispatch is synchronous and the
    previous snapshot is never modified, so readers holding an older
    ``state`` keep a consistent view.
    """

    def __init__(self, state: Optional[AccessState] = None) -> None:
        self._state = state if state is not None else AccessState()

    @property
    def state(self) -> AccessState:
        return self._state

    def dispatch(self, event: Any) -> AccessState:
        self._state = apply(self._state, event)
        logger.debug("Applied %s", type(event).__name__)
        return self._state

    # ----- mutations ---------------------------------------------------------

    def set_caller(self, caller_id: Optional[str]) -> None:
        self.dispatch(CallerSet(caller_id))

    def apply_access_snapshot(self, updates: Iterable[AccessGrant]) -> None:
        self.dispatch(AccessSnapshotApplied(tuple(updates)))

    def upsert_grant(
        self,
        companion_id: str,
        role: Optional[str],
        permissions: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.dispatch(GrantUpserted(companion_id, role, permissions))

    def remove_grant(self, companion_id: str) -> None:
        self.dispatch(GrantRemoved(companion_id))

    def set_pending_invites(self, invites: Iterable[PendingInvite]) -> None:
        self.dispatch(PendingInvitesSet(tuple(invites)))

    def remove_invite_by_token(self, token: str) -> None:
        self.dispatch(InviteRemoved(token))

    def clear_error(self) -> None:
        self.dispatch(ErrorCleared())

    def reset(self) -> None:
        """Drop everything; used on sign-out."""
        self.dispatch(StateReset())
        logger.info("Access state reset")

    # ----- reads -------------------------------------------------------------

    def get_caller(self) -> Optional[str]:
        return self._state.caller_id

    def get_grant(self, companion_id: Optional[str]) -> Optional[AccessGrant]:
        if not companion_id:
            return None
        return self._state.access_by_companion_id.get(companion_id)

    def get_default_grant(self) -> Optional[AccessGrant]:
        return self._state.default_access

    def get_pending_invites(self) -> list[PendingInvite]:
        return list(self._state.pending_invites)

    def has_pending_invite(self, token: str) -> bool:
        return any(i.token == token for i in self._state.pending_invites)

    def get_invite(self, token: str) -> Optional[PendingInvite]:
        return next((i for i in self._state.pending_invites if i.token == token), None)

    def get_error(self) -> Optional[str]:
        return self._state.error

    def is_loading(self, slice: Slice) -> bool:
        return bool(getattr(self._state, slice.value))
