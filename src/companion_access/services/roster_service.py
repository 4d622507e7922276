"""Co-parent roster — who else cares for a companion, and with what permissions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..exceptions import describe_error
from ..protocols import RosterApi
from ..schemas.access import CoParent, CoParentInviteRequest
from .access_store import (
    AccessRecordStore,
    CoParentRemoved,
    CoParentSelected,
    CoParentsSet,
    CoParentUpserted,
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    Slice,
)

logger = logging.getLogger(__name__)


class RosterService:
    """Loads and edits the co-parent roster held on the store's ``loading`` slice."""

    def __init__(self, store: AccessRecordStore, api: RosterApi) -> None:
        self.store = store
        self.api = api

    # ----- reads -------------------------------------------------------------

    @property
    def co_parents(self) -> list[CoParent]:
        return list(self.store.state.co_parents)

    def get_co_parent(self, co_parent_id: str) -> Optional[CoParent]:
        return next((cp for cp in self.store.state.co_parents if cp.id == co_parent_id), None)

    @property
    def selected_co_parent(self) -> Optional[CoParent]:
        selected = self.store.state.selected_co_parent_id
        return self.get_co_parent(selected) if selected else None

    def accepted_co_parents(self) -> list[CoParent]:
        return [cp for cp in self.store.state.co_parents if (cp.status or "").lower() == "accepted"]

    def pending_co_parents(self) -> list[CoParent]:
        return [cp for cp in self.store.state.co_parents if (cp.status or "").lower() == "pending"]

    def select_co_parent(self, co_parent_id: Optional[str]) -> None:
        self.store.dispatch(CoParentSelected(co_parent_id))

    # ----- network operations ----------------------------------------------

    async def fetch_co_parents(self, companion_id: str) -> list[CoParent]:
        self.store.dispatch(FetchStarted(Slice.ROSTER))
        try:
            co_parents = await self.api.list_co_parents(companion_id)
        except Exception as exc:
            self._fail(exc, "Failed to fetch co-parents")
            return self.co_parents

        self.store.dispatch(CoParentsSet(tuple(co_parents)))
        self.store.dispatch(FetchSucceeded(Slice.ROSTER))
        return list(co_parents)

    async def add_co_parent(self, request: CoParentInviteRequest) -> Optional[CoParent]:
        """Invite a co-parent and add (or refresh) their roster entry."""
        self.store.dispatch(FetchStarted(Slice.ROSTER))
        try:
            response = await self.api.send_invite(request)
        except Exception as exc:
            self._fail(exc, "Failed to send co-parent invite")
            return None

        co_parent = _co_parent_from_invite(request, response or {})
        self.store.dispatch(CoParentUpserted(co_parent))
        self.store.dispatch(FetchSucceeded(Slice.ROSTER))
        logger.info("Co-parent invited", extra={"companion_id": request.companion_id})
        return co_parent

    async def update_co_parent_permissions(
        self,
        companion_id: str,
        co_parent_id: str,
        permissions: Dict[str, Any],
    ) -> Optional[CoParent]:
        """Replace a co-parent's permission map.

        An empty API response keeps the stored entry, with *permissions*
        applied. Unknown co-parent ids leave the roster unchanged.
        """
        self.store.dispatch(FetchStarted(Slice.ROSTER))
        try:
            response = await self.api.update_permissions(companion_id, co_parent_id, permissions)
        except Exception as exc:
            self._fail(exc, "Failed to update co-parent permissions")
            return None

        existing = self.get_co_parent(co_parent_id)
        if response:
            base = existing.model_dump() if existing is not None else {}
            fresh = CoParent.model_validate({"id": co_parent_id, **response}).model_dump(exclude_unset=True)
            updated = CoParent.model_validate({**base, "permissions": dict(permissions), **fresh})
        elif existing is not None:
            updated = existing.model_copy(update={"permissions": dict(permissions)})
        else:
            updated = None

        if updated is not None:
            self.store.dispatch(CoParentUpserted(updated, append_if_missing=False))
        self.store.dispatch(FetchSucceeded(Slice.ROSTER))
        return updated

    async def delete_co_parent(self, companion_id: str, co_parent_id: str) -> bool:
        self.store.dispatch(FetchStarted(Slice.ROSTER))
        try:
            await self.api.remove_co_parent(companion_id, co_parent_id)
        except Exception as exc:
            self._fail(exc, "Failed to remove co-parent")
            return False

        self.store.dispatch(CoParentRemoved(co_parent_id))
        self.store.dispatch(FetchSucceeded(Slice.ROSTER))
        logger.info("Co-parent removed", extra={"companion_id": companion_id})
        return True

    async def promote_co_parent_to_primary(self, companion_id: str, co_parent_id: str) -> bool:
        """Hand primary ownership to a co-parent. Grants change server-side only;
        refresh access afterwards to see the new roles."""
        self.store.dispatch(FetchStarted(Slice.ROSTER))
        try:
            await self.api.promote_to_primary(companion_id, co_parent_id)
        except Exception as exc:
            self._fail(exc, "Failed to promote co-parent")
            return False

        self.store.dispatch(FetchSucceeded(Slice.ROSTER))
        logger.info("Co-parent promoted to primary", extra={"companion_id": companion_id})
        return True

    def _fail(self, exc: Exception, fallback: str) -> None:
        message = describe_error(exc, fallback)
        logger.warning("%s: %s", fallback, message)
        self.store.dispatch(FetchFailed(Slice.ROSTER, message))


def _co_parent_from_invite(request: CoParentInviteRequest, response: Dict[str, Any]) -> CoParent:
    """Fill the roster entry from the request where the API response is silent."""
    first_name, last_name = request.split_name()
    payload: Dict[str, Any] = {
        "id": response.get("id") or response.get("parentId") or request.email,
        "companionId": request.companion_id,
        "email": request.email,
        "firstName": first_name,
        "lastName": last_name,
        "phoneNumber": request.phone_number,
        "status": "pending",
    }
    payload.update({k: v for k, v in response.items() if v is not None})
    return CoParent.model_validate(payload)
