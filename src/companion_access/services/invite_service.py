"""Invite lifecycle — pending invitations and their accept/decline outcomes.

Per token:
    PENDING  --accept ok-->  ACCEPTED  (invite removed, grant upserted)
    PENDING  --decline ok--> DECLINED  (invite removed, no grant)
    PENDING  --call fails--> PENDING   (error stored, invite kept)

Accepting or declining a token that is no longer pending, or that is
already being resolved, does nothing and makes no network call.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from ..exceptions import describe_error
from ..protocols import InviteApi
from ..schemas.access import AccessGrant, PendingInvite
from .access_store import (
    AccessRecordStore,
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    GrantUpserted,
    InviteRemoved,
    PendingInvitesSet,
    Slice,
)

logger = logging.getLogger(__name__)


class InviteState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class InviteLifecycle:
    """Drives invites through their state machine against an InviteApi."""

    def __init__(self, store: AccessRecordStore, api: InviteApi) -> None:
        self.store = store
        self.api = api
        self._in_flight: set[str] = set()

    def state_of(self, token: str) -> InviteState:
        if token in self._in_flight:
            return InviteState.RESOLVING
        if self.store.has_pending_invite(token):
            return InviteState.PENDING
        return InviteState.RESOLVED

    async def refresh(self) -> list[PendingInvite]:
        """Replace the inbox with the collaborator's current pending list."""
        self.store.dispatch(FetchStarted(Slice.INVITES))
        try:
            invites = await self.api.fetch_pending_invites()
        except Exception as exc:
            self._fail(exc, "Failed to fetch pending invites")
            return self.store.get_pending_invites()

        self.store.dispatch(PendingInvitesSet(tuple(invites)))
        self.store.dispatch(FetchSucceeded(Slice.INVITES))
        logger.info("Loaded %d pending invites", len(invites))
        return list(invites)

    async def accept(self, token: str) -> Optional[AccessGrant]:
        """Accept *token*; returns the stored grant, or None if nothing changed."""
        invite = self._claim(token)
        if invite is None:
            return None

        try:
            self.store.dispatch(FetchStarted(Slice.INVITES))
            try:
                accepted = await self.api.accept_invite(token)
            except Exception as exc:
                self._fail(exc, "Failed to accept invite")
                return None

            self.store.dispatch(InviteRemoved(token))
            grant = self._store_grant(invite, accepted)
            self.store.dispatch(FetchSucceeded(Slice.INVITES))
            logger.info("Invite accepted", extra={"companion_id": invite.target_id})
            return grant
        finally:
            self._in_flight.discard(token)

    async def decline(self, token: str) -> bool:
        """Decline *token*; returns True if the invite was removed by this call."""
        invite = self._claim(token)
        if invite is None:
            return False

        try:
            self.store.dispatch(FetchStarted(Slice.INVITES))
            try:
                await self.api.decline_invite(token)
            except Exception as exc:
                self._fail(exc, "Failed to decline invite")
                return False

            self.store.dispatch(InviteRemoved(token))
            self.store.dispatch(FetchSucceeded(Slice.INVITES))
            logger.info("Invite declined", extra={"companion_id": invite.target_id})
            return True
        finally:
            self._in_flight.discard(token)

    def _claim(self, token: str) -> Optional[PendingInvite]:
        """Mark *token* as resolving; None means it is stale or already in flight."""
        if token in self._in_flight:
            logger.debug("Invite already being resolved")
            return None
        invite = self.store.get_invite(token)
        if invite is None:
            logger.debug("Ignoring invite that is no longer pending")
            return None
        self._in_flight.add(token)
        return invite

    def _store_grant(self, invite: PendingInvite, accepted: Optional[AccessGrant]) -> Optional[AccessGrant]:
        target_id = invite.target_id
        if not target_id and accepted is not None:
            target_id = accepted.companion_id
        if not target_id:
            logger.warning("Accepted invite names no companion or organisation; no grant stored")
            return None

        # The invite's role is what was offered; the API response fills gaps.
        role = invite.role
        permissions = invite.permissions
        if accepted is not None:
            role = role or accepted.role
            if accepted.permissions is not None:
                permissions = accepted.permissions
        self.store.dispatch(GrantUpserted(target_id, role, permissions))
        return self.store.get_grant(target_id)

    def _fail(self, exc: Exception, fallback: str) -> None:
        message = describe_error(exc, fallback)
        logger.warning("%s: %s", fallback, message)
        self.store.dispatch(FetchFailed(Slice.INVITES, message))
