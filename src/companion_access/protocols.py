"""Collaborator contracts.

The services only talk to the outside world through these protocols.
``CoParentApiClient`` implements all of them over HTTP; tests substitute
mocks. Implementations signal failure by raising; the services convert
any failure into the error string on the store.
"""

from typing import Any, Dict, Optional, Protocol

from .schemas.access import AccessGrant, CoParent, CoParentInviteRequest, Companion, PendingInvite


class AccessApi(Protocol):
    async def fetch_access_for_caller(self, caller_id: str) -> list[AccessGrant]:
        """Every grant visible to the caller, at most one with companion_id None."""
        ...

    async def fetch_access_for_companion(self, companion_id: str) -> list[AccessGrant]:
        """Every caregiver link on one companion."""
        ...


class InviteApi(Protocol):
    async def fetch_pending_invites(self) -> list[PendingInvite]: ...

    async def accept_invite(self, token: str) -> Optional[AccessGrant]: ...

    async def decline_invite(self, token: str) -> None: ...


class RosterApi(Protocol):
    async def list_co_parents(self, companion_id: str) -> list[CoParent]: ...

    async def send_invite(self, request: CoParentInviteRequest) -> Dict[str, Any]: ...

    async def update_permissions(
        self,
        companion_id: str,
        co_parent_id: str,
        permissions: Dict[str, Any],
    ) -> Dict[str, Any]: ...

    async def remove_co_parent(self, companion_id: str, co_parent_id: str) -> None: ...

    async def promote_to_primary(self, companion_id: str, co_parent_id: str) -> None: ...


class CompanionDirectory(Protocol):
    def list_companions(self) -> list[Companion]:
        """Read-only identity source; this package never creates companions."""
        ...
