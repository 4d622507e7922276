"""Access refresh — loads the caller's grants into the store."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from ..exceptions import MissingCallerError, describe_error
from ..protocols import AccessApi, CompanionDirectory
from ..schemas.access import AccessGrant
from .access_store import (
    AccessRecordStore,
    AccessSnapshotApplied,
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    Slice,
)

logger = logging.getLogger(__name__)


class AccessService:
    """Fetches access snapshots and merges them into an AccessRecordStore.

    Concurrent refreshes are not coordinated: each applies its snapshot when
    it completes, so the later completion wins for per-companion grants.
    """

    def __init__(
        self,
        store: AccessRecordStore,
        api: AccessApi,
        directory: Optional[CompanionDirectory] = None,
    ) -> None:
        self.store = store
        self.api = api
        self.directory = directory

    async def refresh_access(self, companion_ids: Optional[Iterable[str]] = None) -> list[AccessGrant]:
        """Fetch the caller's grants and apply them as one snapshot.

        When the caller-wide listing is empty, each known companion is asked
        for its links instead (concurrently) and the caller's links are kept.

        Args:
            companion_ids: Companions to fall back on. Defaults to the
                companion directory's listing, if one was given.

        Returns:
            The grants that were applied; empty on failure.
        """
        self.store.dispatch(FetchStarted(Slice.ACCESS))
        try:
            grants = await self._load(companion_ids)
        except Exception as exc:
            message = describe_error(exc, "Failed to fetch companion access")
            logger.warning("Access refresh failed: %s", message)
            self.store.dispatch(FetchFailed(Slice.ACCESS, message))
            return []

        self.store.dispatch(AccessSnapshotApplied(tuple(grants)))
        self.store.dispatch(FetchSucceeded(Slice.ACCESS))
        logger.info("Applied access snapshot with %d grants", len(grants))
        return grants

    async def _load(self, companion_ids: Optional[Iterable[str]]) -> list[AccessGrant]:
        caller_id = self.store.get_caller()
        if not caller_id:
            raise MissingCallerError()

        grants = list(await self.api.fetch_access_for_caller(caller_id))
        if grants:
            return grants

        ids = self._fallback_ids(companion_ids)
        if not ids:
            return []

        logger.debug("Caller listing empty, querying %d companions", len(ids))
        per_companion = await asyncio.gather(
            *(self.api.fetch_access_for_companion(cid) for cid in ids)
        )
        return [
            grant
            for links in per_companion
            for grant in links
            if grant.parent_id in (None, caller_id)
        ]

    def _fallback_ids(self, companion_ids: Optional[Iterable[str]]) -> list[str]:
        if companion_ids is not None:
            return [cid for cid in companion_ids if cid]
        if self.directory is None:
            return []
        return [c.id for c in self.directory.list_companions()]
