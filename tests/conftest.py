"""Shared fixtures for the companion-access test suite.

Collaborators are replaced with AsyncMock objects; nothing touches the
network. Settings are pinned through the environment before any package
import so a developer's .env cannot change test behavior.
"""

import os

os.environ["COMPANION_ACCESS_ENVIRONMENT"] = "development"
os.environ["COMPANION_ACCESS_LOG_FORMAT"] = "text"
os.environ["COMPANION_ACCESS_PLATFORM"] = "web"

from unittest.mock import AsyncMock, MagicMock

import pytest

from companion_access.schemas.access import AccessGrant, PendingInvite
from companion_access.services.access_store import AccessRecordStore

CALLER_ID = "parent-1"


def grant(companion_id=None, role=None, permissions=None, **extra) -> AccessGrant:
    """Build an AccessGrant with snake_case arguments."""
    return AccessGrant(companion_id=companion_id, role=role, permissions=permissions, **extra)


def invite(token, companion_id="c1", role="COPARENT", **extra) -> PendingInvite:
    return PendingInvite(token=token, companion_id=companion_id, role=role, **extra)


@pytest.fixture()
def store():
    """Store with an identified caller and nothing else."""
    s = AccessRecordStore()
    s.set_caller(CALLER_ID)
    return s


@pytest.fixture()
def anonymous_store():
    return AccessRecordStore()


@pytest.fixture()
def api():
    """Mock collaborator implementing every API protocol."""
    mock = MagicMock()
    mock.fetch_access_for_caller = AsyncMock(return_value=[])
    mock.fetch_access_for_companion = AsyncMock(return_value=[])
    mock.fetch_pending_invites = AsyncMock(return_value=[])
    mock.accept_invite = AsyncMock(return_value=None)
    mock.decline_invite = AsyncMock(return_value=None)
    mock.list_co_parents = AsyncMock(return_value=[])
    mock.send_invite = AsyncMock(return_value={})
    mock.update_permissions = AsyncMock(return_value={})
    mock.remove_co_parent = AsyncMock(return_value=None)
    mock.promote_to_primary = AsyncMock(return_value=None)
    return mock
