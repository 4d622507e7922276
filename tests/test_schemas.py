"""Tests for wire models and role parsing."""

import pytest
from pydantic import ValidationError

from companion_access.schemas.access import (
    AccessGrant,
    CoParentInviteRequest,
    PendingInvite,
    Role,
    RoleKind,
    is_primary_role,
    normalize_link_status,
)


class TestRole:
    @pytest.mark.parametrize("raw, kind", [
        ("PRIMARY_OWNER", RoleKind.PRIMARY_OWNER),
        ("primary_owner", RoleKind.PRIMARY_OWNER),
        ("CoParent", RoleKind.COPARENT),
        ("CO-PARENT", RoleKind.COPARENT),
        ("viewer", RoleKind.VIEWER),
        ("GROOMER", RoleKind.OTHER),
    ])
    def test_parse(self, raw, kind):
        role = Role.parse(raw)
        assert role.kind == kind
        assert role.raw == raw

    @pytest.mark.parametrize("raw", [None, ""])
    def test_parse_empty(self, raw):
        assert Role.parse(raw) is None

    @pytest.mark.parametrize("raw, expected", [
        ("PRIMARY_OWNER", True),
        ("primary", True),
        ("Primary_Parent", True),
        ("COPARENT", False),
        ("VIEWER", False),
        (None, False),
    ])
    def test_is_primary(self, raw, expected):
        assert is_primary_role(raw) is expected


class TestLinkStatus:
    @pytest.mark.parametrize("raw, expected", [
        ("ACTIVE", "accepted"),
        ("accepted", "accepted"),
        ("INVITED", "pending"),
        ("Pending", "pending"),
        ("REVOKED", "revoked"),
        (None, None),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_link_status(raw) == expected


class TestWireModels:
    def test_grant_reads_camel_case(self):
        g = AccessGrant.model_validate({
            "companionId": "c1", "role": "VIEWER", "parentId": "p1",
            "status": "ACTIVE", "permissions": {"canViewVet": True}, "unexpected": 1,
        })
        assert g.companion_id == "c1"
        assert g.parent_id == "p1"
        assert g.status == "accepted"
        assert g.parsed_role.kind == RoleKind.VIEWER
        assert not g.is_default

    def test_grant_without_companion_is_default(self):
        assert AccessGrant(role="VIEWER").is_default

    def test_grants_are_immutable(self):
        g = AccessGrant(companion_id="c1", role="VIEWER")
        with pytest.raises(ValidationError):
            g.role = "PRIMARY_OWNER"

    def test_invite_token_required(self):
        with pytest.raises(ValidationError):
            PendingInvite(token="   ")

    def test_invite_target_prefers_companion(self):
        assert PendingInvite(token="t", companionId="c1", organisationId="o1").target_id == "c1"
        assert PendingInvite(token="t", organisationId="o1").target_id == "o1"
        assert PendingInvite(token="t").target_id is None

    @pytest.mark.parametrize("name, expected", [
        ("Sam", ("Sam", "")),
        ("Jamie Lee Curtis", ("Jamie", "Lee Curtis")),
        ("  Alex   Kim ", ("Alex", "Kim")),
    ])
    def test_split_name(self, name, expected):
        request = CoParentInviteRequest(candidate_name=name, email="a@b.c", companion_id="c1")
        assert request.split_name() == expected

    def test_invite_request_requires_email(self):
        with pytest.raises(ValidationError):
            CoParentInviteRequest(candidate_name="Sam", email=" ", companion_id="c1")
