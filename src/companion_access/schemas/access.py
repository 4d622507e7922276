"""Access, invite and roster schemas.

Wire payloads use camelCase keys; every model also accepts the snake_case
field names so tests and Python callers can build them directly.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class RoleKind(str, Enum):
    """Roles the engine knows how to rank. OTHER keeps unrecognized roles usable."""
    PRIMARY_OWNER = "PRIMARY_OWNER"
    COPARENT = "COPARENT"
    VIEWER = "VIEWER"
    OTHER = "OTHER"


# Compacted (letters only, upper-cased) spelling → kind. "CO-PARENT",
# "co_parent" and "CoParent" all land on COPARENT.
_KNOWN_ROLES: Dict[str, RoleKind] = {
    "PRIMARYOWNER": RoleKind.PRIMARY_OWNER,
    "COPARENT": RoleKind.COPARENT,
    "VIEWER": RoleKind.VIEWER,
}

_NON_LETTERS = re.compile(r"[^A-Z]")


@dataclass(frozen=True)
class Role:
    """A parsed role string: a known kind, or OTHER with the raw text preserved."""

    kind: RoleKind
    raw: str

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["Role"]:
        if raw is None:
            return None
        text = str(raw).strip()
        if not text:
            return None
        compact = _NON_LETTERS.sub("", text.upper())
        return cls(kind=_KNOWN_ROLES.get(compact, RoleKind.OTHER), raw=text)


def is_primary_role(role: Optional[str]) -> bool:
    """Primary owners are recognized by substring, so PRIMARY_PARENT counts too."""
    if not role:
        return False
    return "PRIMARY" in str(role).upper()


def normalize_link_status(value: Optional[str]) -> Optional[str]:
    """Collapse the API's link status vocabulary to accepted/pending."""
    if value is None:
        return None
    lowered = str(value).strip().lower()
    if lowered in ("active", "accepted"):
        return "accepted"
    if lowered in ("invited", "pending"):
        return "pending"
    return lowered


class PermissionKey:
    """Permission keys issued by the parent-companion API."""
    COMPANION_PROFILE = "companionProfile"
    CAN_VIEW_VET = "canViewVet"
    CAN_EDIT = "canEdit"
    APPOINTMENTS = "appointments"
    CHAT_WITH_VET = "chatWithVet"
    TASKS = "tasks"
    EMERGENCY = "emergencyBasedPermissions"
    DOCUMENTS = "documents"
    PHOTOS = "photos"
    EXPENSES = "expenses"


# Human-readable names used in denial notices when the caller gives no label.
PERMISSION_LABELS: Dict[str, str] = {
    PermissionKey.COMPANION_PROFILE: "companion profile",
    PermissionKey.CAN_VIEW_VET: "vet records",
    PermissionKey.CAN_EDIT: "editing",
    PermissionKey.APPOINTMENTS: "appointments",
    PermissionKey.CHAT_WITH_VET: "chat with vet",
    PermissionKey.TASKS: "tasks",
    PermissionKey.EMERGENCY: "emergency services",
    PermissionKey.DOCUMENTS: "documents",
    PermissionKey.PHOTOS: "photos",
    PermissionKey.EXPENSES: "expenses",
}


class WireModel(BaseModel):
    """Base for immutable API payloads."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Companion(WireModel):
    """A pet. Only the id matters to access resolution."""
    id: str
    name: Optional[str] = None
    profile_image: Optional[str] = None


class AccessGrant(WireModel):
    """Role and permission map for one companion, or the default when companion_id is None."""
    companion_id: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[Dict[str, Any]] = None
    parent_id: Optional[str] = None
    status: Optional[str] = None

    @field_validator('status')
    @classmethod
    def normalize_status(cls, v: Optional[str]) -> Optional[str]:
        return normalize_link_status(v)

    @property
    def parsed_role(self) -> Optional[Role]:
        return Role.parse(self.role)

    @property
    def is_default(self) -> bool:
        return self.companion_id is None


class PendingInvite(WireModel):
    """An invitation waiting for the caller to accept or decline."""
    token: str
    companion_id: Optional[str] = None
    companion_name: Optional[str] = None
    organisation_id: Optional[str] = None
    inviter_id: Optional[str] = None
    inviter_name: Optional[str] = None
    inviter_email: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[Dict[str, Any]] = None
    relationship: Optional[str] = None
    employment_type: Optional[str] = None

    @field_validator('token')
    @classmethod
    def validate_token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Invite token cannot be empty")
        return v

    @property
    def target_id(self) -> Optional[str]:
        """The companion (or organisation) an accepted grant is stored under."""
        return self.companion_id or self.organisation_id


class CoParent(WireModel):
    """One caregiver linked to a companion, as shown in the roster."""
    id: str
    parent_id: Optional[str] = None
    companion_id: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    permissions: Optional[Dict[str, Any]] = None

    @field_validator('status')
    @classmethod
    def normalize_status(cls, v: Optional[str]) -> Optional[str]:
        return normalize_link_status(v)


class CoParentInviteRequest(WireModel):
    """Request to invite a new co-parent to a companion."""
    candidate_name: str
    email: str
    companion_id: str
    phone_number: Optional[str] = None

    @field_validator('candidate_name', 'email')
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be empty")
        return v

    def split_name(self) -> tuple[str, str]:
        """First word is the first name, the rest is the last name."""
        first, _, last = self.candidate_name.partition(" ")
        return first, last.strip()
