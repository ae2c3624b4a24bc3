from datetime import datetime
from enum import Enum
from typing import Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cbcloud.shared.timeutils import as_utc, utcnow


class AccessLevel(str, Enum):
    """Product and clipboard access tiers, ordered read < write < admin."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return LEVEL_RANKS[self.value]


class ShareLevel(str, Enum):
    """Levels that can be granted on a single clipboard entry."""

    READ = "read"
    WRITE = "write"

    @property
    def rank(self) -> int:
        return LEVEL_RANKS[self.value]


class FamilyRole(str, Enum):
    """Family group roles, ordered guest < member < admin < owner."""

    GUEST = "guest"
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return FAMILY_ROLE_RANKS[self.value]


LEVEL_RANKS: dict[str, int] = {"read": 1, "write": 2, "admin": 3}
FAMILY_ROLE_RANKS: dict[str, int] = {"guest": 0, "member": 1, "admin": 2, "owner": 3}


class FamilyPermission(Enum):
    INVITE = "can_invite"
    MANAGE_MEMBERS = "can_manage_members"
    VIEW_ALL = "can_view_all"
    SHARE = "can_share"


FAMILY_ROLE_PERMISSIONS: dict[FamilyRole, Set[FamilyPermission]] = {
    FamilyRole.OWNER: {
        FamilyPermission.INVITE,
        FamilyPermission.MANAGE_MEMBERS,
        FamilyPermission.VIEW_ALL,
        FamilyPermission.SHARE,
    },
    FamilyRole.ADMIN: {
        FamilyPermission.INVITE,
        FamilyPermission.MANAGE_MEMBERS,
        FamilyPermission.VIEW_ALL,
        FamilyPermission.SHARE,
    },
    FamilyRole.MEMBER: {
        FamilyPermission.VIEW_ALL,
        FamilyPermission.SHARE,
    },
    FamilyRole.GUEST: set(),
}


class DenyReason(str, Enum):
    NOT_FOUND = "not_found"
    NO_ACCESS = "no_access"
    EXPIRED = "expired"
    INSUFFICIENT_LEVEL = "insufficient_level"


class GrantSource(str, Enum):
    PUBLIC = "public"
    OWNER = "owner"
    GRANT = "grant"


class AccessDecision(BaseModel):
    """Outcome of an access check.

    ``level`` is the effective level (or role) on allow, and the best level
    the principal holds on an ``insufficient_level`` deny.
    """

    model_config = ConfigDict(frozen=True)

    allowed: bool
    level: Optional[str] = None
    source: Optional[GrantSource] = None
    reason: Optional[DenyReason] = None

    @classmethod
    def allow(cls, level: str, source: GrantSource) -> "AccessDecision":
        return cls(allowed=True, level=level, source=source)

    @classmethod
    def deny(cls, reason: DenyReason, level: Optional[str] = None) -> "AccessDecision":
        return cls(allowed=False, level=level, reason=reason)


class _Grant(BaseModel):
    @field_validator("*", mode="after")
    @classmethod
    def _utc(cls, value):
        return as_utc(value) if isinstance(value, datetime) else value


class ProductAccessEntry(_Grant):
    """A product grant recorded on the user document."""

    product_id: str
    product_name: Optional[str] = None
    level: AccessLevel = AccessLevel.READ
    granted_by: Optional[str] = None
    granted_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    active: bool = True

    def is_current(self, now: datetime) -> bool:
        return self.active and (self.expires_at is None or self.expires_at > now)


class ProductMember(_Grant):
    user_id: str
    level: AccessLevel = AccessLevel.READ
    joined_at: datetime = Field(default_factory=utcnow)


class ProductInvitation(_Grant):
    user_id: str
    level: AccessLevel = AccessLevel.READ
    invited_by: str
    invited_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    message: Optional[str] = None


class EntryShare(_Grant):
    user_id: str
    level: ShareLevel = ShareLevel.READ
    granted_at: datetime = Field(default_factory=utcnow)


class FamilyPermissions(BaseModel):
    can_invite: bool = False
    can_manage_members: bool = False
    can_view_all: bool = False
    can_share: bool = False


class FamilyMember(_Grant):
    user_id: str
    role: FamilyRole = FamilyRole.MEMBER
    permissions: FamilyPermissions = Field(default_factory=FamilyPermissions)
    joined_at: datetime = Field(default_factory=utcnow)
    invited_by: Optional[str] = None


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class FamilyInvitation(_Grant):
    id: str
    email: str
    role: FamilyRole = FamilyRole.MEMBER
    invited_by: str
    invited_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    message: Optional[str] = None
    status: InvitationStatus = InvitationStatus.PENDING
