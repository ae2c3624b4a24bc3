# src/cbcloud/domains/family/models.py
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from cbcloud.core.database import from_json, to_json
from cbcloud.core.settings import settings as app_settings
from cbcloud.domains.users.models import EMAIL_PATTERN, UserSummary
from cbcloud.shared.access.models import (
    FamilyInvitation,
    FamilyMember,
    FamilyPermissions,
    FamilyRole,
    InvitationStatus,
)
from cbcloud.shared.access.services import default_permissions
from cbcloud.shared.timeutils import as_utc


class FamilyPrivacy(str, Enum):
    PRIVATE = "private"
    FAMILY_ONLY = "family-only"
    FRIENDS_OF_FAMILY = "friends-of-family"


class FamilySettings(BaseModel):
    privacy: FamilyPrivacy = FamilyPrivacy.FAMILY_ONLY
    allow_invites: bool = True
    require_approval: bool = True
    max_members: int = Field(
        default_factory=lambda: app_settings.DEFAULT_FAMILY_MAX_MEMBERS, ge=1
    )


class FamilyGroup(BaseModel):
    """Family group document. The owner is listed in ``members`` with role owner."""

    id: str
    name: str
    description: Optional[str] = None
    owner_id: str
    invite_code: str
    members: List[FamilyMember] = Field(default_factory=list)
    pending_invitations: List[FamilyInvitation] = Field(default_factory=list)
    settings: FamilySettings = Field(default_factory=FamilySettings)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_prisma(cls, record: Any) -> "FamilyGroup":
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            owner_id=record.ownerId,
            invite_code=record.inviteCode,
            members=from_json(record.members, []),
            pending_invitations=from_json(getattr(record, "pendingInvitations", None), []),
            settings=from_json(getattr(record, "settings", None), {}) or {},
            created_at=as_utc(getattr(record, "createdAt", None)),
            updated_at=as_utc(getattr(record, "updatedAt", None)),
        )

    def to_prisma(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "ownerId": self.owner_id,
            "members": to_json(self.members),
            "memberIds": [m.user_id for m in self.members],
            "pendingInvitations": to_json(self.pending_invitations),
            "settings": to_json(self.settings),
        }

    @property
    def is_full(self) -> bool:
        return len(self.members) >= self.settings.max_members

    @property
    def can_accept_members(self) -> bool:
        return not self.is_full and self.settings.allow_invites

    def member(self, user_id: str) -> Optional[FamilyMember]:
        return next((m for m in self.members if m.user_id == user_id), None)

    def member_ranks(self) -> dict[str, int]:
        return {m.user_id: m.role.rank for m in self.members}

    def pending_invitation(self, email: str) -> Optional[FamilyInvitation]:
        email = email.lower()
        return next(
            (
                i
                for i in self.pending_invitations
                if i.email == email and i.status == InvitationStatus.PENDING
            ),
            None,
        )

    def add_member(
        self, user_id: str, role: FamilyRole, invited_by: Optional[str] = None
    ) -> FamilyMember:
        member = FamilyMember(
            user_id=user_id,
            role=role,
            permissions=default_permissions(role),
            invited_by=invited_by,
        )
        self.members.append(member)
        return member


# Request models


class FamilyInviteRequest(BaseModel):
    email: str
    role: FamilyRole = FamilyRole.MEMBER
    message: Optional[str] = Field(None, max_length=500)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("role")
    @classmethod
    def invitable_role(cls, v: FamilyRole) -> FamilyRole:
        if v not in (FamilyRole.MEMBER, FamilyRole.GUEST):
            raise ValueError("Invitations can only grant the member or guest role")
        return v


class MemberRoleUpdate(BaseModel):
    role: FamilyRole


# Response models


class FamilyMemberResponse(BaseModel):
    user_id: str
    user: Optional[UserSummary] = None
    role: FamilyRole
    permissions: FamilyPermissions
    joined_at: datetime


class FamilyGroupResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    owner_id: str
    invite_code: Optional[str] = None
    members: List[FamilyMemberResponse]
    pending_invitations: List[FamilyInvitation] = Field(default_factory=list)
    settings: FamilySettings
    member_count: int
    is_full: bool
    my_role: Optional[FamilyRole] = None
    created_at: Optional[datetime] = None


class FamilyGroupEnvelope(BaseModel):
    family_group: Optional[FamilyGroupResponse]
