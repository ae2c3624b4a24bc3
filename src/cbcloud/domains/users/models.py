# src/cbcloud/domains/users/models.py
import re
from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from cbcloud.core.database import from_json, to_json
from cbcloud.shared.access.models import AccessLevel, ProductAccessEntry
from cbcloud.shared.timeutils import as_utc, utcnow

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,30}$")


class UserRole(str, Enum):
    ADMIN = "admin"
    FAMILY = "family"
    FRIEND = "friend"
    USER = "user"


class NotificationPreferences(BaseModel):
    email: bool = True
    push: bool = True
    clipboard: bool = True


class Preferences(BaseModel):
    theme: Literal["light", "dark", "auto"] = "auto"
    notifications: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )


class Profile(BaseModel):
    avatar: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=100)
    timezone: str = "UTC"
    preferences: Preferences = Field(default_factory=Preferences)


class FriendRequest(BaseModel):
    id: str
    from_user_id: str
    sent_at: datetime = Field(default_factory=utcnow)


class User(BaseModel):
    """User document: identity, credentials and relationship lists."""

    id: str
    username: str
    email: str
    password_hash: str = Field("", repr=False)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True
    is_verified: bool = False
    last_login: Optional[datetime] = None
    login_attempts: int = 0
    lock_until: Optional[datetime] = None
    token_version: int = 0
    friends: List[str] = Field(default_factory=list)
    family_group_id: Optional[str] = None
    product_access: List[ProductAccessEntry] = Field(default_factory=list)
    pending_friend_requests: List[FriendRequest] = Field(default_factory=list)
    profile: Profile = Field(default_factory=Profile)
    created_at: Optional[datetime] = None

    @classmethod
    def from_prisma(cls, record: Any) -> "User":
        return cls(
            id=record.id,
            username=record.username,
            email=record.email,
            password_hash=record.passwordHash,
            first_name=getattr(record, "firstName", None),
            last_name=getattr(record, "lastName", None),
            role=record.role,
            is_active=record.isActive,
            is_verified=getattr(record, "isVerified", False),
            last_login=as_utc(getattr(record, "lastLogin", None)),
            login_attempts=getattr(record, "loginAttempts", 0) or 0,
            lock_until=as_utc(getattr(record, "lockUntil", None)),
            token_version=getattr(record, "tokenVersion", 0) or 0,
            friends=list(getattr(record, "friends", None) or []),
            family_group_id=getattr(record, "familyGroupId", None),
            product_access=from_json(getattr(record, "productAccess", None), []),
            pending_friend_requests=from_json(
                getattr(record, "pendingFriendRequests", None), []
            ),
            profile=from_json(getattr(record, "profile", None), {}),
            created_at=as_utc(getattr(record, "createdAt", None)),
        )

    def to_prisma(self) -> dict[str, Any]:
        """Whole-document update payload, grant id mirror included."""
        return {
            "username": self.username,
            "email": self.email,
            "passwordHash": self.password_hash,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role.value,
            "isActive": self.is_active,
            "isVerified": self.is_verified,
            "lastLogin": self.last_login,
            "loginAttempts": self.login_attempts,
            "lockUntil": self.lock_until,
            "tokenVersion": self.token_version,
            "friends": self.friends,
            "familyGroupId": self.family_group_id,
            "productAccess": to_json(self.product_access),
            "productAccessIds": sorted(
                {entry.product_id for entry in self.product_access if entry.active}
            ),
            "pendingFriendRequests": to_json(self.pending_friend_requests),
            "profile": to_json(self.profile),
        }

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        return self.lock_until is not None and self.lock_until > (now or utcnow())

    def active_product_access(
        self, now: Optional[datetime] = None
    ) -> List[ProductAccessEntry]:
        now = now or utcnow()
        return [entry for entry in self.product_access if entry.is_current(now)]

    def access_for(self, product_id: str) -> Optional[ProductAccessEntry]:
        for entry in self.product_access:
            if entry.product_id == product_id and entry.active:
                return entry
        return None

    def grant_product_access(
        self,
        product_id: str,
        level: AccessLevel,
        granted_by: Optional[str],
        product_name: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> ProductAccessEntry:
        """Record a grant, soft-disabling any active one for the same product."""
        self.revoke_product_access(product_id)
        entry = ProductAccessEntry(
            product_id=product_id,
            product_name=product_name,
            level=level,
            granted_by=granted_by,
            expires_at=expires_at,
        )
        self.product_access.append(entry)
        return entry

    def revoke_product_access(self, product_id: str) -> bool:
        revoked = False
        for entry in self.product_access:
            if entry.product_id == product_id and entry.active:
                entry.active = False
                revoked = True
        return revoked


class UserSummary(BaseModel):
    """Public view of a user, used wherever other users are listed."""

    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            avatar=user.profile.avatar,
        )


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: UserRole
    is_verified: bool
    last_login: Optional[datetime]
    family_group_id: Optional[str]
    friends: List[str]
    product_access: List[ProductAccessEntry]
    profile: Profile

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_verified=user.is_verified,
            last_login=user.last_login,
            family_group_id=user.family_group_id,
            friends=user.friends,
            product_access=user.active_product_access(),
            profile=user.profile,
        )


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = None
    avatar: Optional[str] = None
    preferences: Optional[Preferences] = None


class FriendRequestCreate(BaseModel):
    user_id: str


class FriendRequestResponse(BaseModel):
    id: str
    sender: UserSummary
    sent_at: datetime


class FriendsResponse(BaseModel):
    friends: List[UserSummary]
    pending_requests: List[FriendRequestResponse]


class UserSearchResponse(BaseModel):
    users: List[UserSummary]


class FamilyGroupAction(BaseModel):
    action: Literal["create", "join"]
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    invite_code: Optional[str] = None

    @field_validator("invite_code")
    @classmethod
    def normalise_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v
