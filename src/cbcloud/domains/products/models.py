# src/cbcloud/domains/products/models.py
from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from cbcloud.core.database import from_json, to_json
from cbcloud.core.settings import settings as app_settings
from cbcloud.domains.shares.models import AnalyticsPeriod, DateRange
from cbcloud.shared.access.models import (
    AccessLevel,
    ProductInvitation,
    ProductMember,
)
from cbcloud.shared.pagination import PaginationMetadata
from cbcloud.shared.timeutils import as_utc


class ProductVisibility(str, Enum):
    PUBLIC = "public"
    REGISTERED = "registered"
    INVITE_ONLY = "invite_only"
    FAMILY_ONLY = "family_only"


class ProductStatus(str, Enum):
    ACTIVE = "active"
    BETA = "beta"
    DEPRECATED = "deprecated"
    MAINTENANCE = "maintenance"


class ProductSettings(BaseModel):
    allow_guest_access: bool = False
    require_approval: bool = True
    max_storage_mb: int = Field(100, ge=1)


class Product(BaseModel):
    """Product (shared workspace) document.

    The owner is implicitly admin and is never listed in ``members``.
    """

    id: str
    name: str
    description: Optional[str] = None
    owner_id: str
    access_level: ProductVisibility = ProductVisibility.INVITE_ONLY
    status: ProductStatus = ProductStatus.ACTIVE
    max_users: int = 10
    members: List[ProductMember] = Field(default_factory=list)
    invited_users: List[ProductInvitation] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    settings: ProductSettings = Field(default_factory=ProductSettings)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_prisma(cls, record: Any) -> "Product":
        return cls(
            id=record.id,
            name=record.name,
            description=getattr(record, "description", None),
            owner_id=record.ownerId,
            access_level=record.accessLevel,
            status=record.status,
            max_users=record.maxUsers,
            members=from_json(record.members, []),
            invited_users=from_json(getattr(record, "invitedUsers", None), []),
            features=list(getattr(record, "features", None) or []),
            settings=from_json(getattr(record, "settings", None), {}),
            created_at=as_utc(getattr(record, "createdAt", None)),
            updated_at=as_utc(getattr(record, "updatedAt", None)),
        )

    def to_prisma(self) -> dict[str, Any]:
        """Whole-document update payload with the id mirror columns."""
        return {
            "name": self.name,
            "description": self.description,
            "accessLevel": self.access_level.value,
            "status": self.status.value,
            "maxUsers": self.max_users,
            "members": to_json(self.members),
            "memberIds": [m.user_id for m in self.members],
            "invitedUsers": to_json(self.invited_users),
            "invitedUserIds": [i.user_id for i in self.invited_users],
            "features": self.features,
            "settings": to_json(self.settings),
        }

    @property
    def is_public(self) -> bool:
        return self.access_level == ProductVisibility.PUBLIC

    @property
    def user_count(self) -> int:
        return 1 + len(self.members)

    @property
    def is_full(self) -> bool:
        return self.user_count >= self.max_users

    @property
    def can_accept_users(self) -> bool:
        return self.status == ProductStatus.ACTIVE and not self.is_full

    def member(self, user_id: str) -> Optional[ProductMember]:
        return next((m for m in self.members if m.user_id == user_id), None)

    def invitation(self, user_id: str) -> Optional[ProductInvitation]:
        return next((i for i in self.invited_users if i.user_id == user_id), None)

    def member_ranks(self) -> dict[str, int]:
        return {m.user_id: m.level.rank for m in self.members}


# Request models


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    access_level: ProductVisibility = ProductVisibility.INVITE_ONLY
    max_users: int = Field(app_settings.DEFAULT_PRODUCT_MAX_USERS, ge=1, le=1000)
    features: List[str] = Field(default_factory=list)
    settings: ProductSettings = Field(default_factory=ProductSettings)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Product name is required")
        return v


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    access_level: Optional[ProductVisibility] = None
    status: Optional[ProductStatus] = None
    max_users: Optional[int] = Field(None, ge=1, le=1000)
    features: Optional[List[str]] = None
    settings: Optional[ProductSettings] = None


class ProductInviteRequest(BaseModel):
    user_id: str
    level: AccessLevel = AccessLevel.READ
    expires_in_days: int = Field(app_settings.INVITATION_TTL_DAYS, ge=1, le=30)
    message: Optional[str] = Field(None, max_length=500)


class MemberLevelUpdate(BaseModel):
    level: AccessLevel


# Response models


class ProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str]
    owner_id: str
    access_level: ProductVisibility
    status: ProductStatus
    max_users: int
    user_count: int
    members: List[ProductMember]
    invited_users: List[ProductInvitation]
    features: List[str]
    settings: ProductSettings
    my_level: Optional[str] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_product(
        cls, product: Product, my_level: Optional[str] = None
    ) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            owner_id=product.owner_id,
            access_level=product.access_level,
            status=product.status,
            max_users=product.max_users,
            user_count=product.user_count,
            members=product.members,
            invited_users=product.invited_users,
            features=product.features,
            settings=product.settings,
            my_level=my_level,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    pagination: PaginationMetadata


class EntryTypeCounts(BaseModel):
    total_entries: int = 0
    text_entries: int = 0
    image_entries: int = 0
    file_entries: int = 0
    link_entries: int = 0
    favorites: int = 0


class RecentEntry(BaseModel):
    id: str
    type: str
    preview: str
    created_by: str
    created_at: Optional[datetime]


class ProductStatsResponse(BaseModel):
    product: ProductResponse
    stats: EntryTypeCounts
    recent_activity: List[RecentEntry]


class TypeCount(BaseModel):
    type: str
    count: int


class DailyActivity(BaseModel):
    date: str
    types: List[TypeCount]
    total: int


class UserActivity(BaseModel):
    user_id: str
    username: Optional[str]
    entries: int
    last_activity: Optional[datetime]


class ProductAnalyticsSummary(BaseModel):
    total_entries: int
    active_users: int
    average_entries_per_user: float


class ProductAnalyticsResponse(BaseModel):
    product_id: str
    period: AnalyticsPeriod
    date_range: DateRange
    daily: List[DailyActivity]
    user_activity: List[UserActivity]
    summary: ProductAnalyticsSummary


class ProductExportRequest(BaseModel):
    include_content: bool = True


class ExportedProduct(BaseModel):
    id: str
    name: str
    description: Optional[str]
    status: ProductStatus
    access_level: ProductVisibility
    user_count: int
    max_users: int
    created_at: Optional[datetime]


class ExportedEntry(BaseModel):
    id: str
    content: Optional[str]
    type: str
    tags: List[str]
    is_public: bool
    is_archived: bool
    created_by: Optional[str]
    created_at: Optional[datetime]
    last_modified_by: Optional[str]
    last_modified_at: Optional[datetime]
    favorite_count: int
    shared_with_count: int
    view_count: int
    copy_count: int


class ExportInfo(BaseModel):
    exported_at: datetime
    exported_by: str
    format: Literal["json"] = "json"
    total_entries: int
    include_content: bool


class ProductExportResponse(BaseModel):
    product: ExportedProduct
    entries: List[ExportedEntry]
    export_info: ExportInfo
