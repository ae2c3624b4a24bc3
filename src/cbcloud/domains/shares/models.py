# src/cbcloud/domains/shares/models.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from cbcloud.domains.clipboard.models import ClipboardEntry, EntryType
from cbcloud.domains.users.models import UserSummary
from cbcloud.shared.access.models import EntryShare, ShareLevel
from cbcloud.shared.pagination import PaginationMetadata

AnalyticsPeriod = Literal["7d", "30d", "90d"]

PERIOD_DAYS: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}


class ShareCreate(BaseModel):
    entry_id: str
    user_id: str
    access_level: ShareLevel = ShareLevel.READ
    message: Optional[str] = Field(None, max_length=500)


class ShareUpdate(BaseModel):
    access_level: ShareLevel
    message: Optional[str] = Field(None, max_length=500)


class ShareResponse(BaseModel):
    entry_id: str
    product_id: str
    shared_with: str
    access_level: ShareLevel
    granted_at: datetime
    message: Optional[str] = None
    created: bool = True


class SharedEntrySummary(BaseModel):
    """List view of a shared entry; the content itself is left out."""

    id: str
    type: EntryType
    product_id: str
    created_by: Optional[UserSummary] = None
    tags: List[str]
    is_public: bool
    shared_with: List[EntryShare]
    created_at: Optional[datetime] = None

    @classmethod
    def from_entry(
        cls, entry: ClipboardEntry, viewer_id: str, creator: Optional[UserSummary]
    ) -> "SharedEntrySummary":
        shared_with = (
            entry.shared_with
            if viewer_id == entry.created_by
            else [s for s in entry.shared_with if s.user_id == viewer_id]
        )
        return cls(
            id=entry.id,
            type=entry.type,
            product_id=entry.product_id,
            created_by=creator,
            tags=entry.tags,
            is_public=entry.is_public,
            shared_with=shared_with,
            created_at=entry.created_at,
        )


class SharedEntryListResponse(BaseModel):
    shared_entries: List[SharedEntrySummary]
    pagination: PaginationMetadata


class ShareDetailsResponse(BaseModel):
    entry_id: str
    product_id: str
    content: str
    type: EntryType
    created_by: str
    created_at: Optional[datetime]
    is_public: bool
    shared_with: List[EntryShare]
    access_level: Optional[str]


class ShareStats(BaseModel):
    received_shares: int
    sent_shares: int
    total_shares: int


class ShareStatsResponse(BaseModel):
    stats: ShareStats
    recent_shares: List[SharedEntrySummary]


class TypeActivity(BaseModel):
    type: EntryType
    shares: int
    entries: int


class DailySharing(BaseModel):
    date: str
    types: List[TypeActivity]
    total_shares: int
    total_entries: int


class TopSharedEntry(BaseModel):
    id: str
    preview: str
    type: EntryType
    shared_count: int
    created_at: Optional[datetime]


class AnalyticsSummary(BaseModel):
    total_shares: int
    total_entries: int
    average_shares_per_entry: float


class DateRange(BaseModel):
    start: datetime
    end: datetime


class ShareAnalyticsResponse(BaseModel):
    period: AnalyticsPeriod
    date_range: DateRange
    sharing: List[DailySharing]
    top_shared: List[TopSharedEntry]
    summary: AnalyticsSummary
