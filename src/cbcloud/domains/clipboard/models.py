# src/cbcloud/domains/clipboard/models.py
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cbcloud.core.database import from_json, to_json
from cbcloud.core.settings import settings
from cbcloud.shared.access.models import EntryShare, ShareLevel
from cbcloud.shared.pagination import PaginationMetadata
from cbcloud.shared.timeutils import as_utc, utcnow


class EntryType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    LINK = "link"


# Metadata is a tagged union keyed by ``type``: each entry type has a fixed
# schema, plus the capture context shared by all of them.


class _CaptureContext(BaseModel):
    source: Optional[str] = None
    device: Optional[str] = None
    application: Optional[str] = None


class TextMetadata(_CaptureContext):
    type: Literal["text"] = "text"
    language: Optional[str] = None
    word_count: int = 0
    character_count: int = 0


class ImageMetadata(_CaptureContext):
    type: Literal["image"] = "image"
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)
    format: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)


class FileMetadata(_CaptureContext):
    type: Literal["file"] = "file"
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = None
    checksum: Optional[str] = None


class LinkMetadata(_CaptureContext):
    type: Literal["link"] = "link"
    url: Optional[str] = None
    domain: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None


EntryMetadata = Annotated[
    Union[TextMetadata, ImageMetadata, FileMetadata, LinkMetadata],
    Field(discriminator="type"),
]

METADATA_TYPES: dict[EntryType, type] = {
    EntryType.TEXT: TextMetadata,
    EntryType.IMAGE: ImageMetadata,
    EntryType.FILE: FileMetadata,
    EntryType.LINK: LinkMetadata,
}


class MetadataInput(BaseModel):
    """Client-supplied metadata. Only the fields valid for the entry's type
    are kept; derived fields are always recomputed from the content."""

    model_config = ConfigDict(extra="forbid")

    type: Optional[EntryType] = None
    source: Optional[str] = None
    device: Optional[str] = None
    application: Optional[str] = None
    language: Optional[str] = None
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)
    format: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = None
    checksum: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Trim, lower-case and de-duplicate tags, keeping first-seen order."""
    seen: List[str] = []
    for tag in tags or []:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class ClipboardEntry(BaseModel):
    """Clipboard entry document."""

    id: str
    content: str
    type: EntryType = EntryType.TEXT
    product_id: str
    created_by: str
    tags: List[str] = Field(default_factory=list)
    is_public: bool = False
    shared_with: List[EntryShare] = Field(default_factory=list)
    favorited_by: List[str] = Field(default_factory=list)
    metadata: EntryMetadata = Field(default_factory=TextMetadata)
    expires_at: Optional[datetime] = None
    is_archived: bool = False
    view_count: int = 0
    copy_count: int = 0
    last_modified_by: Optional[str] = None
    last_modified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_prisma(cls, record: Any) -> "ClipboardEntry":
        entry_type = EntryType(record.type)
        metadata = from_json(getattr(record, "metadata", None), {}) or {}
        metadata.setdefault("type", entry_type.value)
        return cls(
            id=record.id,
            content=record.content,
            type=entry_type,
            product_id=record.productId,
            created_by=record.createdById,
            tags=list(record.tags or []),
            is_public=record.isPublic,
            shared_with=from_json(getattr(record, "sharedWith", None), []),
            favorited_by=list(getattr(record, "favoritedBy", None) or []),
            metadata=metadata,
            expires_at=as_utc(getattr(record, "expiresAt", None)),
            is_archived=getattr(record, "isArchived", False),
            view_count=getattr(record, "viewCount", 0) or 0,
            copy_count=getattr(record, "copyCount", 0) or 0,
            last_modified_by=getattr(record, "lastModifiedById", None),
            last_modified_at=as_utc(getattr(record, "lastModifiedAt", None)),
            created_at=as_utc(getattr(record, "createdAt", None)),
            updated_at=as_utc(getattr(record, "updatedAt", None)),
        )

    def to_prisma(self) -> dict[str, Any]:
        """Whole-document update payload; the share id mirror is rebuilt."""
        return {
            "content": self.content,
            "type": self.type.value,
            "tags": self.tags,
            "isPublic": self.is_public,
            "sharedWith": to_json(self.shared_with),
            "sharedWithIds": [s.user_id for s in self.shared_with],
            "favoritedBy": self.favorited_by,
            "metadata": to_json(self.metadata),
            "expiresAt": self.expires_at,
            "isArchived": self.is_archived,
            "viewCount": self.view_count,
            "copyCount": self.copy_count,
            "lastModifiedById": self.last_modified_by,
            "lastModifiedAt": self.last_modified_at,
        }

    def share_for(self, user_id: str) -> Optional[EntryShare]:
        return next((s for s in self.shared_with if s.user_id == user_id), None)

    def share_with(self, user_id: str, level: ShareLevel) -> bool:
        """Grant or update a share. Returns True when a new grant was added."""
        existing = self.share_for(user_id)
        if existing:
            existing.level = level
            existing.granted_at = utcnow()
            return False
        self.shared_with.append(EntryShare(user_id=user_id, level=level))
        return True

    def unshare(self, user_id: str) -> bool:
        before = len(self.shared_with)
        self.shared_with = [s for s in self.shared_with if s.user_id != user_id]
        return len(self.shared_with) != before


# Request models


class EntryCreate(BaseModel):
    product_id: str
    content: str = Field(..., min_length=1)
    type: EntryType = EntryType.TEXT
    tags: List[str] = Field(default_factory=list)
    is_public: bool = False
    metadata: Optional[MetadataInput] = None
    expires_at: Optional[datetime] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content is required")
        return v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        tags = normalize_tags(v)
        if len(tags) > settings.MAX_TAGS_PER_ENTRY:
            raise ValueError(f"At most {settings.MAX_TAGS_PER_ENTRY} tags are allowed")
        return tags


class BulkEntryItem(EntryCreate):
    """Entry inside a bulk request; the product comes from the request."""

    product_id: str = ""


class EntryUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1)
    type: Optional[EntryType] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None
    metadata: Optional[MetadataInput] = None
    expires_at: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        tags = normalize_tags(v)
        if len(tags) > settings.MAX_TAGS_PER_ENTRY:
            raise ValueError(f"At most {settings.MAX_TAGS_PER_ENTRY} tags are allowed")
        return tags


SortField = Literal["createdAt", "updatedAt", "viewCount", "lastModifiedAt"]


class EntrySearchRequest(BaseModel):
    product_id: str
    q: Optional[str] = None
    type: Optional[EntryType] = None
    tags: List[str] = Field(default_factory=list)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)
    sort_by: SortField = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


class BulkCreateRequest(BaseModel):
    product_id: str
    entries: List[dict[str, Any]] = Field(..., min_length=1)

    @field_validator("entries")
    @classmethod
    def cap_entries(cls, v: List[dict[str, Any]]) -> List[dict[str, Any]]:
        if len(v) > settings.MAX_BULK_ENTRIES:
            raise ValueError(
                f"Cannot create more than {settings.MAX_BULK_ENTRIES} entries at once"
            )
        return v


# Response models


class EntryResponse(BaseModel):
    id: str
    content: str
    type: EntryType
    product_id: str
    created_by: str
    tags: List[str]
    is_public: bool
    shared_with: List[EntryShare]
    is_favorite: bool
    favorite_count: int
    metadata: EntryMetadata
    expires_at: Optional[datetime]
    is_archived: bool = False
    view_count: int
    copy_count: int = 0
    access_level: Optional[str] = None
    last_modified_by: Optional[str]
    last_modified_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_entry(
        cls, entry: ClipboardEntry, viewer_id: str, access_level: Optional[str] = None
    ) -> "EntryResponse":
        # Only the creator sees who else the entry is shared with.
        shared_with = (
            entry.shared_with
            if viewer_id == entry.created_by
            else [s for s in entry.shared_with if s.user_id == viewer_id]
        )
        return cls(
            id=entry.id,
            content=entry.content,
            type=entry.type,
            product_id=entry.product_id,
            created_by=entry.created_by,
            tags=entry.tags,
            is_public=entry.is_public,
            shared_with=shared_with,
            is_favorite=viewer_id in entry.favorited_by,
            favorite_count=len(entry.favorited_by),
            metadata=entry.metadata,
            expires_at=entry.expires_at,
            is_archived=entry.is_archived,
            view_count=entry.view_count,
            copy_count=entry.copy_count,
            access_level=access_level,
            last_modified_by=entry.last_modified_by,
            last_modified_at=entry.last_modified_at,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class EntryListResponse(BaseModel):
    entries: List[EntryResponse]
    pagination: PaginationMetadata


class EntrySearchResponse(EntryListResponse):
    suggestions: List[str]


class SkippedEntry(BaseModel):
    index: int
    error: str


class BulkCreateResponse(BaseModel):
    created: List[EntryResponse]
    skipped: List[SkippedEntry]


class FavoriteResponse(BaseModel):
    is_favorite: bool
    favorite_count: int


class CopyResponse(BaseModel):
    entry_id: str
    copy_count: int


class ClipboardStatsResponse(BaseModel):
    total_entries: int
    text_entries: int
    image_entries: int
    file_entries: int
    link_entries: int
    favorites: int
    created_by_me: int
    shared_with_me: int


class HistoryStats(BaseModel):
    total_entries: int
    unique_types: List[EntryType]
    unique_tags: List[str]
    average_tags: float


class HistoryResponse(EntryListResponse):
    stats: HistoryStats
