# src/cbcloud/domains/clipboard/service.py
import logging
from collections import Counter
from datetime import datetime
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from cbcloud.core.database import Database, to_json
from cbcloud.core.settings import settings
from cbcloud.domains.clipboard.metadata import build_metadata, check_content
from cbcloud.domains.clipboard.models import (
    BulkCreateRequest,
    BulkCreateResponse,
    BulkEntryItem,
    ClipboardEntry,
    ClipboardStatsResponse,
    CopyResponse,
    EntryCreate,
    EntryListResponse,
    EntryResponse,
    EntrySearchRequest,
    EntrySearchResponse,
    EntryType,
    EntryUpdate,
    FavoriteResponse,
    HistoryResponse,
    HistoryStats,
    SkippedEntry,
)
from cbcloud.domains.products.service import authorize_product
from cbcloud.domains.users.models import User
from cbcloud.shared.access.filters import visible_entries_where
from cbcloud.shared.access.models import (
    AccessDecision,
    AccessLevel,
    GrantSource,
    ShareLevel,
)
from cbcloud.shared.access.services import evaluate_entry, evaluate_product, require_allowed
from cbcloud.shared.exceptions import AuthorizationError, NotFoundError, ValidationError
from cbcloud.shared.pagination import PaginationMetadata, page_offset
from cbcloud.shared.timeutils import utcnow

logger = logging.getLogger(__name__)

ENTRY = "Clipboard entry"


async def get_entry(db: Database, entry_id: str) -> Optional[ClipboardEntry]:
    record = await db.clipboardentry.find_unique(where={"id": entry_id})
    return ClipboardEntry.from_prisma(record) if record else None


async def save_entry(db: Database, entry: ClipboardEntry) -> ClipboardEntry:
    """Persist the whole entry document in one update."""
    record = await db.clipboardentry.update(
        where={"id": entry.id}, data=entry.to_prisma()
    )
    return ClipboardEntry.from_prisma(record) if record else entry


async def authorize_entry(
    db: Database,
    user: User,
    entry_id: str,
    level: ShareLevel = ShareLevel.READ,
) -> Tuple[ClipboardEntry, AccessDecision]:
    """
    Load an entry and check ``user`` holds ``level`` on it.

    The entry's product must be visible first. Unreadable entries are
    reported as missing; a denied write on an entry the user can see the
    product of is a 403.
    """
    entry = await get_entry(db, entry_id)
    if entry is None:
        raise NotFoundError(ENTRY)
    await authorize_product(db, user, entry.product_id)
    decision = evaluate_entry(user, entry, level)
    require_allowed(decision, ENTRY, hide=level == ShareLevel.READ)
    return entry, decision


def _text_filter(query: str) -> dict[str, Any]:
    return {
        "OR": [
            {"content": {"contains": query, "mode": "insensitive"}},
            {"tags": {"has": query.strip().lower()}},
        ]
    }


class ClipboardService:
    def __init__(self, db: Database):
        self.db = db

    async def create_entry(self, user: User, data: EntryCreate) -> EntryResponse:
        await authorize_product(self.db, user, data.product_id, AccessLevel.WRITE)
        check_content(data.content, data.type)
        await self._ensure_capacity(data.product_id, 1)

        record = await self.db.clipboardentry.create(
            data=self._create_payload(user, data.product_id, data)
        )
        entry = ClipboardEntry.from_prisma(record)
        logger.info(
            f"Entry {entry.id} created in product {entry.product_id}",
            extra={"user_id": user.id, "product_id": entry.product_id},
        )
        return EntryResponse.from_entry(entry, user.id, ShareLevel.WRITE.value)

    async def list_entries(
        self,
        user: User,
        product_id: str,
        page: int = 1,
        limit: int = 50,
        entry_type: Optional[EntryType] = None,
        tags: Optional[List[str]] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> EntryListResponse:
        """
        List entries the user can read in a product.

        The visibility rule is part of the query, so unreadable entries are
        never loaded or counted.
        """
        await authorize_product(self.db, user, product_id)
        where = self._build_where(user, product_id, entry_type, tags, search)
        entries, pagination = await self._page(user, where, page, limit, sort_by, sort_order)
        return EntryListResponse(entries=entries, pagination=pagination)

    async def search_entries(
        self, user: User, request: EntrySearchRequest
    ) -> EntrySearchResponse:
        await authorize_product(self.db, user, request.product_id)
        where = self._build_where(
            user,
            request.product_id,
            request.type,
            request.tags,
            request.q,
            request.date_from,
            request.date_to,
        )
        entries, pagination = await self._page(
            user, where, request.page, request.limit, request.sort_by, request.sort_order
        )
        return EntrySearchResponse(
            entries=entries,
            pagination=pagination,
            suggestions=await self._popular_tags(user, request.product_id),
        )

    async def get_entry(self, user: User, entry_id: str) -> EntryResponse:
        entry, decision = await authorize_entry(self.db, user, entry_id)
        await self.db.clipboardentry.update(
            where={"id": entry.id}, data={"viewCount": {"increment": 1}}
        )
        entry.view_count += 1
        return EntryResponse.from_entry(entry, user.id, decision.level)

    async def update_entry(
        self, user: User, entry_id: str, updates: EntryUpdate
    ) -> EntryResponse:
        """Update an entry. Requires write on the entry itself."""
        entry, decision = await authorize_entry(self.db, user, entry_id, ShareLevel.WRITE)
        changes = updates.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("At least one field must be provided for update")

        if "is_public" in changes and updates.is_public != entry.is_public:
            if decision.source != GrantSource.OWNER:
                raise AuthorizationError("Only the entry creator can change its visibility")
            entry.is_public = bool(updates.is_public)

        content_changed = False
        if updates.content is not None and updates.content != entry.content:
            entry.content = updates.content
            content_changed = True
        if updates.type is not None and updates.type != entry.type:
            entry.type = updates.type
            content_changed = True
        if content_changed:
            check_content(entry.content, entry.type)
        if content_changed or updates.metadata is not None:
            entry.metadata = build_metadata(
                entry.content, entry.type, updates.metadata, entry.metadata
            )
        if updates.tags is not None:
            entry.tags = updates.tags
        if "expires_at" in changes:
            entry.expires_at = updates.expires_at

        entry.last_modified_by = user.id
        entry.last_modified_at = utcnow()
        entry = await save_entry(self.db, entry)
        logger.info(
            f"Entry {entry.id} updated by {user.id}",
            extra={"user_id": user.id, "product_id": entry.product_id},
        )
        return EntryResponse.from_entry(entry, user.id, decision.level)

    async def delete_entry(self, user: User, entry_id: str) -> ClipboardEntry:
        """Delete an entry. Allowed for its creator and product admins."""
        entry, decision = await authorize_entry(self.db, user, entry_id)
        if decision.source != GrantSource.OWNER:
            product, _ = await authorize_product(self.db, user, entry.product_id)
            if not evaluate_product(user, product, AccessLevel.ADMIN).allowed:
                raise AuthorizationError("Only the entry creator can delete this entry")

        await self.db.clipboardentry.delete(where={"id": entry.id})
        logger.info(
            f"Entry {entry.id} deleted by {user.id}",
            extra={"user_id": user.id, "product_id": entry.product_id},
        )
        return entry

    async def toggle_favorite(self, user: User, entry_id: str) -> FavoriteResponse:
        entry, _ = await authorize_entry(self.db, user, entry_id)
        if user.id in entry.favorited_by:
            entry.favorited_by = [uid for uid in entry.favorited_by if uid != user.id]
        else:
            entry.favorited_by.append(user.id)
        entry = await save_entry(self.db, entry)
        return FavoriteResponse(
            is_favorite=user.id in entry.favorited_by,
            favorite_count=len(entry.favorited_by),
        )

    async def record_copy(self, user: User, entry_id: str) -> CopyResponse:
        """Count a copy of the entry to the user's local clipboard."""
        entry, _ = await authorize_entry(self.db, user, entry_id)
        await self.db.clipboardentry.update(
            where={"id": entry.id}, data={"copyCount": {"increment": 1}}
        )
        return CopyResponse(entry_id=entry.id, copy_count=entry.copy_count + 1)

    async def bulk_create(
        self, user: User, request: BulkCreateRequest
    ) -> BulkCreateResponse:
        """
        Create several entries at once. Invalid items are skipped and
        reported; the valid ones are written in a single transaction.
        """
        await authorize_product(self.db, user, request.product_id, AccessLevel.WRITE)

        valid: List[BulkEntryItem] = []
        skipped: List[SkippedEntry] = []
        for index, raw in enumerate(request.entries):
            try:
                item = BulkEntryItem.model_validate(raw)
                check_content(item.content, item.type)
                build_metadata(item.content, item.type, item.metadata)
            except PydanticValidationError as exc:
                skipped.append(SkippedEntry(index=index, error=exc.errors()[0]["msg"]))
                continue
            except ValidationError as exc:
                skipped.append(SkippedEntry(index=index, error=str(exc.detail)))
                continue
            valid.append(item)

        if not valid:
            raise ValidationError("No valid entries found")
        await self._ensure_capacity(request.product_id, len(valid))

        created = []
        async with self.db.tx() as transaction:
            for item in valid:
                record = await transaction.clipboardentry.create(
                    data=self._create_payload(user, request.product_id, item)
                )
                created.append(ClipboardEntry.from_prisma(record))

        logger.info(
            f"Bulk created {len(created)} entries in product {request.product_id} "
            f"({len(skipped)} skipped)",
            extra={"user_id": user.id, "product_id": request.product_id},
        )
        return BulkCreateResponse(
            created=[
                EntryResponse.from_entry(e, user.id, ShareLevel.WRITE.value) for e in created
            ],
            skipped=skipped,
        )

    async def get_stats(self, user: User, product_id: str) -> ClipboardStatsResponse:
        await authorize_product(self.db, user, product_id)
        where = visible_entries_where(user.id, product_id)
        count = self.db.clipboardentry.count

        by_type = {}
        for entry_type in EntryType:
            by_type[entry_type] = await count(where={**where, "type": entry_type.value})

        return ClipboardStatsResponse(
            total_entries=await count(where=where),
            text_entries=by_type[EntryType.TEXT],
            image_entries=by_type[EntryType.IMAGE],
            file_entries=by_type[EntryType.FILE],
            link_entries=by_type[EntryType.LINK],
            favorites=await count(where={**where, "favoritedBy": {"has": user.id}}),
            created_by_me=await count(where={**where, "createdById": user.id}),
            shared_with_me=await count(
                where={**where, "sharedWithIds": {"has": user.id}}
            ),
        )

    async def get_history(
        self,
        user: User,
        product_id: str,
        page: int = 1,
        limit: int = 50,
        entry_type: Optional[EntryType] = None,
    ) -> HistoryResponse:
        """The user's own entries in a product, newest first."""
        await authorize_product(self.db, user, product_id)
        where: dict[str, Any] = {
            "productId": product_id,
            "createdById": user.id,
            "isArchived": False,
        }
        if entry_type:
            where["type"] = entry_type.value

        entries, pagination = await self._page(user, where, page, limit, "createdAt", "desc")

        mine = await self.db.clipboardentry.find_many(where=where)
        tag_total = sum(len(r.tags or []) for r in mine)
        stats = HistoryStats(
            total_entries=len(mine),
            unique_types=sorted({EntryType(r.type) for r in mine}, key=lambda t: t.value),
            unique_tags=sorted({tag for r in mine for tag in (r.tags or [])}),
            average_tags=round(tag_total / len(mine), 2) if mine else 0.0,
        )
        return HistoryResponse(entries=entries, pagination=pagination, stats=stats)

    async def archive_expired(self, now: Optional[datetime] = None) -> int:
        """Archive every live entry whose expiry has passed."""
        count = await self.db.clipboardentry.update_many(
            where={"isArchived": False, "expiresAt": {"lte": now or utcnow()}},
            data={"isArchived": True},
        )
        if count:
            logger.info(f"Archived {count} expired clipboard entries")
        return count

    def _create_payload(
        self, user: User, product_id: str, data: EntryCreate
    ) -> dict[str, Any]:
        metadata = build_metadata(data.content, data.type, data.metadata)
        return {
            "content": data.content,
            "type": data.type.value,
            "productId": product_id,
            "createdById": user.id,
            "tags": data.tags,
            "isPublic": data.is_public,
            "sharedWith": to_json([]),
            "sharedWithIds": [],
            "favoritedBy": [],
            "metadata": to_json(metadata),
            "expiresAt": data.expires_at,
        }

    def _build_where(
        self,
        user: User,
        product_id: str,
        entry_type: Optional[EntryType] = None,
        tags: Optional[List[str]] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> dict[str, Any]:
        where = visible_entries_where(user.id, product_id)
        if entry_type:
            where["type"] = entry_type.value
        if tags:
            where["tags"] = {"has_some": tags}
        if search and search.strip():
            where["AND"].append(_text_filter(search.strip()))
        if date_from or date_to:
            created: dict[str, datetime] = {}
            if date_from:
                created["gte"] = date_from
            if date_to:
                created["lte"] = date_to
            where["createdAt"] = created
        return where

    async def _page(
        self,
        user: User,
        where: dict[str, Any],
        page: int,
        limit: int,
        sort_by: str,
        sort_order: str,
    ) -> Tuple[List[EntryResponse], PaginationMetadata]:
        records = await self.db.clipboardentry.find_many(
            where=where,
            skip=page_offset(page, limit),
            take=limit,
            order={sort_by: sort_order},
        )
        total = await self.db.clipboardentry.count(where=where)
        entries = []
        for record in records:
            entry = ClipboardEntry.from_prisma(record)
            decision = evaluate_entry(user, entry, ShareLevel.READ)
            entries.append(EntryResponse.from_entry(entry, user.id, decision.level))
        return entries, PaginationMetadata.build(page, limit, total)

    async def _popular_tags(self, user: User, product_id: str, top: int = 10) -> List[str]:
        records = await self.db.clipboardentry.find_many(
            where=visible_entries_where(user.id, product_id),
            take=500,
            order={"createdAt": "desc"},
        )
        counts = Counter(tag for r in records for tag in (r.tags or []))
        return [tag for tag, _ in counts.most_common(top)]

    async def _ensure_capacity(self, product_id: str, adding: int) -> None:
        existing = await self.db.clipboardentry.count(
            where={"productId": product_id, "isArchived": False}
        )
        if existing + adding > settings.MAX_ENTRIES_PER_PRODUCT:
            raise ValidationError(
                f"Product has reached the limit of {settings.MAX_ENTRIES_PER_PRODUCT} entries"
            )
