# src/cbcloud/domains/shares/service.py
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Any, List, Optional

from cbcloud.core.database import Database
from cbcloud.core.settings import settings
from cbcloud.domains.clipboard.models import ClipboardEntry, EntryType
from cbcloud.domains.clipboard.service import authorize_entry, save_entry
from cbcloud.domains.products.service import authorize_product, get_product
from cbcloud.domains.shares.models import (
    PERIOD_DAYS,
    AnalyticsPeriod,
    AnalyticsSummary,
    DailySharing,
    DateRange,
    ShareAnalyticsResponse,
    ShareCreate,
    ShareDetailsResponse,
    SharedEntryListResponse,
    SharedEntrySummary,
    ShareResponse,
    ShareStats,
    ShareStatsResponse,
    ShareUpdate,
    TopSharedEntry,
    TypeActivity,
)
from cbcloud.domains.users.models import User, UserSummary
from cbcloud.domains.users.service import get_user, get_users, save_user
from cbcloud.shared.access.models import AccessLevel, EntryShare, ShareLevel
from cbcloud.shared.access.services import evaluate_product
from cbcloud.shared.exceptions import NotFoundError, ValidationError
from cbcloud.shared.pagination import PaginationMetadata, page_offset
from cbcloud.shared.timeutils import utcnow

logger = logging.getLogger(__name__)

HAS_SHARES = {"is_empty": False}


def _share_of(entry: ClipboardEntry, user_id: str) -> EntryShare:
    share = entry.share_for(user_id)
    if share is None:
        raise NotFoundError("Share")
    return share


class ShareService:
    def __init__(self, db: Database):
        self.db = db

    async def share_entry(self, user: User, request: ShareCreate) -> ShareResponse:
        """
        Share an entry with another user, or update the level of an existing
        share. The grantee gets read access to the product if they lack it.
        """
        if request.user_id == user.id:
            raise ValidationError("Cannot share with yourself")

        entry, _ = await authorize_entry(self.db, user, request.entry_id, ShareLevel.WRITE)
        target = await get_user(self.db, request.user_id)
        if not target:
            raise NotFoundError("Target user")
        if not target.is_active:
            raise ValidationError("Target user account is not active")
        if (
            entry.share_for(target.id) is None
            and len(entry.shared_with) >= settings.MAX_SHARED_USERS
        ):
            raise ValidationError(
                f"Entry is already shared with the maximum of {settings.MAX_SHARED_USERS} users"
            )

        created = entry.share_with(target.id, request.access_level)
        product = await get_product(self.db, entry.product_id)
        grant_product = (
            product is not None and not evaluate_product(target, product).allowed
        )
        if grant_product:
            target.grant_product_access(
                product.id, AccessLevel.READ, user.id, product_name=product.name
            )

        entry = await save_entry(self.db, entry)
        if grant_product:
            await save_user(self.db, target)

        share = _share_of(entry, target.id)
        logger.info(
            f"Entry {entry.id} shared with {target.id} at {share.level.value}",
            extra={"user_id": user.id, "product_id": entry.product_id},
        )
        return ShareResponse(
            entry_id=entry.id,
            product_id=entry.product_id,
            shared_with=target.id,
            access_level=share.level,
            granted_at=share.granted_at,
            message=request.message,
            created=created,
        )

    async def list_received(
        self, user: User, product_id: Optional[str] = None, page: int = 1, limit: int = 50
    ) -> SharedEntryListResponse:
        """Entries other users have shared with the current user."""
        where = await self._scoped(user, product_id, {"sharedWithIds": {"has": user.id}})
        return await self._list(user, where, page, limit)

    async def list_sent(
        self, user: User, product_id: Optional[str] = None, page: int = 1, limit: int = 50
    ) -> SharedEntryListResponse:
        """The current user's entries that are shared with at least one user."""
        where = await self._scoped(
            user, product_id, {"createdById": user.id, "sharedWithIds": HAS_SHARES}
        )
        return await self._list(user, where, page, limit)

    async def update_share(
        self, user: User, entry_id: str, target_id: str, update: ShareUpdate
    ) -> ShareResponse:
        entry, _ = await authorize_entry(self.db, user, entry_id, ShareLevel.WRITE)
        _share_of(entry, target_id)

        entry.share_with(target_id, update.access_level)
        entry = await save_entry(self.db, entry)
        share = _share_of(entry, target_id)
        logger.info(
            f"Share of entry {entry.id} with {target_id} set to {share.level.value}",
            extra={"user_id": user.id, "product_id": entry.product_id},
        )
        return ShareResponse(
            entry_id=entry.id,
            product_id=entry.product_id,
            shared_with=target_id,
            access_level=share.level,
            granted_at=share.granted_at,
            message=update.message,
            created=False,
        )

    async def remove_share(
        self, user: User, entry_id: str, target_id: str
    ) -> ClipboardEntry:
        """Revoke a share. Write access is needed unless users drop their own."""
        level = ShareLevel.READ if target_id == user.id else ShareLevel.WRITE
        entry, _ = await authorize_entry(self.db, user, entry_id, level)
        if not entry.unshare(target_id):
            raise NotFoundError("Share")

        entry = await save_entry(self.db, entry)
        logger.info(
            f"Share of entry {entry.id} with {target_id} removed",
            extra={"user_id": user.id, "product_id": entry.product_id},
        )
        return entry

    async def get_details(self, user: User, entry_id: str) -> ShareDetailsResponse:
        entry, decision = await authorize_entry(self.db, user, entry_id)
        shared_with = (
            entry.shared_with
            if decision.level == ShareLevel.WRITE.value
            else [s for s in entry.shared_with if s.user_id == user.id]
        )
        return ShareDetailsResponse(
            entry_id=entry.id,
            product_id=entry.product_id,
            content=entry.content,
            type=entry.type,
            created_by=entry.created_by,
            created_at=entry.created_at,
            is_public=entry.is_public,
            shared_with=shared_with,
            access_level=decision.level,
        )

    async def get_stats(
        self, user: User, product_id: Optional[str] = None
    ) -> ShareStatsResponse:
        received_where = await self._scoped(
            user, product_id, {"sharedWithIds": {"has": user.id}}
        )
        sent_where = await self._scoped(
            user, product_id, {"createdById": user.id, "sharedWithIds": HAS_SHARES}
        )
        received = await self.db.clipboardentry.count(where=received_where)
        sent = await self.db.clipboardentry.count(where=sent_where)

        recent = await self.db.clipboardentry.find_many(
            where={"OR": [received_where, sent_where]},
            take=10,
            order={"createdAt": "desc"},
        )
        return ShareStatsResponse(
            stats=ShareStats(
                received_shares=received, sent_shares=sent, total_shares=received + sent
            ),
            recent_shares=await self._summaries(user, recent),
        )

    async def get_analytics(
        self,
        user: User,
        product_id: Optional[str] = None,
        period: AnalyticsPeriod = "30d",
    ) -> ShareAnalyticsResponse:
        """Per-day sharing activity over the user's own shared entries."""
        now = utcnow()
        start = now - timedelta(days=PERIOD_DAYS[period])
        where = await self._scoped(
            user, product_id, {"createdById": user.id, "sharedWithIds": HAS_SHARES}
        )
        where.pop("isArchived")

        in_period = await self.db.clipboardentry.find_many(
            where={**where, "createdAt": {"gte": start}}, order={"createdAt": "asc"}
        )
        days: dict[str, dict[EntryType, List[int]]] = defaultdict(
            lambda: defaultdict(lambda: [0, 0])
        )
        for record in in_period:
            entry = ClipboardEntry.from_prisma(record)
            day = entry.created_at.strftime("%Y-%m-%d") if entry.created_at else "unknown"
            bucket = days[day][entry.type]
            bucket[0] += len(entry.shared_with)
            bucket[1] += 1

        sharing = []
        for day in sorted(days):
            types = [
                TypeActivity(type=entry_type, shares=shares, entries=entries)
                for entry_type, (shares, entries) in sorted(
                    days[day].items(), key=lambda item: item[0].value
                )
            ]
            sharing.append(
                DailySharing(
                    date=day,
                    types=types,
                    total_shares=sum(t.shares for t in types),
                    total_entries=sum(t.entries for t in types),
                )
            )

        all_shared = [
            ClipboardEntry.from_prisma(r)
            for r in await self.db.clipboardentry.find_many(where=where)
        ]
        all_shared.sort(key=lambda e: len(e.shared_with), reverse=True)
        top_shared = [
            TopSharedEntry(
                id=e.id,
                preview=e.content[:100],
                type=e.type,
                shared_count=len(e.shared_with),
                created_at=e.created_at,
            )
            for e in all_shared[:10]
        ]

        total_shares = sum(day.total_shares for day in sharing)
        total_entries = sum(day.total_entries for day in sharing)
        return ShareAnalyticsResponse(
            period=period,
            date_range=DateRange(start=start, end=now),
            sharing=sharing,
            top_shared=top_shared,
            summary=AnalyticsSummary(
                total_shares=total_shares,
                total_entries=total_entries,
                average_shares_per_entry=round(total_shares / max(total_entries, 1), 2),
            ),
        )

    async def _scoped(
        self, user: User, product_id: Optional[str], where: dict[str, Any]
    ) -> dict[str, Any]:
        if product_id:
            await authorize_product(self.db, user, product_id)
            where["productId"] = product_id
        where["isArchived"] = False
        return where

    async def _list(
        self, user: User, where: dict[str, Any], page: int, limit: int
    ) -> SharedEntryListResponse:
        records = await self.db.clipboardentry.find_many(
            where=where,
            skip=page_offset(page, limit),
            take=limit,
            order={"createdAt": "desc"},
        )
        total = await self.db.clipboardentry.count(where=where)
        return SharedEntryListResponse(
            shared_entries=await self._summaries(user, records),
            pagination=PaginationMetadata.build(page, limit, total),
        )

    async def _summaries(self, user: User, records: List[Any]) -> List[SharedEntrySummary]:
        entries = [ClipboardEntry.from_prisma(r) for r in records]
        creators = await get_users(self.db, [e.created_by for e in entries])
        return [
            SharedEntrySummary.from_entry(
                e,
                user.id,
                UserSummary.from_user(creators[e.created_by])
                if e.created_by in creators
                else None,
            )
            for e in entries
        ]
