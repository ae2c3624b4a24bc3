# src/cbcloud/domains/products/service.py
import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from cbcloud.core.database import Database, to_json
from cbcloud.domains.clipboard.models import ClipboardEntry
from cbcloud.domains.products.models import (
    DailyActivity,
    EntryTypeCounts,
    ExportedEntry,
    ExportedProduct,
    ExportInfo,
    MemberLevelUpdate,
    Product,
    ProductAnalyticsResponse,
    ProductAnalyticsSummary,
    ProductCreate,
    ProductExportRequest,
    ProductExportResponse,
    ProductInviteRequest,
    ProductListResponse,
    ProductResponse,
    ProductStatsResponse,
    ProductStatus,
    ProductUpdate,
    ProductVisibility,
    RecentEntry,
    TypeCount,
    UserActivity,
)
from cbcloud.domains.shares.models import PERIOD_DAYS, AnalyticsPeriod, DateRange
from cbcloud.domains.users.models import User
from cbcloud.domains.users.service import get_user, get_users, save_user
from cbcloud.shared.access.filters import visible_entries_where, visible_products_where
from cbcloud.shared.access.models import (
    AccessDecision,
    AccessLevel,
    GrantSource,
    ProductInvitation,
    ProductMember,
)
from cbcloud.shared.access.services import (
    ensure_tier_retained,
    evaluate_product,
    require_allowed,
)
from cbcloud.shared.exceptions import (
    AuthorizationError,
    ConflictError,
    InvitationExpiredError,
    NotFoundError,
    ValidationError,
)
from cbcloud.shared.pagination import PaginationMetadata, page_offset
from cbcloud.shared.timeutils import utcnow

logger = logging.getLogger(__name__)

LAST_ADMIN_MESSAGE = "Cannot remove the last admin from the product"
ENTRY_TYPES = ("text", "image", "file", "link")


async def get_product(db: Database, product_id: str) -> Optional[Product]:
    record = await db.product.find_unique(where={"id": product_id})
    return Product.from_prisma(record) if record else None


async def save_product(db: Database, product: Product) -> Product:
    """Persist the whole product document in one update."""
    record = await db.product.update(
        where={"id": product.id}, data=product.to_prisma()
    )
    return Product.from_prisma(record) if record else product


async def authorize_product(
    db: Database,
    user: User,
    product_id: str,
    level: AccessLevel = AccessLevel.READ,
) -> Tuple[Product, AccessDecision]:
    """
    Load a product and check ``user`` holds ``level`` on it.

    Raises:
        NotFoundError: product absent, or invisible to the user
        AuthorizationError: visible but the user's level is too low
    """
    product = await get_product(db, product_id)
    if product is None:
        raise NotFoundError("Product")
    decision = require_allowed(evaluate_product(user, product, level), "Product")
    return product, decision


class ProductService:
    def __init__(self, db: Database):
        self.db = db

    async def list_products(
        self,
        user: User,
        page: int = 1,
        limit: int = 20,
        status: Optional[ProductStatus] = None,
    ) -> ProductListResponse:
        """Products the user owns, belongs to or is invited to."""
        where = visible_products_where(user.id)
        if status:
            where["status"] = status.value

        records = await self.db.product.find_many(
            where=where,
            skip=page_offset(page, limit),
            take=limit,
            order={"createdAt": "desc"},
        )
        total = await self.db.product.count(where=where)

        products = []
        for record in records:
            product = Product.from_prisma(record)
            decision = evaluate_product(user, product)
            products.append(
                ProductResponse.from_product(
                    product, decision.level if decision.allowed else None
                )
            )
        return ProductListResponse(
            products=products,
            pagination=PaginationMetadata.build(page, limit, total),
        )

    async def create_product(self, user: User, data: ProductCreate) -> ProductResponse:
        """Create a product owned by ``user`` and record the owner's grant."""
        await self._ensure_unique_name(user.id, data.name)

        record = await self.db.product.create(
            data={
                "name": data.name,
                "description": data.description,
                "ownerId": user.id,
                "accessLevel": data.access_level.value,
                "status": ProductStatus.ACTIVE.value,
                "maxUsers": data.max_users,
                "members": to_json([]),
                "memberIds": [],
                "invitedUsers": to_json([]),
                "invitedUserIds": [],
                "features": data.features,
                "settings": to_json(data.settings),
            }
        )
        product = Product.from_prisma(record)

        user.grant_product_access(
            product.id, AccessLevel.ADMIN, user.id, product_name=product.name
        )
        await save_user(self.db, user)

        logger.info(
            f"Product {product.id} created by {user.id}",
            extra={"user_id": user.id, "product_id": product.id},
        )
        return ProductResponse.from_product(product, AccessLevel.ADMIN.value)

    async def get_product_details(self, user: User, product_id: str) -> ProductResponse:
        """
        Product detail for any principal who may see it.

        Members get their effective level. Products open to every registered
        user, and products the user is invited to, are also visible so they
        can be joined; ``my_level`` is then empty unless the product is public.
        """
        product = await get_product(self.db, product_id)
        if product is None:
            raise NotFoundError("Product")
        decision = evaluate_product(user, product, AccessLevel.READ)
        if decision.allowed:
            return ProductResponse.from_product(product, decision.level)
        if product.access_level == ProductVisibility.REGISTERED or product.invitation(user.id):
            return ProductResponse.from_product(product)
        raise NotFoundError("Product")

    async def update_product(
        self, user: User, product_id: str, updates: ProductUpdate
    ) -> ProductResponse:
        product, decision = await authorize_product(
            self.db, user, product_id, AccessLevel.ADMIN
        )
        changes = updates.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("At least one field must be provided for update")

        if updates.name is not None and updates.name.strip().lower() != product.name.lower():
            await self._ensure_unique_name(
                product.owner_id, updates.name.strip(), exclude_id=product.id
            )
            product.name = updates.name.strip()
        if updates.max_users is not None:
            if updates.max_users < product.user_count:
                raise ValidationError(
                    f"maxUsers cannot be lower than the current user count ({product.user_count})"
                )
            product.max_users = updates.max_users
        if "description" in changes:
            product.description = updates.description
        if updates.access_level is not None:
            product.access_level = updates.access_level
        if updates.status is not None:
            product.status = updates.status
        if updates.features is not None:
            product.features = updates.features
        if updates.settings is not None:
            product.settings = updates.settings

        product = await save_product(self.db, product)
        logger.info(f"Product {product.id} updated by {user.id}")
        return ProductResponse.from_product(product, decision.level)

    async def delete_product(self, user: User, product_id: str) -> None:
        """
        Delete a product. Only the owner may do this, and only once every
        other member has left.
        """
        product, decision = await authorize_product(self.db, user, product_id)
        if decision.source != GrantSource.OWNER:
            raise AuthorizationError("Only the product owner can delete the product")
        if product.user_count > 1:
            raise ValidationError(
                "Cannot delete product with active users. Please remove all users first."
            )

        holders = await self.db.user.find_many(
            where={"productAccessIds": {"has": product.id}}
        )
        for record in holders:
            holder = User.from_prisma(record)
            holder.revoke_product_access(product.id)
            await save_user(self.db, holder)

        await self.db.clipboardentry.update_many(
            where={"productId": product.id}, data={"isArchived": True}
        )
        await self.db.product.delete(where={"id": product.id})
        logger.info(
            f"Product {product.id} deleted by {user.id}",
            extra={"user_id": user.id, "product_id": product.id},
        )

    async def invite_user(
        self, user: User, product_id: str, request: ProductInviteRequest
    ) -> ProductInvitation:
        """
        Invite a user. The invitee immediately receives a product grant at
        the invited level that lapses with the invitation unless they join.
        """
        product, _ = await authorize_product(
            self.db, user, product_id, AccessLevel.ADMIN
        )
        target = await get_user(self.db, request.user_id)
        if not target or not target.is_active:
            raise NotFoundError("User")
        if target.id == product.owner_id or product.member(target.id):
            raise ConflictError("User is already a member of this product")

        now = utcnow()
        existing = product.invitation(target.id)
        if existing and existing.expires_at > now:
            raise ConflictError("User is already invited to this product")
        if product.is_full:
            raise ConflictError("Product has reached maximum user limit")

        invitation = ProductInvitation(
            user_id=target.id,
            level=request.level,
            invited_by=user.id,
            invited_at=now,
            expires_at=now + timedelta(days=request.expires_in_days),
            message=request.message,
        )
        product.invited_users = [
            i for i in product.invited_users if i.user_id != target.id
        ] + [invitation]
        target.grant_product_access(
            product.id,
            request.level,
            user.id,
            product_name=product.name,
            expires_at=invitation.expires_at,
        )

        await save_product(self.db, product)
        await save_user(self.db, target)
        logger.info(
            f"User {target.id} invited to product {product.id} at {request.level.value}",
            extra={"user_id": user.id, "product_id": product.id},
        )
        return invitation

    async def join_product(self, user: User, product_id: str) -> ProductResponse:
        """Accept an invitation, or join an open product directly."""
        product = await get_product(self.db, product_id)
        if not product:
            raise NotFoundError("Product")
        if user.id == product.owner_id or product.member(user.id):
            raise ConflictError("Already a member of this product")

        invitation = product.invitation(user.id)
        if invitation:
            if invitation.expires_at <= utcnow():
                raise InvitationExpiredError()
            level = invitation.level
            granted_by = invitation.invited_by
        else:
            await self._ensure_open_to(user, product)
            level = AccessLevel.READ
            granted_by = product.owner_id

        if not product.can_accept_users:
            if product.is_full:
                raise ConflictError("Product has reached maximum user limit")
            raise ValidationError("Product is not accepting new members")

        product.members.append(ProductMember(user_id=user.id, level=level))
        product.invited_users = [
            i for i in product.invited_users if i.user_id != user.id
        ]
        user.grant_product_access(product.id, level, granted_by, product_name=product.name)

        product = await save_product(self.db, product)
        await save_user(self.db, user)
        logger.info(
            f"User {user.id} joined product {product.id}",
            extra={"user_id": user.id, "product_id": product.id},
        )
        return ProductResponse.from_product(product, level.value)

    async def update_member_level(
        self, user: User, product_id: str, member_id: str, update: MemberLevelUpdate
    ) -> ProductResponse:
        product, decision = await authorize_product(
            self.db, user, product_id, AccessLevel.ADMIN
        )
        if member_id == product.owner_id:
            raise ValidationError("Cannot change the product owner's access level")
        member = product.member(member_id)
        if not member:
            raise NotFoundError("Member")

        ensure_tier_retained(
            product.member_ranks(),
            member_id,
            update.level.rank,
            AccessLevel.ADMIN.rank,
            LAST_ADMIN_MESSAGE,
        )
        member.level = update.level

        target = await get_user(self.db, member_id)
        if target:
            target.grant_product_access(
                product.id, update.level, user.id, product_name=product.name
            )

        product = await save_product(self.db, product)
        if target:
            await save_user(self.db, target)
        logger.info(
            f"Member {member_id} of product {product.id} set to {update.level.value}",
            extra={"user_id": user.id, "product_id": product.id},
        )
        return ProductResponse.from_product(product, decision.level)

    async def remove_member(self, user: User, product_id: str, member_id: str) -> None:
        """Remove a member. Admins may remove others; anyone may leave."""
        required = AccessLevel.READ if member_id == user.id else AccessLevel.ADMIN
        product, _ = await authorize_product(self.db, user, product_id, required)
        if member_id == product.owner_id:
            raise ValidationError("Cannot remove the product owner")
        if not product.member(member_id):
            raise NotFoundError("Member")

        ensure_tier_retained(
            product.member_ranks(),
            member_id,
            None,
            AccessLevel.ADMIN.rank,
            LAST_ADMIN_MESSAGE,
        )
        product.members = [m for m in product.members if m.user_id != member_id]

        target = await get_user(self.db, member_id)
        if target:
            target.revoke_product_access(product.id)

        await save_product(self.db, product)
        if target:
            await save_user(self.db, target)
        logger.info(
            f"Member {member_id} removed from product {product.id}",
            extra={"user_id": user.id, "product_id": product.id},
        )

    async def get_stats(self, user: User, product_id: str) -> ProductStatsResponse:
        product, decision = await authorize_product(self.db, user, product_id)
        where = visible_entries_where(user.id, product.id)

        counts = EntryTypeCounts(total_entries=await self.db.clipboardentry.count(where=where))
        for entry_type in ENTRY_TYPES:
            setattr(
                counts,
                f"{entry_type}_entries",
                await self.db.clipboardentry.count(where={**where, "type": entry_type}),
            )
        counts.favorites = await self.db.clipboardentry.count(
            where={**where, "favoritedBy": {"has": user.id}}
        )

        recent = await self.db.clipboardentry.find_many(
            where=where, take=10, order={"createdAt": "desc"}
        )
        return ProductStatsResponse(
            product=ProductResponse.from_product(product, decision.level),
            stats=counts,
            recent_activity=[
                RecentEntry(
                    id=r.id,
                    type=r.type,
                    preview=r.content[:100],
                    created_by=r.createdById,
                    created_at=r.createdAt,
                )
                for r in recent
            ],
        )

    async def get_analytics(
        self, user: User, product_id: str, period: AnalyticsPeriod = "30d"
    ) -> ProductAnalyticsResponse:
        """
        Per-day entry counts by type and per-user activity over ``period``.

        Requires write level. Only entries visible to the caller are counted.
        """
        product, _ = await authorize_product(self.db, user, product_id, AccessLevel.WRITE)
        now = utcnow()
        start = now - timedelta(days=PERIOD_DAYS[period])
        records = await self.db.clipboardentry.find_many(
            where={**visible_entries_where(user.id, product.id), "createdAt": {"gte": start}},
            order={"createdAt": "asc"},
        )

        days: dict[str, Counter] = defaultdict(Counter)
        creators: dict[str, List[Optional[datetime]]] = defaultdict(list)
        for entry in map(ClipboardEntry.from_prisma, records):
            day = entry.created_at.strftime("%Y-%m-%d") if entry.created_at else "unknown"
            days[day][entry.type.value] += 1
            creators[entry.created_by].append(entry.created_at)

        daily = [
            DailyActivity(
                date=day,
                types=[TypeCount(type=t, count=c) for t, c in sorted(days[day].items())],
                total=sum(days[day].values()),
            )
            for day in sorted(days)
        ]
        users = await get_users(self.db, list(creators))
        activity = sorted(
            (
                UserActivity(
                    user_id=creator_id,
                    username=users[creator_id].username if creator_id in users else None,
                    entries=len(stamps),
                    last_activity=max((s for s in stamps if s), default=None),
                )
                for creator_id, stamps in creators.items()
            ),
            key=lambda a: a.entries,
            reverse=True,
        )
        total = len(records)
        return ProductAnalyticsResponse(
            product_id=product.id,
            period=period,
            date_range=DateRange(start=start, end=now),
            daily=daily,
            user_activity=activity,
            summary=ProductAnalyticsSummary(
                total_entries=total,
                active_users=len(activity),
                average_entries_per_user=round(total / len(activity), 2) if activity else 0.0,
            ),
        )

    async def export_product(
        self, user: User, product_id: str, request: ProductExportRequest
    ) -> ProductExportResponse:
        """Snapshot of the product and the entries the caller can read."""
        product, _ = await authorize_product(self.db, user, product_id, AccessLevel.WRITE)
        records = await self.db.clipboardentry.find_many(
            where=visible_entries_where(user.id, product.id), order={"createdAt": "desc"}
        )
        entries = [ClipboardEntry.from_prisma(r) for r in records]
        people_ids = {e.created_by for e in entries}
        people_ids.update(e.last_modified_by for e in entries if e.last_modified_by)
        people = await get_users(self.db, list(people_ids))

        def username(user_id: Optional[str]) -> Optional[str]:
            return people[user_id].username if user_id in people else None

        logger.info(
            f"Product {product.id} exported by {user.id} ({len(entries)} entries)",
            extra={"user_id": user.id, "product_id": product.id},
        )
        return ProductExportResponse(
            product=ExportedProduct(
                id=product.id,
                name=product.name,
                description=product.description,
                status=product.status,
                access_level=product.access_level,
                user_count=product.user_count,
                max_users=product.max_users,
                created_at=product.created_at,
            ),
            entries=[
                ExportedEntry(
                    id=e.id,
                    content=e.content if request.include_content else None,
                    type=e.type.value,
                    tags=e.tags,
                    is_public=e.is_public,
                    is_archived=e.is_archived,
                    created_by=username(e.created_by),
                    created_at=e.created_at,
                    last_modified_by=username(e.last_modified_by),
                    last_modified_at=e.last_modified_at,
                    favorite_count=len(e.favorited_by),
                    shared_with_count=len(e.shared_with),
                    view_count=e.view_count,
                    copy_count=e.copy_count,
                )
                for e in entries
            ],
            export_info=ExportInfo(
                exported_at=utcnow(),
                exported_by=user.id,
                total_entries=len(entries),
                include_content=request.include_content,
            ),
        )

    async def _ensure_unique_name(
        self, owner_id: str, name: str, exclude_id: Optional[str] = None
    ) -> None:
        where: dict = {
            "ownerId": owner_id,
            "name": {"equals": name, "mode": "insensitive"},
        }
        if exclude_id:
            where["id"] = {"not": exclude_id}
        if await self.db.product.find_first(where=where):
            raise ConflictError("You already have a product with this name")

    async def _ensure_open_to(self, user: User, product: Product) -> None:
        if product.access_level in (ProductVisibility.PUBLIC, ProductVisibility.REGISTERED):
            return
        if product.access_level == ProductVisibility.FAMILY_ONLY:
            owner = await get_user(self.db, product.owner_id)
            if (
                owner
                and user.family_group_id
                and owner.family_group_id == user.family_group_id
            ):
                return
            raise AuthorizationError("This product is limited to the owner's family group")
        raise AuthorizationError("An invitation is required to join this product")
