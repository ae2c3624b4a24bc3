# src/cbcloud/domains/shares/routes.py
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from cbcloud.core.database import Database, get_db
from cbcloud.core.realtime import (
    CLIPBOARD_SHARE_REMOVED,
    CLIPBOARD_SHARE_UPDATED,
    CLIPBOARD_SHARED,
    RoomHub,
    get_hub,
)
from cbcloud.domains.auth.dependencies import get_current_user_with_access
from cbcloud.domains.auth.models import MessageResponse
from cbcloud.domains.shares.models import (
    AnalyticsPeriod,
    ShareAnalyticsResponse,
    ShareCreate,
    ShareDetailsResponse,
    SharedEntryListResponse,
    ShareResponse,
    ShareStatsResponse,
    ShareUpdate,
)
from cbcloud.domains.shares.service import ShareService
from cbcloud.domains.users.models import User

router = APIRouter(prefix="/shares", tags=["Shares"])


@router.post("", response_model=ShareResponse, operation_id="shareEntry")
async def share_entry(
    request: ShareCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> ShareResponse:
    """
    Share a clipboard entry with another user.

    Sharing again with the same user updates the existing grant.
    """
    share = await ShareService(db).share_entry(user, request)
    background_tasks.add_task(
        hub.broadcast,
        share.product_id,
        CLIPBOARD_SHARED,
        {
            "action": "shared",
            "entryId": share.entry_id,
            "sharedWith": share.shared_with,
            "accessLevel": share.access_level.value,
            "productId": share.product_id,
        },
    )
    return share


@router.get("/received", response_model=SharedEntryListResponse, operation_id="listReceivedShares")
async def list_received(
    product_id: Optional[str] = Query(None, alias="productId"),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> SharedEntryListResponse:
    return await ShareService(db).list_received(user, product_id, page, limit)


@router.get("/sent", response_model=SharedEntryListResponse, operation_id="listSentShares")
async def list_sent(
    product_id: Optional[str] = Query(None, alias="productId"),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> SharedEntryListResponse:
    return await ShareService(db).list_sent(user, product_id, page, limit)


@router.get("/stats", response_model=ShareStatsResponse, operation_id="getShareStats")
async def get_share_stats(
    product_id: Optional[str] = Query(None, alias="productId"),
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> ShareStatsResponse:
    return await ShareService(db).get_stats(user, product_id)


@router.get("/analytics", response_model=ShareAnalyticsResponse, operation_id="getShareAnalytics")
async def get_share_analytics(
    product_id: Optional[str] = Query(None, alias="productId"),
    period: AnalyticsPeriod = Query("30d", description="7d, 30d or 90d"),
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> ShareAnalyticsResponse:
    return await ShareService(db).get_analytics(user, product_id, period)


@router.get("/{entry_id}", response_model=ShareDetailsResponse, operation_id="getShareDetails")
async def get_share_details(
    entry_id: str,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> ShareDetailsResponse:
    return await ShareService(db).get_details(user, entry_id)


@router.put("/{entry_id}/{user_id}", response_model=ShareResponse, operation_id="updateShare")
async def update_share(
    entry_id: str,
    user_id: str,
    update: ShareUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> ShareResponse:
    share = await ShareService(db).update_share(user, entry_id, user_id, update)
    background_tasks.add_task(
        hub.broadcast,
        share.product_id,
        CLIPBOARD_SHARE_UPDATED,
        {
            "action": "updated",
            "entryId": share.entry_id,
            "sharedWith": share.shared_with,
            "accessLevel": share.access_level.value,
            "productId": share.product_id,
        },
    )
    return share


@router.delete("/{entry_id}/{user_id}", response_model=MessageResponse, operation_id="removeShare")
async def remove_share(
    entry_id: str,
    user_id: str,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> MessageResponse:
    entry = await ShareService(db).remove_share(user, entry_id, user_id)
    background_tasks.add_task(
        hub.broadcast,
        entry.product_id,
        CLIPBOARD_SHARE_REMOVED,
        {
            "action": "removed",
            "entryId": entry.id,
            "removedFrom": user_id,
            "productId": entry.product_id,
        },
    )
    return MessageResponse(message="Share removed successfully")
