# src/cbcloud/domains/clipboard/routes.py
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from cbcloud.core.database import Database, get_db
from cbcloud.core.realtime import CLIPBOARD_UPDATED, RoomHub, get_hub
from cbcloud.domains.auth.dependencies import get_current_user_with_access
from cbcloud.domains.auth.models import MessageResponse
from cbcloud.domains.clipboard.models import (
    BulkCreateRequest,
    BulkCreateResponse,
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
    SortField,
)
from cbcloud.domains.clipboard.service import ClipboardService
from cbcloud.domains.users.models import User

router = APIRouter(prefix="/clipboard", tags=["Clipboard"])


def entry_event(action: str, entry: EntryResponse) -> dict[str, Any]:
    """
    Payload for a `clipboard-updated` event. The whole product room receives
    it, so the entry body is only attached when the entry is public, and
    never with viewer-specific fields.
    """
    event: dict[str, Any] = {
        "action": action,
        "entryId": entry.id,
        "productId": entry.product_id,
    }
    if entry.is_public:
        event["entry"] = entry.model_dump(
            mode="json", exclude={"shared_with", "is_favorite", "access_level"}
        )
    return event


@router.get("", response_model=EntryListResponse, operation_id="listEntries")
async def list_entries(
    product_id: str = Query(..., alias="productId"),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(50, ge=1, le=100),
    type: Optional[EntryType] = Query(None, description="Filter by entry type"),
    tags: Optional[List[str]] = Query(None, description="Match any of these tags"),
    search: Optional[str] = Query(None, description="Free-text search"),
    sort_by: SortField = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> EntryListResponse:
    """
    Entries in a product visible to the current user: public ones, their
    own, and those shared with them.
    """
    return await ClipboardService(db).list_entries(
        user, product_id, page, limit, type, tags, search, sort_by, sort_order
    )


@router.post(
    "",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="createEntry",
)
async def create_entry(
    data: EntryCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> EntryResponse:
    entry = await ClipboardService(db).create_entry(user, data)
    background_tasks.add_task(
        hub.broadcast,
        entry.product_id,
        CLIPBOARD_UPDATED,
        entry_event("created", entry),
    )
    return entry


@router.post("/search", response_model=EntrySearchResponse, operation_id="searchEntries")
async def search_entries(
    request: EntrySearchRequest,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> EntrySearchResponse:
    return await ClipboardService(db).search_entries(user, request)


@router.post(
    "/bulk",
    response_model=BulkCreateResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="bulkCreateEntries",
)
async def bulk_create_entries(
    request: BulkCreateRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> BulkCreateResponse:
    """Create up to the configured maximum of entries; invalid items are skipped."""
    result = await ClipboardService(db).bulk_create(user, request)
    background_tasks.add_task(
        hub.broadcast,
        request.product_id,
        CLIPBOARD_UPDATED,
        {
            "action": "bulk_created",
            "entryIds": [e.id for e in result.created],
            "productId": request.product_id,
        },
    )
    return result


@router.get("/stats", response_model=ClipboardStatsResponse, operation_id="getClipboardStats")
async def get_stats(
    product_id: str = Query(..., alias="productId"),
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> ClipboardStatsResponse:
    return await ClipboardService(db).get_stats(user, product_id)


@router.get("/history", response_model=HistoryResponse, operation_id="getClipboardHistory")
async def get_history(
    product_id: str = Query(..., alias="productId"),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(50, ge=1, le=100),
    type: Optional[EntryType] = Query(None),
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> HistoryResponse:
    """The current user's own entries in a product."""
    return await ClipboardService(db).get_history(user, product_id, page, limit, type)


@router.get("/{entry_id}", response_model=EntryResponse, operation_id="getEntry")
async def get_entry(
    entry_id: str,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> EntryResponse:
    return await ClipboardService(db).get_entry(user, entry_id)


@router.put("/{entry_id}", response_model=EntryResponse, operation_id="updateEntry")
async def update_entry(
    entry_id: str,
    updates: EntryUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> EntryResponse:
    """
    Update an entry.

    Business rules:
    - Requires write access on the entry (creator or write-level share)
    - Only the creator can change visibility
    """
    entry = await ClipboardService(db).update_entry(user, entry_id, updates)
    background_tasks.add_task(
        hub.broadcast,
        entry.product_id,
        CLIPBOARD_UPDATED,
        entry_event("updated", entry),
    )
    return entry


@router.delete("/{entry_id}", response_model=MessageResponse, operation_id="deleteEntry")
async def delete_entry(
    entry_id: str,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> MessageResponse:
    entry = await ClipboardService(db).delete_entry(user, entry_id)
    background_tasks.add_task(
        hub.broadcast,
        entry.product_id,
        CLIPBOARD_UPDATED,
        {"action": "deleted", "entryId": entry.id, "productId": entry.product_id},
    )
    return MessageResponse(message="Clipboard entry deleted successfully")


@router.post(
    "/{entry_id}/favorite",
    response_model=FavoriteResponse,
    operation_id="toggleFavorite",
)
async def toggle_favorite(
    entry_id: str,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> FavoriteResponse:
    return await ClipboardService(db).toggle_favorite(user, entry_id)


@router.post("/{entry_id}/copy", response_model=CopyResponse, operation_id="recordEntryCopy")
async def record_copy(
    entry_id: str,
    user: User = Depends(get_current_user_with_access),
    db: Database = Depends(get_db),
) -> CopyResponse:
    """Record that the user copied the entry; requires read access."""
    return await ClipboardService(db).record_copy(user, entry_id)
