# src/cbcloud/domains/products/routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from cbcloud.core.database import Database, get_db
from cbcloud.core.realtime import RoomHub, get_hub
from cbcloud.domains.auth.dependencies import get_current_user
from cbcloud.domains.auth.models import MessageResponse
from cbcloud.domains.products.models import (
    MemberLevelUpdate,
    ProductAnalyticsResponse,
    ProductCreate,
    ProductExportRequest,
    ProductExportResponse,
    ProductInviteRequest,
    ProductListResponse,
    ProductResponse,
    ProductStatsResponse,
    ProductStatus,
    ProductUpdate,
)
from cbcloud.domains.products.service import ProductService
from cbcloud.domains.shares.models import AnalyticsPeriod
from cbcloud.domains.users.models import User
from cbcloud.shared.access.dependencies import (
    ProductAccessContext,
    require_product_access,
)
from cbcloud.shared.access.models import AccessLevel, ProductInvitation

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=ProductListResponse, operation_id="listProducts")
async def list_products(
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[ProductStatus] = Query(None, description="Filter by status"),
) -> ProductListResponse:
    """Products the current user owns, belongs to, or is invited to."""
    return await ProductService(db).list_products(user, page, limit, status)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="createProduct",
)
async def create_product(
    data: ProductCreate,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> ProductResponse:
    return await ProductService(db).create_product(user, data)


@router.get("/{product_id}", response_model=ProductResponse, operation_id="getProduct")
async def get_product(
    product_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> ProductResponse:
    """Product detail for members, invitees, and anyone when the product is
    public or open to registered users."""
    return await ProductService(db).get_product_details(user, product_id)


@router.put("/{product_id}", response_model=ProductResponse, operation_id="updateProduct")
async def update_product(
    product_id: str,
    updates: ProductUpdate,
    access: ProductAccessContext = Depends(require_product_access(AccessLevel.ADMIN)),
    db: Database = Depends(get_db),
) -> ProductResponse:
    """Update product details. Requires admin level on the product."""
    return await ProductService(db).update_product(access.principal, product_id, updates)


@router.delete("/{product_id}", response_model=MessageResponse, operation_id="deleteProduct")
async def delete_product(
    product_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> MessageResponse:
    """
    Delete a product.

    Business rules:
    - Only the owner may delete
    - The product must have no members besides the owner
    - Open realtime subscriptions to the product are closed
    """
    await ProductService(db).delete_product(user, product_id)
    hub.evict(product_id)
    return MessageResponse(message="Product deleted successfully")


@router.post(
    "/{product_id}/invite",
    response_model=ProductInvitation,
    status_code=status.HTTP_201_CREATED,
    operation_id="inviteToProduct",
)
async def invite_user(
    product_id: str,
    request: ProductInviteRequest,
    access: ProductAccessContext = Depends(require_product_access(AccessLevel.ADMIN)),
    db: Database = Depends(get_db),
) -> ProductInvitation:
    return await ProductService(db).invite_user(access.principal, product_id, request)


@router.post("/{product_id}/join", response_model=ProductResponse, operation_id="joinProduct")
async def join_product(
    product_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> ProductResponse:
    """Accept a pending invitation, or join an open product."""
    return await ProductService(db).join_product(user, product_id)


@router.put(
    "/{product_id}/members/{member_id}",
    response_model=ProductResponse,
    operation_id="updateProductMember",
)
async def update_member(
    product_id: str,
    member_id: str,
    update: MemberLevelUpdate,
    access: ProductAccessContext = Depends(require_product_access(AccessLevel.ADMIN)),
    db: Database = Depends(get_db),
) -> ProductResponse:
    """
    Change a member's access level.

    The last admin-level member cannot be demoted.
    """
    return await ProductService(db).update_member_level(
        access.principal, product_id, member_id, update
    )


@router.delete(
    "/{product_id}/members/{member_id}",
    response_model=MessageResponse,
    operation_id="removeProductMember",
)
async def remove_member(
    product_id: str,
    member_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> MessageResponse:
    """
    Remove a member (admins), or leave the product (any member). The
    member stops receiving the product's realtime events.
    """
    await ProductService(db).remove_member(user, product_id, member_id)
    hub.evict(product_id, member_id)
    return MessageResponse(message="Member removed successfully")


@router.get(
    "/{product_id}/stats",
    response_model=ProductStatsResponse,
    operation_id="getProductStats",
)
async def get_product_stats(
    product_id: str,
    access: ProductAccessContext = Depends(require_product_access(AccessLevel.READ)),
    db: Database = Depends(get_db),
) -> ProductStatsResponse:
    return await ProductService(db).get_stats(access.principal, product_id)


@router.get(
    "/{product_id}/analytics",
    response_model=ProductAnalyticsResponse,
    operation_id="getProductAnalytics",
)
async def get_product_analytics(
    product_id: str,
    period: AnalyticsPeriod = Query("30d"),
    access: ProductAccessContext = Depends(require_product_access(AccessLevel.WRITE)),
    db: Database = Depends(get_db),
) -> ProductAnalyticsResponse:
    return await ProductService(db).get_analytics(access.principal, product_id, period)


@router.post(
    "/{product_id}/export",
    response_model=ProductExportResponse,
    operation_id="exportProduct",
)
async def export_product(
    product_id: str,
    request: ProductExportRequest = ProductExportRequest(),
    access: ProductAccessContext = Depends(require_product_access(AccessLevel.WRITE)),
    db: Database = Depends(get_db),
) -> ProductExportResponse:
    """Product details plus every entry the caller can read, as JSON."""
    return await ProductService(db).export_product(access.principal, product_id, request)
