from typing import Awaitable, Callable

from fastapi import Depends
from pydantic import BaseModel

from cbcloud.core.database import Database, get_db
from cbcloud.domains.auth.dependencies import get_current_user_with_access
from cbcloud.domains.products.models import Product
from cbcloud.domains.products.service import authorize_product
from cbcloud.domains.users.models import User

from .models import AccessDecision, AccessLevel


class ProductAccessContext(BaseModel):
    """Principal, product and decision resolved for a product-scoped route."""

    principal: User
    product: Product
    decision: AccessDecision


def require_product_access(
    level: AccessLevel = AccessLevel.READ,
) -> Callable[..., Awaitable[ProductAccessContext]]:
    """
    Dependency factory for product-scoped routes.

    Creates a dependency that loads the product named by the ``product_id``
    path parameter and checks the current user holds ``level`` on it.

    Args:
        level: The minimum access level required

    Returns:
        Async dependency returning a ``ProductAccessContext``
    """

    async def check_product_access(
        product_id: str,
        user: User = Depends(get_current_user_with_access),
        db: Database = Depends(get_db),
    ) -> ProductAccessContext:
        product, decision = await authorize_product(db, user, product_id, level)
        return ProductAccessContext(principal=user, product=product, decision=decision)

    return check_product_access
