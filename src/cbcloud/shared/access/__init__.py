"""
Access control for products, clipboard entries and family groups.

The evaluator functions are pure: they take loaded documents and return an
``AccessDecision``. Resource services call them before any mutation and
translate denials with ``require_allowed``.

Usage:
    from cbcloud.shared.access import AccessLevel, require_product_access

    @router.get("/{product_id}/stats")
    async def get_stats(
        access: ProductAccessContext = Depends(
            require_product_access(AccessLevel.READ)
        )
    ):
        pass
"""

from .models import (
    FAMILY_ROLE_PERMISSIONS,
    AccessDecision,
    AccessLevel,
    DenyReason,
    FamilyPermission,
    FamilyRole,
    GrantSource,
    ShareLevel,
)
from .services import (
    can_manage_member,
    default_permissions,
    ensure_tier_retained,
    evaluate_entry,
    evaluate_family_group,
    evaluate_product,
    has_family_permission,
    require_allowed,
)

__all__ = [
    "AccessDecision",
    "AccessLevel",
    "DenyReason",
    "FAMILY_ROLE_PERMISSIONS",
    "FamilyPermission",
    "FamilyRole",
    "GrantSource",
    "ShareLevel",
    "can_manage_member",
    "default_permissions",
    "ensure_tier_retained",
    "evaluate_entry",
    "evaluate_family_group",
    "evaluate_product",
    "has_family_permission",
    "require_allowed",
]
