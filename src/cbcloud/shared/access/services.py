"""Access control evaluator.

Pure functions over loaded documents. Each returns an ``AccessDecision``;
none of them touch the database. Precedence, first match wins:
public visibility, ownership, explicit grants, deny.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Mapping, Optional, Tuple

from cbcloud.shared.exceptions import AuthorizationError, LastAdminError, NotFoundError
from cbcloud.shared.timeutils import utcnow

from .models import (
    FAMILY_ROLE_PERMISSIONS,
    AccessDecision,
    AccessLevel,
    DenyReason,
    FamilyMember,
    FamilyPermission,
    FamilyPermissions,
    FamilyRole,
    GrantSource,
    ShareLevel,
)

if TYPE_CHECKING:
    from cbcloud.domains.clipboard.models import ClipboardEntry
    from cbcloud.domains.family.models import FamilyGroup
    from cbcloud.domains.products.models import Product
    from cbcloud.domains.users.models import User

_Candidate = Tuple[int, str, GrantSource]


def _decide(
    candidates: Iterable[_Candidate], requested_rank: int, saw_expired: bool
) -> AccessDecision:
    best: Optional[_Candidate] = None
    for candidate in candidates:
        if best is None or candidate[0] > best[0]:
            best = candidate
    if best is None:
        return AccessDecision.deny(
            DenyReason.EXPIRED if saw_expired else DenyReason.NO_ACCESS
        )
    rank, level, source = best
    if rank >= requested_rank:
        return AccessDecision.allow(level, source)
    return AccessDecision.deny(DenyReason.INSUFFICIENT_LEVEL, level=level)


def evaluate_product(
    principal: "User",
    product: Optional["Product"],
    requested: AccessLevel = AccessLevel.READ,
    now: Optional[datetime] = None,
) -> AccessDecision:
    """Decide whether ``principal`` holds ``requested`` on ``product``."""
    if product is None:
        return AccessDecision.deny(DenyReason.NOT_FOUND)
    if principal.id == product.owner_id:
        return AccessDecision.allow(AccessLevel.ADMIN.value, GrantSource.OWNER)

    now = now or utcnow()
    candidates: list[_Candidate] = []
    saw_expired = False
    if product.is_public:
        candidates.append((AccessLevel.READ.rank, "read", GrantSource.PUBLIC))
    for member in product.members:
        if member.user_id == principal.id:
            candidates.append((member.level.rank, member.level.value, GrantSource.GRANT))
    for entry in principal.product_access:
        if entry.product_id != product.id or not entry.active:
            continue
        if not entry.is_current(now):
            saw_expired = True
            continue
        candidates.append((entry.level.rank, entry.level.value, GrantSource.GRANT))
    return _decide(candidates, requested.rank, saw_expired)


def evaluate_entry(
    principal: "User",
    entry: Optional["ClipboardEntry"],
    requested: ShareLevel = ShareLevel.READ,
    now: Optional[datetime] = None,
) -> AccessDecision:
    """Decide whether ``principal`` holds ``requested`` on a clipboard entry.

    Product membership is checked separately by the caller; this only looks
    at the entry's own visibility and share list.
    """
    if entry is None:
        return AccessDecision.deny(DenyReason.NOT_FOUND)
    if principal.id == entry.created_by:
        return AccessDecision.allow(ShareLevel.WRITE.value, GrantSource.OWNER)
    now = now or utcnow()
    if entry.is_archived or (entry.expires_at is not None and entry.expires_at <= now):
        return AccessDecision.deny(DenyReason.EXPIRED)

    candidates: list[_Candidate] = []
    if entry.is_public:
        candidates.append((ShareLevel.READ.rank, "read", GrantSource.PUBLIC))
    for share in entry.shared_with:
        if share.user_id == principal.id:
            candidates.append((share.level.rank, share.level.value, GrantSource.GRANT))
    return _decide(candidates, requested.rank, saw_expired=False)


def evaluate_family_group(
    principal: "User",
    group: Optional["FamilyGroup"],
    requested: FamilyRole = FamilyRole.GUEST,
) -> AccessDecision:
    """Decide whether ``principal`` holds at least ``requested`` in a group."""
    if group is None:
        return AccessDecision.deny(DenyReason.NOT_FOUND)
    if principal.id == group.owner_id:
        return AccessDecision.allow(FamilyRole.OWNER.value, GrantSource.OWNER)
    candidates = [
        (member.role.rank, member.role.value, GrantSource.GRANT)
        for member in group.members
        if member.user_id == principal.id
    ]
    return _decide(candidates, requested.rank, saw_expired=False)


def require_allowed(
    decision: AccessDecision, resource: str = "Resource", hide: bool = True
) -> AccessDecision:
    """Turn a deny into the matching HTTP error.

    ``not_found`` always maps to 404. With ``hide`` set, denials that mean
    the record is invisible (``no_access``, ``expired``) also map to 404 so
    they stay indistinguishable from absent records; only
    ``insufficient_level`` becomes a 403. Without ``hide`` every deny other
    than ``not_found`` is a 403.
    """
    if decision.allowed:
        return decision
    if decision.reason == DenyReason.NOT_FOUND or (
        hide and decision.reason != DenyReason.INSUFFICIENT_LEVEL
    ):
        raise NotFoundError(resource)
    reason = decision.reason.value if decision.reason else DenyReason.NO_ACCESS.value
    raise AuthorizationError(f"Access denied to {resource.lower()}: {reason}")


def default_permissions(role: FamilyRole) -> FamilyPermissions:
    """Fresh permission bundle for ``role`` from the static role table."""
    granted = FAMILY_ROLE_PERMISSIONS.get(role, set())
    return FamilyPermissions(**{perm.value: True for perm in granted})


def has_family_permission(member: FamilyMember, permission: FamilyPermission) -> bool:
    return bool(getattr(member.permissions, permission.value))


def can_manage_member(actor_role: FamilyRole, target_role: FamilyRole) -> bool:
    """Owners manage everyone; admins manage members and guests only."""
    if actor_role == FamilyRole.OWNER:
        return True
    if actor_role == FamilyRole.ADMIN:
        return target_role.rank < FamilyRole.ADMIN.rank
    return False


def ensure_tier_retained(
    holder_ranks: Mapping[str, int],
    target_id: str,
    new_rank: Optional[int],
    top_rank: int,
    message: str,
) -> None:
    """
    Reject a demotion or removal that would leave no holder of the top tier.

    Args:
        holder_ranks: user id -> current rank for every listed member
        target_id: member being changed
        new_rank: rank after the change, or None for removal
        top_rank: rank of the protected tier
        message: error detail for the rejection

    Raises:
        LastAdminError: if ``target_id`` is the only top-tier holder
    """
    current = holder_ranks.get(target_id)
    if current is None or current < top_rank:
        return
    if new_rank is not None and new_rank >= top_rank:
        return
    others = sum(
        1 for user_id, rank in holder_ranks.items() if user_id != target_id and rank >= top_rank
    )
    if others == 0:
        raise LastAdminError(message)
