"""Visibility rules expressed as query filters.

Listings must never load records the principal cannot read and filter
them afterwards; these builders put the rule into the ``where`` clause.
"""

from datetime import datetime
from typing import Any, Optional

from cbcloud.shared.timeutils import utcnow


def visible_entries_where(
    principal_id: str, product_id: Optional[str] = None, now: Optional[datetime] = None
) -> dict[str, Any]:
    """
    Entries the principal can read: all of their own, plus live entries
    that are public or shared with them.

    Creators keep their expired and archived entries, matching
    ``evaluate_entry``; everyone else only sees live ones.
    """
    now = now or utcnow()
    live = {
        "isArchived": False,
        "OR": [{"expiresAt": None}, {"expiresAt": {"gt": now}}],
    }
    granted = {"OR": [{"isPublic": True}, {"sharedWithIds": {"has": principal_id}}]}
    where: dict[str, Any] = {
        "AND": [{"OR": [{"createdById": principal_id}, {"AND": [live, granted]}]}],
    }
    if product_id is not None:
        where["productId"] = product_id
    return where


def visible_products_where(principal_id: str) -> dict[str, Any]:
    """Products the principal owns, belongs to, or has been invited to."""
    return {
        "OR": [
            {"ownerId": principal_id},
            {"memberIds": {"has": principal_id}},
            {"invitedUserIds": {"has": principal_id}},
        ]
    }
