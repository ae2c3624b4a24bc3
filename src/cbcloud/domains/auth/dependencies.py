# src/cbcloud/domains/auth/dependencies.py
import logging
from typing import Optional

from fastapi import Depends, Header

from cbcloud.core.database import Database, get_db
from cbcloud.domains.users.models import User, UserRole
from cbcloud.domains.users.service import get_user
from cbcloud.shared.exceptions import (
    AuthorizationError,
    InactivePrincipalError,
    MissingTokenError,
    NoProductAccessError,
    TokenRevokedError,
)

from .tokens import decode_token
from .types import TokenType

logger = logging.getLogger(__name__)


def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    """Extract the bearer token from the Authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise MissingTokenError()
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise MissingTokenError()
    return token


async def authenticate_token(
    token: str, db: Database, token_type: TokenType = TokenType.ACCESS
) -> User:
    """
    Resolve a token to an active user.

    Order: signature, expiry, principal exists and is active, token version.
    """
    payload = decode_token(token, token_type)
    user = await get_user(db, payload.sub)
    if not user or not user.is_active:
        logger.info(f"Rejected token for missing or inactive user {payload.sub}")
        raise InactivePrincipalError()
    if payload.ver != user.token_version:
        raise TokenRevokedError()
    return user


async def get_current_user(
    token: str = Depends(get_bearer_token), db: Database = Depends(get_db)
) -> User:
    """Authenticated principal, for account-level routes."""
    return await authenticate_token(token, db)


async def get_current_user_with_access(
    user: User = Depends(get_current_user),
) -> User:
    """Authenticated principal holding at least one live product grant.

    Used on product-scoped routes; a principal with no grants is treated
    as unauthenticated there.
    """
    if not user.active_product_access():
        raise NoProductAccessError()
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required")
    return user
