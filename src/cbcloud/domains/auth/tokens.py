# src/cbcloud/domains/auth/tokens.py
import uuid
from datetime import datetime, timedelta
from typing import Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from cbcloud.core.settings import settings
from cbcloud.shared.exceptions import InvalidTokenError, TokenExpiredError
from cbcloud.shared.timeutils import utcnow

from .types import TokenPayload, TokenType


def _issue(
    user_id: str,
    token_version: int,
    token_type: TokenType,
    lifetime: timedelta,
    issued_at: Optional[datetime],
) -> str:
    issued_at = issued_at or utcnow()
    payload = {
        "sub": user_id,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
        "type": token_type.value,
        "ver": token_version,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def issue_access_token(
    user_id: str, token_version: int = 0, issued_at: Optional[datetime] = None
) -> str:
    return _issue(
        user_id,
        token_version,
        TokenType.ACCESS,
        timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
        issued_at,
    )


def issue_refresh_token(
    user_id: str, token_version: int = 0, issued_at: Optional[datetime] = None
) -> str:
    return _issue(
        user_id,
        token_version,
        TokenType.REFRESH,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        issued_at,
    )


def decode_token(
    token: str, expected_type: TokenType = TokenType.ACCESS
) -> TokenPayload:
    """
    Verify signature then expiry, and return the typed claims.

    Raises:
        TokenExpiredError: signature is valid but ``exp`` has passed
        InvalidTokenError: anything else (bad signature, malformed, wrong type)
    """
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "iat", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.PyJWTError:
        raise InvalidTokenError()

    try:
        payload = TokenPayload(**claims)
    except PydanticValidationError:
        raise InvalidTokenError()
    if payload.type != expected_type:
        raise InvalidTokenError()
    return payload
