"""Auth domain type definitions for type safety."""

from enum import Enum

from pydantic import BaseModel, Field


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenPayload(BaseModel):
    """Claims carried by tokens issued by this service."""

    sub: str = Field(..., description="Subject (user ID)")
    iat: int = Field(..., description="Issued at timestamp")
    exp: int = Field(..., description="Expiration timestamp")
    type: TokenType = Field(TokenType.ACCESS, description="Token purpose")
    ver: int = Field(0, description="User token version at issue time")
    jti: str = Field(..., description="JWT ID")
