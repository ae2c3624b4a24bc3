# src/cbcloud/shared/exceptions.py
from typing import Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    """HTTP error carrying a machine-readable code for the error envelope."""

    code = "ERROR"

    def __init__(
        self, status_code: int, detail: str, code: Optional[str] = None
    ) -> None:
        super().__init__(status_code=status_code, detail=detail)
        if code:
            self.code = code


# Validation / Request Exceptions
class ValidationError(AppError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid request data") -> None:
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


# Authentication Exceptions
class AuthenticationError(AppError):
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(status.HTTP_401_UNAUTHORIZED, message)


class MissingTokenError(AuthenticationError):
    code = "TOKEN_MISSING"

    def __init__(self) -> None:
        super().__init__("Access token required")


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"

    def __init__(self) -> None:
        super().__init__("Token expired")


class InvalidTokenError(AuthenticationError):
    code = "TOKEN_INVALID"

    def __init__(self) -> None:
        super().__init__("Invalid token")


class TokenRevokedError(AuthenticationError):
    code = "TOKEN_REVOKED"

    def __init__(self) -> None:
        super().__init__("Token revoked")


class InactivePrincipalError(AuthenticationError):
    code = "USER_INACTIVE"

    def __init__(self) -> None:
        super().__init__("User not found or inactive")


class NoProductAccessError(AuthenticationError):
    code = "NO_PRODUCT_ACCESS"

    def __init__(self) -> None:
        super().__init__("No product access granted")


class InvalidCredentialsError(AuthenticationError):
    code = "INVALID_CREDENTIALS"

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class AccountLockedError(AuthenticationError):
    code = "ACCOUNT_LOCKED"

    def __init__(self) -> None:
        super().__init__(
            "Account temporarily locked due to too many failed login attempts"
        )


# Authorization Exceptions
class AuthorizationError(AppError):
    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(status.HTTP_403_FORBIDDEN, message)


# Resource Not Found Exceptions
class NotFoundError(AppError):
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found")


# Conflict Exceptions
class ConflictError(AppError):
    code = "CONFLICT"

    def __init__(self, message: str) -> None:
        super().__init__(status.HTTP_409_CONFLICT, message)


class LastAdminError(AppError):
    code = "LAST_ADMIN"

    def __init__(self, message: str) -> None:
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class InvitationExpiredError(AppError):
    code = "INVITATION_EXPIRED"

    def __init__(self) -> None:
        super().__init__(status.HTTP_400_BAD_REQUEST, "Invitation has expired")


# Unexpected failures
class InternalError(AppError):
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
