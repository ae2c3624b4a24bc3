# src/cbcloud/domains/auth/service.py
import logging
from datetime import timedelta

from cbcloud.core.database import Database, to_json
from cbcloud.core.settings import settings
from cbcloud.domains.users.models import Profile, User, UserResponse, UserRole
from cbcloud.domains.users.service import save_user
from cbcloud.shared.exceptions import (
    AccountLockedError,
    ConflictError,
    InactivePrincipalError,
    InvalidCredentialsError,
)
from cbcloud.shared.timeutils import utcnow

from .dependencies import authenticate_token
from .models import AuthResponse, LoginRequest, RegisterRequest, TokenResponse
from .passwords import hash_password, needs_rehash, verify_password
from .tokens import issue_access_token, issue_refresh_token
from .types import TokenType

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Database):
        self.db = db

    async def register(self, data: RegisterRequest) -> AuthResponse:
        """Create an account and return a fresh token pair."""
        existing = await self.db.user.find_first(
            where={
                "OR": [
                    {"email": data.email},
                    {"username": {"equals": data.username, "mode": "insensitive"}},
                ]
            }
        )
        if existing:
            if existing.email == data.email:
                raise ConflictError("User with this email already exists")
            raise ConflictError("Username is already taken")

        record = await self.db.user.create(
            data={
                "username": data.username,
                "email": data.email,
                "passwordHash": hash_password(data.password),
                "firstName": data.first_name,
                "lastName": data.last_name,
                "role": UserRole.USER.value,
                "friends": [],
                "productAccess": to_json([]),
                "productAccessIds": [],
                "pendingFriendRequests": to_json([]),
                "profile": to_json(Profile()),
            }
        )
        user = User.from_prisma(record)
        logger.info(f"Registered user {user.id}", extra={"user_id": user.id})
        return self._auth_response(user)

    async def login(self, credentials: LoginRequest) -> AuthResponse:
        """
        Verify credentials with lockout after repeated failures.

        Raises:
            InvalidCredentialsError: unknown email or wrong password
            AccountLockedError: too many recent failures
            InactivePrincipalError: account deactivated
        """
        record = await self.db.user.find_unique(where={"email": credentials.email})
        if not record:
            raise InvalidCredentialsError()
        user = User.from_prisma(record)

        now = utcnow()
        if user.is_locked(now):
            raise AccountLockedError()
        if not user.is_active:
            raise InactivePrincipalError()

        if not verify_password(user.password_hash, credentials.password):
            if user.lock_until is not None:
                # Previous lock has lapsed; start counting again.
                user.lock_until = None
                user.login_attempts = 0
            user.login_attempts += 1
            if user.login_attempts >= settings.MAX_LOGIN_ATTEMPTS:
                user.lock_until = now + timedelta(minutes=settings.LOCKOUT_MINUTES)
                logger.warning(
                    f"Locking user {user.id} after {user.login_attempts} failed logins",
                    extra={"user_id": user.id},
                )
            await save_user(self.db, user)
            raise InvalidCredentialsError()

        user.login_attempts = 0
        user.lock_until = None
        user.last_login = now
        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(credentials.password)
        user = await save_user(self.db, user)
        logger.info(f"User {user.id} logged in", extra={"user_id": user.id})
        return self._auth_response(user)

    async def refresh(self, refresh_token: str) -> TokenResponse:
        user = await authenticate_token(refresh_token, self.db, TokenType.REFRESH)
        return TokenResponse(
            access_token=issue_access_token(user.id, user.token_version),
            expires_in=settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600,
        )

    async def logout(self, user: User) -> None:
        """Revoke every outstanding token for ``user``."""
        user.token_version += 1
        await save_user(self.db, user)
        logger.info(f"User {user.id} logged out", extra={"user_id": user.id})

    def _auth_response(self, user: User) -> AuthResponse:
        return AuthResponse(
            access_token=issue_access_token(user.id, user.token_version),
            refresh_token=issue_refresh_token(user.id, user.token_version),
            expires_in=settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600,
            user=UserResponse.from_user(user),
        )
