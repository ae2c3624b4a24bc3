"""
Tests for the authentication dependencies.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from cbcloud.domains.auth.dependencies import (
    authenticate_token,
    get_bearer_token,
    get_current_user_with_access,
    require_admin,
)
from cbcloud.domains.auth.tokens import issue_access_token
from cbcloud.domains.users.models import UserRole
from cbcloud.shared.access.models import AccessLevel
from cbcloud.shared.exceptions import (
    AuthorizationError,
    InactivePrincipalError,
    MissingTokenError,
    NoProductAccessError,
    TokenRevokedError,
)
from cbcloud.shared.timeutils import utcnow
from tests.fixtures.records import grant, make_user


def user_record(user, **overrides):
    data = {"id": user.id, "createdAt": None, **user.to_prisma(), **overrides}
    return SimpleNamespace(**data)


class TestGetBearerToken:
    def test_extracts_token(self):
        assert get_bearer_token("Bearer abc.def") == "abc.def"

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Bearer   "])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(MissingTokenError):
            get_bearer_token(header)


class TestAuthenticateToken:
    @pytest.mark.asyncio
    async def test_resolves_active_user(self, mock_prisma, owner):
        mock_prisma.user.find_unique.return_value = user_record(owner)

        user = await authenticate_token(issue_access_token(owner.id), mock_prisma)

        assert user.id == owner.id
        mock_prisma.user.find_unique.assert_awaited_once_with(where={"id": owner.id})

    @pytest.mark.asyncio
    async def test_unknown_user(self, mock_prisma):
        mock_prisma.user.find_unique.return_value = None

        with pytest.raises(InactivePrincipalError) as exc_info:
            await authenticate_token(issue_access_token("ghost"), mock_prisma)
        assert exc_info.value.detail == "User not found or inactive"

    @pytest.mark.asyncio
    async def test_deactivated_user(self, mock_prisma, owner):
        mock_prisma.user.find_unique.return_value = user_record(owner, isActive=False)
        token = issue_access_token(owner.id, issued_at=utcnow() - timedelta(hours=1))

        with pytest.raises(InactivePrincipalError):
            await authenticate_token(token, mock_prisma)

    @pytest.mark.asyncio
    async def test_token_version_mismatch_is_revoked(self, mock_prisma, owner):
        mock_prisma.user.find_unique.return_value = user_record(owner, tokenVersion=2)

        with pytest.raises(TokenRevokedError):
            await authenticate_token(issue_access_token(owner.id, 1), mock_prisma)


class TestProductScopedDependencies:
    @pytest.mark.asyncio
    async def test_user_with_grant_passes(self, owner):
        assert await get_current_user_with_access(owner) is owner

    @pytest.mark.asyncio
    async def test_user_without_grants_is_unauthenticated(self):
        with pytest.raises(NoProductAccessError) as exc_info:
            await get_current_user_with_access(make_user("user-z"))
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_only_expired_grants_count_as_none(self):
        user = make_user(
            "user-z",
            product_access=[
                grant("product-1", AccessLevel.WRITE, expires_at=utcnow() - timedelta(days=1))
            ],
        )

        with pytest.raises(NoProductAccessError):
            await get_current_user_with_access(user)

    @pytest.mark.asyncio
    async def test_require_admin(self):
        admin = make_user("admin-1", role=UserRole.ADMIN)
        assert await require_admin(admin) is admin

        with pytest.raises(AuthorizationError):
            await require_admin(make_user("user-z"))
