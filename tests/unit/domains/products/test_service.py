"""
Tests for ProductService against the in-memory database.
"""

from datetime import timedelta

import pytest

from cbcloud.domains.products.models import (
    MemberLevelUpdate,
    ProductCreate,
    ProductInviteRequest,
    ProductUpdate,
    ProductVisibility,
)
from cbcloud.domains.products.service import ProductService, get_product
from cbcloud.domains.users.service import get_user
from cbcloud.shared.access.models import AccessLevel
from cbcloud.shared.exceptions import (
    AuthorizationError,
    ConflictError,
    InvitationExpiredError,
    LastAdminError,
    NotFoundError,
    ValidationError,
)
from cbcloud.shared.timeutils import utcnow
from tests.fixtures.records import (
    grant,
    make_entry,
    make_product,
    make_user,
    seed_entry,
    seed_product,
    seed_user,
)


@pytest.fixture
def service(fake_db):
    return ProductService(fake_db)


class TestCreateProduct:
    @pytest.mark.asyncio
    async def test_owner_receives_admin_grant(self, service, fake_db):
        user = await seed_user(fake_db, make_user("user-a"))

        response = await service.create_product(user, ProductCreate(name="Team"))

        assert response.owner_id == "user-a"
        assert response.my_level == "admin"
        stored = await get_user(fake_db, "user-a")
        assert stored.access_for(response.id).level == AccessLevel.ADMIN

    @pytest.mark.asyncio
    async def test_duplicate_name_for_same_owner(self, service, fake_db):
        user = await seed_user(fake_db, make_user("user-a"))
        await service.create_product(user, ProductCreate(name="Team"))

        with pytest.raises(ConflictError):
            await service.create_product(user, ProductCreate(name="team"))


class TestUpdateProduct:
    @pytest.mark.asyncio
    async def test_reader_cannot_update(self, service, fake_db, reader, product):
        await seed_product(fake_db, product)

        with pytest.raises(AuthorizationError):
            await service.update_product(reader, product.id, ProductUpdate(name="New"))

    @pytest.mark.asyncio
    async def test_stranger_sees_not_found(self, service, fake_db, stranger, product):
        await seed_product(fake_db, product)

        with pytest.raises(NotFoundError):
            await service.update_product(stranger, product.id, ProductUpdate(name="New"))

    @pytest.mark.asyncio
    async def test_max_users_below_current_count(self, service, fake_db, owner, product):
        await seed_product(fake_db, product)

        with pytest.raises(ValidationError):
            await service.update_product(owner, product.id, ProductUpdate(max_users=1))

    @pytest.mark.asyncio
    async def test_empty_update(self, service, fake_db, owner, product):
        await seed_product(fake_db, product)

        with pytest.raises(ValidationError):
            await service.update_product(owner, product.id, ProductUpdate())


class TestInviteAndJoin:
    @pytest.mark.asyncio
    async def test_invite_then_join(self, service, fake_db, owner):
        await seed_product(fake_db, make_product())
        await seed_user(fake_db, make_user("user-b"))

        invitation = await service.invite_user(
            owner, "product-1", ProductInviteRequest(user_id="user-b", level=AccessLevel.WRITE)
        )
        assert invitation.level == AccessLevel.WRITE

        invitee = await get_user(fake_db, "user-b")
        assert invitee.access_for("product-1").expires_at == invitation.expires_at

        response = await service.join_product(invitee, "product-1")

        assert response.my_level == "write"
        product = await get_product(fake_db, "product-1")
        assert product.member("user-b").level == AccessLevel.WRITE
        assert product.invited_users == []
        joined = await get_user(fake_db, "user-b")
        assert joined.access_for("product-1").expires_at is None

    @pytest.mark.asyncio
    async def test_invite_existing_member(self, service, fake_db, owner, product, reader):
        await seed_product(fake_db, product)
        await seed_user(fake_db, reader)

        with pytest.raises(ConflictError):
            await service.invite_user(
                owner, product.id, ProductInviteRequest(user_id=reader.id)
            )

    @pytest.mark.asyncio
    async def test_join_with_expired_invitation(self, service, fake_db):
        product = make_product(invited={"user-b": AccessLevel.READ})
        product.invited_users[0].expires_at = utcnow() - timedelta(days=1)
        await seed_product(fake_db, product)
        invitee = await seed_user(fake_db, make_user("user-b"))

        with pytest.raises(InvitationExpiredError):
            await service.join_product(invitee, product.id)

        stored = await get_product(fake_db, product.id)
        assert stored.member("user-b") is None

    @pytest.mark.asyncio
    async def test_join_invite_only_without_invitation(self, service, fake_db):
        await seed_product(fake_db, make_product())
        user = await seed_user(fake_db, make_user("user-z"))

        with pytest.raises(AuthorizationError):
            await service.join_product(user, "product-1")

    @pytest.mark.asyncio
    async def test_join_public_product_at_read(self, service, fake_db):
        await seed_product(fake_db, make_product(access_level=ProductVisibility.PUBLIC))
        user = await seed_user(fake_db, make_user("user-z"))

        response = await service.join_product(user, "product-1")

        assert response.my_level == "read"

    @pytest.mark.asyncio
    async def test_join_full_product(self, service, fake_db):
        await seed_product(
            fake_db,
            make_product(
                access_level=ProductVisibility.PUBLIC,
                members={"user-b": AccessLevel.READ},
                max_users=2,
            ),
        )
        user = await seed_user(fake_db, make_user("user-z"))

        with pytest.raises(ConflictError):
            await service.join_product(user, "product-1")


class TestLastAdmin:
    @pytest.mark.asyncio
    async def test_demoting_sole_admin_is_rejected(self, service, fake_db, owner):
        product = make_product(members={"user-b": AccessLevel.ADMIN, "user-c": AccessLevel.READ})
        await seed_product(fake_db, product)

        with pytest.raises(LastAdminError):
            await service.update_member_level(
                owner, product.id, "user-b", MemberLevelUpdate(level=AccessLevel.READ)
            )

        stored = await get_product(fake_db, product.id)
        assert stored.member("user-b").level == AccessLevel.ADMIN

    @pytest.mark.asyncio
    async def test_removing_sole_admin_is_rejected(self, service, fake_db, owner):
        product = make_product(members={"user-b": AccessLevel.ADMIN})
        await seed_product(fake_db, product)

        with pytest.raises(LastAdminError):
            await service.remove_member(owner, product.id, "user-b")

        stored = await get_product(fake_db, product.id)
        assert [m.user_id for m in stored.members] == ["user-b"]

    @pytest.mark.asyncio
    async def test_demotion_allowed_with_second_admin(self, service, fake_db, owner):
        product = make_product(
            members={"user-b": AccessLevel.ADMIN, "user-c": AccessLevel.ADMIN}
        )
        await seed_product(fake_db, product)
        await seed_user(
            fake_db, make_user("user-b", product_access=[grant("product-1", AccessLevel.ADMIN)])
        )

        response = await service.update_member_level(
            owner, product.id, "user-b", MemberLevelUpdate(level=AccessLevel.WRITE)
        )

        levels = {m.user_id: m.level for m in response.members}
        assert levels["user-b"] == AccessLevel.WRITE
        demoted = await get_user(fake_db, "user-b")
        assert demoted.access_for("product-1").level == AccessLevel.WRITE

    @pytest.mark.asyncio
    async def test_member_can_leave(self, service, fake_db, product, reader):
        await seed_product(fake_db, product)
        await seed_user(fake_db, reader)

        await service.remove_member(reader, product.id, reader.id)

        stored = await get_product(fake_db, product.id)
        assert stored.members == []
        left = await get_user(fake_db, reader.id)
        assert left.access_for(product.id) is None


class TestDeleteProduct:
    @pytest.mark.asyncio
    async def test_rejected_while_members_remain(self, service, fake_db, owner, product):
        await seed_product(fake_db, product)

        with pytest.raises(ValidationError):
            await service.delete_product(owner, product.id)

    @pytest.mark.asyncio
    async def test_owner_deletes_empty_product(self, service, fake_db, owner):
        await seed_product(fake_db, make_product())
        await seed_user(fake_db, owner)
        await seed_entry(fake_db, make_entry())

        await service.delete_product(owner, "product-1")

        assert await get_product(fake_db, "product-1") is None
        stored = await get_user(fake_db, owner.id)
        assert stored.access_for("product-1") is None
        assert fake_db.clipboardentry.records[0].isArchived is True

    @pytest.mark.asyncio
    async def test_only_owner_may_delete(self, service, fake_db):
        await seed_product(fake_db, make_product(members={"user-b": AccessLevel.ADMIN}))
        admin = make_user("user-b", product_access=[grant("product-1", AccessLevel.ADMIN)])

        with pytest.raises(AuthorizationError):
            await service.delete_product(admin, "product-1")

    @pytest.mark.asyncio
    async def test_missing_product(self, service, fake_db, owner):
        with pytest.raises(NotFoundError):
            await service.delete_product(owner, "product-404")


class TestProductDocument:
    def test_owner_is_counted_but_not_listed(self):
        product = make_product(members={"user-b": AccessLevel.READ})

        assert product.user_count == 2
        assert product.member("user-a") is None
