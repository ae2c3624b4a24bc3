"""
Tests for ShareService.
"""

import pytest

from cbcloud.domains.clipboard.service import get_entry
from cbcloud.domains.shares.models import ShareCreate, ShareUpdate
from cbcloud.domains.shares.service import ShareService
from cbcloud.domains.users.service import get_user
from cbcloud.shared.access.models import AccessLevel, ShareLevel
from cbcloud.shared.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from tests.fixtures.records import (
    make_entry,
    make_product,
    make_user,
    seed_entry,
    seed_product,
    seed_user,
)


@pytest.fixture
def service(fake_db):
    return ShareService(fake_db)


async def seed_scenario(fake_db, owner, reader):
    await seed_user(fake_db, owner)
    await seed_user(fake_db, reader)
    await seed_product(fake_db, make_product(members={reader.id: AccessLevel.READ}))
    await seed_entry(fake_db, make_entry(created_by=owner.id))


class TestShareEntry:
    @pytest.mark.asyncio
    async def test_sharing_twice_updates_in_place(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)

        first = await service.share_entry(
            owner, ShareCreate(entry_id="entry-1", user_id=reader.id)
        )
        second = await service.share_entry(
            owner,
            ShareCreate(entry_id="entry-1", user_id=reader.id, access_level=ShareLevel.WRITE),
        )

        assert first.created is True
        assert second.created is False
        entry = await get_entry(fake_db, "entry-1")
        assert len(entry.shared_with) == 1
        assert entry.shared_with[0].level == ShareLevel.WRITE
        assert entry.shared_with[0].granted_at >= first.granted_at

    @pytest.mark.asyncio
    async def test_cannot_share_with_self(self, service, owner):
        with pytest.raises(ValidationError):
            await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=owner.id))

    @pytest.mark.asyncio
    async def test_read_grantee_cannot_reshare(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)
        await seed_user(fake_db, make_user("user-d"))
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=reader.id))

        with pytest.raises(AuthorizationError):
            await service.share_entry(
                reader, ShareCreate(entry_id="entry-1", user_id="user-d")
            )

    @pytest.mark.asyncio
    async def test_unknown_target(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)

        with pytest.raises(NotFoundError):
            await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id="ghost"))

    @pytest.mark.asyncio
    async def test_outsider_receives_read_grant_on_product(
        self, service, fake_db, owner, reader, stranger
    ):
        await seed_scenario(fake_db, owner, reader)
        await seed_user(fake_db, stranger)

        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=stranger.id))

        stored = await get_user(fake_db, stranger.id)
        assert stored.access_for("product-1").level == AccessLevel.READ
        assert stored.access_for("product-2").level == AccessLevel.WRITE


class TestUpdateAndRemoveShare:
    @pytest.mark.asyncio
    async def test_update_missing_share(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)

        with pytest.raises(NotFoundError) as exc_info:
            await service.update_share(
                owner, "entry-1", reader.id, ShareUpdate(access_level=ShareLevel.WRITE)
            )
        assert exc_info.value.detail == "Share not found"

    @pytest.mark.asyncio
    async def test_update_level(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=reader.id))

        result = await service.update_share(
            owner, "entry-1", reader.id, ShareUpdate(access_level=ShareLevel.WRITE)
        )

        assert result.access_level == ShareLevel.WRITE
        assert result.created is False

    @pytest.mark.asyncio
    async def test_grantee_can_drop_own_share(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=reader.id))

        entry = await service.remove_share(reader, "entry-1", reader.id)

        assert entry.shared_with == []

    @pytest.mark.asyncio
    async def test_remove_missing_share(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)

        with pytest.raises(NotFoundError):
            await service.remove_share(owner, "entry-1", reader.id)


class TestListingsAndStats:
    @pytest.mark.asyncio
    async def test_received_and_sent(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)
        await seed_entry(fake_db, make_entry("unshared", created_by=owner.id))
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=reader.id))

        received = await service.list_received(reader)
        sent = await service.list_sent(owner)

        assert [e.id for e in received.shared_entries] == ["entry-1"]
        assert received.shared_entries[0].created_by.id == owner.id
        assert [e.id for e in sent.shared_entries] == ["entry-1"]
        assert (await service.list_sent(reader)).shared_entries == []

    @pytest.mark.asyncio
    async def test_stats(self, service, fake_db, owner, reader):
        await seed_scenario(fake_db, owner, reader)
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=reader.id))

        stats = await service.get_stats(owner, "product-1")

        assert stats.stats.sent_shares == 1
        assert stats.stats.received_shares == 0
        assert stats.stats.total_shares == 1
        assert [e.id for e in stats.recent_shares] == ["entry-1"]

    @pytest.mark.asyncio
    async def test_analytics(self, service, fake_db, owner, reader, stranger):
        await seed_scenario(fake_db, owner, reader)
        await seed_user(fake_db, stranger)
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=reader.id))
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=stranger.id))

        analytics = await service.get_analytics(owner, period="7d")

        assert analytics.summary.total_shares == 2
        assert analytics.summary.total_entries == 1
        assert analytics.summary.average_shares_per_entry == 2.0
        assert analytics.top_shared[0].shared_count == 2
        assert len(analytics.sharing) == 1

    @pytest.mark.asyncio
    async def test_details_hide_other_grantees_from_readers(
        self, service, fake_db, owner, reader, stranger
    ):
        await seed_scenario(fake_db, owner, reader)
        await seed_user(fake_db, stranger)
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=reader.id))
        await service.share_entry(owner, ShareCreate(entry_id="entry-1", user_id=stranger.id))

        owner_view = await service.get_details(owner, "entry-1")
        reader_view = await service.get_details(reader, "entry-1")

        assert len(owner_view.shared_with) == 2
        assert [s.user_id for s in reader_view.shared_with] == [reader.id]
