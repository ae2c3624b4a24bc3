"""
End-to-end tests for the product endpoints.
"""

from datetime import timedelta

import pytest

from cbcloud.domains.clipboard.models import EntryType
from cbcloud.domains.products.models import ProductVisibility
from cbcloud.shared.access.models import AccessLevel, ShareLevel
from cbcloud.shared.timeutils import utcnow
from tests.fixtures.records import (
    auth_headers_for,
    make_entry,
    make_product,
    make_user,
    seed_entry,
    seed_product,
    seed_user,
)
from tests.helpers.sockets import RecordingSocket


class TestProductDetail:
    @pytest.mark.asyncio
    async def test_registered_product_is_visible_to_any_user(self, client, fake_db, stranger):
        await seed_user(fake_db, stranger)
        await seed_product(fake_db, make_product(access_level=ProductVisibility.REGISTERED))

        response = client.get("/api/v1/products/product-1", headers=auth_headers_for(stranger))

        assert response.status_code == 200
        assert response.json()["id"] == "product-1"
        assert response.json()["my_level"] is None

    @pytest.mark.asyncio
    async def test_invitee_sees_invite_only_product(self, client, fake_db):
        invitee = await seed_user(fake_db, make_user("user-d"))
        await seed_product(fake_db, make_product(invited={"user-d": AccessLevel.WRITE}))

        response = client.get("/api/v1/products/product-1", headers=auth_headers_for(invitee))

        assert response.status_code == 200
        assert response.json()["my_level"] is None

    @pytest.mark.asyncio
    async def test_invite_only_product_hidden_from_outsiders(self, client, fake_db, stranger):
        await seed_user(fake_db, stranger)
        await seed_product(fake_db, make_product())

        response = client.get("/api/v1/products/product-1", headers=auth_headers_for(stranger))

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_member_gets_their_level(self, client, fake_db, reader, product):
        await seed_user(fake_db, reader)
        await seed_product(fake_db, product)

        response = client.get("/api/v1/products/product-1", headers=auth_headers_for(reader))

        assert response.status_code == 200
        assert response.json()["my_level"] == "read"


class TestRealtimeMembership:
    @pytest.mark.asyncio
    async def test_removed_member_stops_receiving_events(
        self, client, fake_db, hub, owner, reader, product
    ):
        await seed_user(fake_db, owner)
        await seed_user(fake_db, reader)
        await seed_product(fake_db, product)
        removed, kept = RecordingSocket(), RecordingSocket()
        hub.join("product-1", removed, reader.id)
        hub.join("product-1", kept, owner.id)

        response = client.delete(
            f"/api/v1/products/product-1/members/{reader.id}", headers=auth_headers_for(owner)
        )

        assert response.status_code == 200
        assert hub.rooms_for(removed) == []
        assert hub.rooms_for(kept) == ["product-1"]

        client.post(
            "/api/v1/clipboard",
            json={"content": "after removal", "product_id": "product-1"},
            headers=auth_headers_for(owner),
        )
        assert removed.messages == []

    @pytest.mark.asyncio
    async def test_deleting_product_closes_its_room(self, client, fake_db, hub, owner):
        await seed_user(fake_db, owner)
        await seed_product(fake_db, make_product())
        hub.join("product-1", RecordingSocket(), owner.id)

        response = client.delete("/api/v1/products/product-1", headers=auth_headers_for(owner))

        assert response.status_code == 200
        assert hub.room_count == 0


class TestProductAnalytics:
    @pytest.mark.asyncio
    async def test_counts_by_day_type_and_user(self, client, fake_db, owner):
        writer = make_user("user-b", product_access=[])
        await seed_user(fake_db, owner)
        await seed_user(fake_db, writer)
        await seed_product(fake_db, make_product(members={writer.id: AccessLevel.WRITE}))
        await seed_entry(fake_db, make_entry("e-1"))
        await seed_entry(
            fake_db, make_entry("e-2", type=EntryType.LINK, content="https://example.com")
        )
        await seed_entry(fake_db, make_entry("e-3", created_by=writer.id, is_public=True))
        await seed_entry(fake_db, make_entry("e-4", created_by=writer.id))
        await seed_entry(
            fake_db, make_entry("old", created_at=utcnow() - timedelta(days=40))
        )

        response = client.get(
            "/api/v1/products/product-1/analytics?period=30d", headers=auth_headers_for(owner)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "30d"
        assert len(body["daily"]) == 1
        assert body["daily"][0]["total"] == 3
        assert {t["type"]: t["count"] for t in body["daily"][0]["types"]} == {
            "link": 1,
            "text": 2,
        }
        activity = {a["user_id"]: a["entries"] for a in body["user_activity"]}
        assert activity == {"user-a": 2, "user-b": 1}
        assert body["user_activity"][0]["username"] == "user_a"
        assert body["summary"] == {
            "total_entries": 3,
            "active_users": 2,
            "average_entries_per_user": 1.5,
        }

    @pytest.mark.asyncio
    async def test_readers_are_refused(self, client, fake_db, reader, product):
        await seed_user(fake_db, reader)
        await seed_product(fake_db, product)

        response = client.get(
            "/api/v1/products/product-1/analytics", headers=auth_headers_for(reader)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_period_is_rejected(self, client, fake_db, owner):
        await seed_user(fake_db, owner)
        await seed_product(fake_db, make_product())

        response = client.get(
            "/api/v1/products/product-1/analytics?period=1y", headers=auth_headers_for(owner)
        )

        assert response.status_code == 422


class TestProductExport:
    @pytest.mark.asyncio
    async def test_export_lists_readable_entries(self, client, fake_db, owner):
        await seed_user(fake_db, owner)
        await seed_product(fake_db, make_product())
        await seed_entry(
            fake_db,
            make_entry("e-1", tags=["work"], shared_with={"user-b": ShareLevel.READ}),
        )
        await seed_entry(fake_db, make_entry("hidden", created_by="user-b"))

        response = client.post("/api/v1/products/product-1/export", headers=auth_headers_for(owner))

        assert response.status_code == 200
        body = response.json()
        assert body["product"]["id"] == "product-1"
        assert [e["id"] for e in body["entries"]] == ["e-1"]
        entry = body["entries"][0]
        assert entry["content"] == "content of e-1"
        assert entry["created_by"] == "user_a"
        assert entry["shared_with_count"] == 1
        assert body["export_info"]["exported_by"] == owner.id
        assert body["export_info"]["format"] == "json"
        assert body["export_info"]["total_entries"] == 1

    @pytest.mark.asyncio
    async def test_export_without_content(self, client, fake_db, owner):
        await seed_user(fake_db, owner)
        await seed_product(fake_db, make_product())
        await seed_entry(fake_db, make_entry("e-1"))

        response = client.post(
            "/api/v1/products/product-1/export",
            json={"include_content": False},
            headers=auth_headers_for(owner),
        )

        assert response.status_code == 200
        assert response.json()["entries"][0]["content"] is None
        assert response.json()["export_info"]["include_content"] is False
