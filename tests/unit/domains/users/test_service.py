"""
Tests for UserService and the user endpoints.
"""

import pytest

from cbcloud.domains.users.models import ProfileUpdateRequest
from cbcloud.domains.users.service import UserService, get_user
from cbcloud.shared.exceptions import ConflictError, NotFoundError, ValidationError
from tests.fixtures.records import auth_headers_for, make_user, seed_user


@pytest.fixture
def service(fake_db):
    return UserService(fake_db)


class TestFriendRequests:
    @pytest.mark.asyncio
    async def test_request_accept_and_remove(self, service, fake_db):
        alice = await seed_user(fake_db, make_user("user-a"))
        await seed_user(fake_db, make_user("user-b"))

        request = await service.send_friend_request(alice, "user-b")
        bob = await get_user(fake_db, "user-b")
        assert [r.id for r in bob.pending_friend_requests] == [request.id]

        friend = await service.accept_friend_request(bob, request.id)
        assert friend.id == "user-a"
        assert (await get_user(fake_db, "user-a")).friends == ["user-b"]
        assert (await get_user(fake_db, "user-b")).friends == ["user-a"]

        alice = await get_user(fake_db, "user-a")
        await service.remove_friend(alice, "user-b")
        assert (await get_user(fake_db, "user-b")).friends == []

    @pytest.mark.asyncio
    async def test_duplicate_request(self, service, fake_db):
        alice = await seed_user(fake_db, make_user("user-a"))
        await seed_user(fake_db, make_user("user-b"))
        await service.send_friend_request(alice, "user-b")

        with pytest.raises(ConflictError):
            await service.send_friend_request(alice, "user-b")

    @pytest.mark.asyncio
    async def test_request_to_self(self, service):
        with pytest.raises(ValidationError):
            await service.send_friend_request(make_user("user-a"), "user-a")

    @pytest.mark.asyncio
    async def test_decline_unknown_request(self, service):
        with pytest.raises(NotFoundError):
            await service.decline_friend_request(make_user("user-a"), "missing")

    @pytest.mark.asyncio
    async def test_list_friends_with_pending(self, service, fake_db):
        alice = await seed_user(fake_db, make_user("user-a"))
        await seed_user(fake_db, make_user("user-b"))
        await service.send_friend_request(alice, "user-b")

        listing = await service.list_friends(await get_user(fake_db, "user-b"))

        assert listing.friends == []
        assert listing.pending_requests[0].sender.id == "user-a"


class TestProfileAndSearch:
    @pytest.mark.asyncio
    async def test_update_profile_keeps_unset_fields(self, service, fake_db):
        user = await seed_user(fake_db, make_user("user-a", first_name="Al"))

        response = await service.update_profile(user, ProfileUpdateRequest(bio="Hello"))

        assert response.first_name == "Al"
        assert response.profile.bio == "Hello"

    @pytest.mark.asyncio
    async def test_search_excludes_self_and_inactive(self, service, fake_db):
        me = await seed_user(fake_db, make_user("user-a", username="sam_one"))
        await seed_user(fake_db, make_user("user-b", username="sam_two"))
        await seed_user(fake_db, make_user("user-c", username="sam_gone", is_active=False))

        found = await service.search_users(me, "SAM")

        assert [u.id for u in found] == ["user-b"]

    @pytest.mark.asyncio
    async def test_search_query_too_short(self, service):
        with pytest.raises(ValidationError):
            await service.search_users(make_user("user-a"), " a ")


class TestFamilyGroupEndpoint:
    @pytest.mark.asyncio
    async def test_create_then_fetch(self, client, fake_db):
        user = await seed_user(fake_db, make_user("user-a"))
        headers = auth_headers_for(user)

        created = client.post(
            "/api/v1/users/family-group",
            json={"action": "create", "name": "Smiths"},
            headers=headers,
        )
        fetched = client.get("/api/v1/users/family-group", headers=headers)

        assert created.status_code == 200
        assert fetched.json()["family_group"]["name"] == "Smiths"

    @pytest.mark.asyncio
    async def test_create_without_name(self, client, fake_db):
        user = await seed_user(fake_db, make_user("user-a"))

        response = client.post(
            "/api/v1/users/family-group",
            json={"action": "create"},
            headers=auth_headers_for(user),
        )

        assert response.status_code == 400
