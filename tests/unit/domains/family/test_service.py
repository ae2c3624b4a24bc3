"""
Tests for FamilyGroupService.
"""

from datetime import timedelta

import pytest

from cbcloud.domains.family.models import FamilyInviteRequest, MemberRoleUpdate
from cbcloud.domains.family.service import (
    FamilyGroupService,
    generate_invite_code,
    get_family_group,
)
from cbcloud.domains.users.models import UserRole
from cbcloud.domains.users.service import get_user
from cbcloud.shared.access.models import (
    FamilyInvitation,
    FamilyPermissions,
    FamilyRole,
    InvitationStatus,
)
from cbcloud.shared.access.services import default_permissions
from cbcloud.shared.exceptions import (
    AuthorizationError,
    ConflictError,
    InvitationExpiredError,
    LastAdminError,
    NotFoundError,
)
from cbcloud.shared.timeutils import utcnow
from tests.fixtures.records import make_family_group, make_user, seed_family_group, seed_user


@pytest.fixture
def service(fake_db):
    return FamilyGroupService(fake_db)


def invitation(email, expires_in=timedelta(days=7), role=FamilyRole.MEMBER):
    return FamilyInvitation(
        id="invite-1",
        email=email,
        role=role,
        invited_by="user-a",
        expires_at=utcnow() + expires_in,
    )


class TestCreateAndJoin:
    @pytest.mark.asyncio
    async def test_create_makes_caller_owner(self, service, fake_db):
        user = await seed_user(fake_db, make_user("user-a"))

        group = await service.create_group(user, "  The Smiths ")

        assert group.name == "The Smiths"
        assert group.owner_id == "user-a"
        assert group.my_role == FamilyRole.OWNER
        assert group.invite_code
        stored = await get_user(fake_db, "user-a")
        assert stored.family_group_id == group.id
        assert stored.role == UserRole.FAMILY

    @pytest.mark.asyncio
    async def test_create_while_in_a_group(self, service, fake_db):
        user = make_user("user-a", family_group_id="group-9")

        with pytest.raises(ConflictError):
            await service.create_group(user, "Second")

    @pytest.mark.asyncio
    async def test_join_by_code(self, service, fake_db):
        await seed_family_group(fake_db, make_family_group(invite_code="JOINME12"))
        user = await seed_user(fake_db, make_user("user-b"))

        group = await service.join_by_code(user, "JOINME12")

        assert group.my_role == FamilyRole.MEMBER
        assert group.invite_code is None
        assert group.member_count == 2

    @pytest.mark.asyncio
    async def test_join_unknown_code(self, service, fake_db):
        with pytest.raises(NotFoundError):
            await service.join_by_code(make_user("user-b"), "NOPE")

    def test_invite_code_shape(self):
        code = generate_invite_code()

        assert len(code) == 8
        assert code == code.upper()


class TestInvitations:
    @pytest.mark.asyncio
    async def test_invite_requires_permission(self, service, fake_db):
        await seed_family_group(fake_db, make_family_group(members={"user-b": FamilyRole.MEMBER}))

        with pytest.raises(AuthorizationError):
            await service.invite(
                make_user("user-b"), "group-1", FamilyInviteRequest(email="x@example.com")
            )

    @pytest.mark.asyncio
    async def test_duplicate_pending_invitation(self, service, fake_db):
        await seed_family_group(fake_db, make_family_group())
        owner = make_user("user-a")
        await service.invite(owner, "group-1", FamilyInviteRequest(email="X@example.com"))

        with pytest.raises(ConflictError):
            await service.invite(owner, "group-1", FamilyInviteRequest(email="x@example.com"))

    @pytest.mark.asyncio
    async def test_accept_adds_member_with_role_defaults(self, service, fake_db):
        await seed_family_group(
            fake_db,
            make_family_group(
                invitations=[invitation("b@example.com", role=FamilyRole.GUEST)]
            ),
        )
        user = await seed_user(fake_db, make_user("user-b", email="b@example.com"))

        group = await service.accept_invitation(user, "group-1")

        assert group.my_role == FamilyRole.GUEST
        stored = await get_family_group(fake_db, "group-1")
        assert stored.member("user-b").permissions == FamilyPermissions()
        assert stored.pending_invitations[0].status == InvitationStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_accept_after_expiry_marks_expired(self, service, fake_db):
        await seed_family_group(
            fake_db,
            make_family_group(
                invitations=[invitation("b@example.com", expires_in=-timedelta(minutes=1))]
            ),
        )
        user = await seed_user(fake_db, make_user("user-b", email="b@example.com"))

        with pytest.raises(InvitationExpiredError):
            await service.accept_invitation(user, "group-1")

        stored = await get_family_group(fake_db, "group-1")
        assert stored.pending_invitations[0].status == InvitationStatus.EXPIRED
        assert stored.member("user-b") is None

        with pytest.raises(NotFoundError):
            await service.accept_invitation(user, "group-1")

    @pytest.mark.asyncio
    async def test_accept_when_full(self, service, fake_db):
        group = make_family_group(invitations=[invitation("b@example.com")])
        group.settings.max_members = 1
        await seed_family_group(fake_db, group)
        user = await seed_user(fake_db, make_user("user-b", email="b@example.com"))

        with pytest.raises(ConflictError):
            await service.accept_invitation(user, "group-1")

    @pytest.mark.asyncio
    async def test_decline(self, service, fake_db):
        await seed_family_group(
            fake_db, make_family_group(invitations=[invitation("b@example.com")])
        )

        await service.decline_invitation(make_user("user-b", email="b@example.com"), "group-1")

        stored = await get_family_group(fake_db, "group-1")
        assert stored.pending_invitations[0].status == InvitationStatus.DECLINED


class TestRoles:
    @pytest.mark.asyncio
    async def test_role_change_resets_permissions(self, service, fake_db):
        group = make_family_group(members={"user-b": FamilyRole.ADMIN})
        # Custom permissions must not survive a role change.
        group.member("user-b").permissions = FamilyPermissions(
            can_invite=True, can_manage_members=True, can_view_all=True, can_share=True
        )
        await seed_family_group(fake_db, group)

        await service.update_member_role(
            make_user("user-a"), "group-1", "user-b", MemberRoleUpdate(role=FamilyRole.GUEST)
        )

        stored = await get_family_group(fake_db, "group-1")
        assert stored.member("user-b").role == FamilyRole.GUEST
        assert stored.member("user-b").permissions == default_permissions(FamilyRole.GUEST)

    @pytest.mark.asyncio
    async def test_sole_owner_cannot_be_demoted(self, service, fake_db):
        await seed_family_group(fake_db, make_family_group(members={"user-b": FamilyRole.ADMIN}))

        with pytest.raises(LastAdminError) as exc_info:
            await service.update_member_role(
                make_user("user-a"), "group-1", "user-a", MemberRoleUpdate(role=FamilyRole.ADMIN)
            )
        assert exc_info.value.detail == "Cannot remove the last owner from the family group"

        stored = await get_family_group(fake_db, "group-1")
        assert stored.member("user-a").role == FamilyRole.OWNER

    @pytest.mark.asyncio
    async def test_sole_owner_cannot_leave(self, service, fake_db):
        await seed_family_group(fake_db, make_family_group(members={"user-b": FamilyRole.MEMBER}))

        with pytest.raises(LastAdminError):
            await service.remove_member(make_user("user-a"), "group-1", "user-a")

        stored = await get_family_group(fake_db, "group-1")
        assert len(stored.members) == 2

    @pytest.mark.asyncio
    async def test_ownership_moves_when_owner_steps_down(self, service, fake_db):
        await seed_family_group(fake_db, make_family_group(members={"user-b": FamilyRole.OWNER}))

        await service.update_member_role(
            make_user("user-a"), "group-1", "user-a", MemberRoleUpdate(role=FamilyRole.ADMIN)
        )

        stored = await get_family_group(fake_db, "group-1")
        assert stored.owner_id == "user-b"

    @pytest.mark.asyncio
    async def test_admin_cannot_promote_to_owner(self, service, fake_db):
        await seed_family_group(
            fake_db,
            make_family_group(members={"user-b": FamilyRole.ADMIN, "user-c": FamilyRole.MEMBER}),
        )

        with pytest.raises(AuthorizationError):
            await service.update_member_role(
                make_user("user-b"), "group-1", "user-c", MemberRoleUpdate(role=FamilyRole.OWNER)
            )

    @pytest.mark.asyncio
    async def test_admin_removes_member(self, service, fake_db):
        await seed_family_group(
            fake_db,
            make_family_group(members={"user-b": FamilyRole.ADMIN, "user-c": FamilyRole.MEMBER}),
        )
        await seed_user(
            fake_db, make_user("user-c", role=UserRole.FAMILY, family_group_id="group-1")
        )

        await service.remove_member(make_user("user-b"), "group-1", "user-c")

        stored = await get_family_group(fake_db, "group-1")
        assert stored.member("user-c") is None
        removed = await get_user(fake_db, "user-c")
        assert removed.family_group_id is None
        assert removed.role == UserRole.USER

    @pytest.mark.asyncio
    async def test_stranger_sees_not_found(self, service, fake_db):
        await seed_family_group(fake_db, make_family_group())

        with pytest.raises(NotFoundError):
            await service.get_group(make_user("user-z"), "group-1")

    @pytest.mark.asyncio
    async def test_missing_group(self, service, fake_db):
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_group(make_user("user-a"), "group-404")
        assert exc_info.value.status_code == 404
