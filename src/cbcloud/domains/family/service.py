# src/cbcloud/domains/family/service.py
import logging
import secrets
import uuid
from datetime import timedelta
from typing import Optional

from cbcloud.core.database import Database, to_json
from cbcloud.core.settings import settings
from cbcloud.domains.family.models import (
    FamilyGroup,
    FamilyGroupResponse,
    FamilyInviteRequest,
    FamilyMemberResponse,
    FamilySettings,
    MemberRoleUpdate,
)
from cbcloud.domains.users.models import User, UserRole, UserSummary
from cbcloud.domains.users.service import get_user, get_users, save_user
from cbcloud.shared.access.models import (
    AccessDecision,
    FamilyInvitation,
    FamilyMember,
    FamilyPermission,
    FamilyRole,
    InvitationStatus,
)
from cbcloud.shared.access.services import (
    can_manage_member,
    default_permissions,
    ensure_tier_retained,
    evaluate_family_group,
    has_family_permission,
    require_allowed,
)
from cbcloud.shared.exceptions import (
    AuthorizationError,
    ConflictError,
    InvitationExpiredError,
    NotFoundError,
    ValidationError,
)
from cbcloud.shared.timeutils import utcnow

logger = logging.getLogger(__name__)

LAST_OWNER_MESSAGE = "Cannot remove the last owner from the family group"
GROUP = "Family group"


def generate_invite_code() -> str:
    return secrets.token_hex(4).upper()


async def get_family_group(db: Database, group_id: str) -> Optional[FamilyGroup]:
    record = await db.familygroup.find_unique(where={"id": group_id})
    return FamilyGroup.from_prisma(record) if record else None


async def save_family_group(db: Database, group: FamilyGroup) -> FamilyGroup:
    """Persist the whole group document in one update."""
    record = await db.familygroup.update(where={"id": group.id}, data=group.to_prisma())
    return FamilyGroup.from_prisma(record) if record else group


class FamilyGroupService:
    def __init__(self, db: Database):
        self.db = db

    async def create_group(
        self, user: User, name: str, description: Optional[str] = None
    ) -> FamilyGroupResponse:
        """Create a group with ``user`` as its owner."""
        if user.family_group_id:
            raise ConflictError("Already a member of a family group")
        name = name.strip()
        existing = await self.db.familygroup.find_first(
            where={"name": {"equals": name, "mode": "insensitive"}}
        )
        if existing:
            raise ConflictError("Family group name already exists")

        owner = FamilyMember(
            user_id=user.id,
            role=FamilyRole.OWNER,
            permissions=default_permissions(FamilyRole.OWNER),
        )
        record = await self.db.familygroup.create(
            data={
                "name": name,
                "description": description,
                "ownerId": user.id,
                "inviteCode": generate_invite_code(),
                "members": to_json([owner]),
                "memberIds": [user.id],
                "pendingInvitations": to_json([]),
                "settings": to_json(FamilySettings()),
            }
        )
        group = FamilyGroup.from_prisma(record)

        self._enter_group(user, group.id)
        await save_user(self.db, user)
        logger.info(f"Family group {group.id} created by {user.id}", extra={"user_id": user.id})
        return await self._response(user, group)

    async def get_for_user(self, user: User) -> Optional[FamilyGroupResponse]:
        if not user.family_group_id:
            return None
        group = await get_family_group(self.db, user.family_group_id)
        if group is None or not group.member(user.id):
            return None
        return await self._response(user, group)

    async def get_group(self, user: User, group_id: str) -> FamilyGroupResponse:
        group, _ = await self._authorize(user, group_id)
        return await self._response(user, group)

    async def join_by_code(self, user: User, invite_code: str) -> FamilyGroupResponse:
        if user.family_group_id:
            raise ConflictError("Already a member of a family group")
        record = await self.db.familygroup.find_unique(where={"inviteCode": invite_code})
        if not record:
            raise NotFoundError(GROUP)
        group = FamilyGroup.from_prisma(record)
        if group.member(user.id):
            raise ConflictError("Already a member of this family group")
        if not group.can_accept_members:
            raise ConflictError("Family group is not accepting new members")

        group.add_member(user.id, FamilyRole.MEMBER)
        group = await save_family_group(self.db, group)
        self._enter_group(user, group.id)
        await save_user(self.db, user)
        logger.info(f"User {user.id} joined family group {group.id}", extra={"user_id": user.id})
        return await self._response(user, group)

    async def invite(
        self, user: User, group_id: str, request: FamilyInviteRequest
    ) -> FamilyInvitation:
        """Invite an e-mail address. Requires the invite permission."""
        group, _ = await self._authorize(user, group_id)
        actor = group.member(user.id)
        if actor is None or not has_family_permission(actor, FamilyPermission.INVITE):
            raise AuthorizationError("Insufficient permissions to invite members")
        if not group.can_accept_members:
            raise ValidationError("Group cannot accept new members")

        now = utcnow()
        existing = group.pending_invitation(request.email)
        if existing and existing.expires_at > now:
            raise ConflictError("Invitation already sent to this email")
        if existing:
            existing.status = InvitationStatus.EXPIRED

        invitee = await self.db.user.find_unique(where={"email": request.email})
        if invitee and group.member(invitee.id):
            raise ConflictError("User is already a member of this family group")

        invitation = FamilyInvitation(
            id=str(uuid.uuid4()),
            email=request.email,
            role=request.role,
            invited_by=user.id,
            invited_at=now,
            expires_at=now + timedelta(days=settings.INVITATION_TTL_DAYS),
            message=request.message,
        )
        group.pending_invitations.append(invitation)
        await save_family_group(self.db, group)
        logger.info(
            f"Invitation {invitation.id} to family group {group.id} sent",
            extra={"user_id": user.id},
        )
        return invitation

    async def accept_invitation(self, user: User, group_id: str) -> FamilyGroupResponse:
        """
        Accept the pending invitation addressed to the user's e-mail.

        An expired invitation is marked expired and stays that way.
        """
        group = await get_family_group(self.db, group_id)
        invitation = group.pending_invitation(user.email) if group else None
        if group is None or invitation is None:
            raise NotFoundError("Invitation")

        if invitation.expires_at <= utcnow():
            invitation.status = InvitationStatus.EXPIRED
            await save_family_group(self.db, group)
            logger.warning(
                f"Expired invitation {invitation.id} to family group {group.id} rejected",
                extra={"user_id": user.id},
            )
            raise InvitationExpiredError()
        if group.member(user.id) or user.family_group_id:
            raise ConflictError("Already a member of a family group")
        if group.is_full:
            raise ConflictError("Family group is full")

        invitation.status = InvitationStatus.ACCEPTED
        group.add_member(user.id, invitation.role, invitation.invited_by)
        group = await save_family_group(self.db, group)
        self._enter_group(user, group.id)
        await save_user(self.db, user)
        logger.info(
            f"User {user.id} accepted invitation to family group {group.id}",
            extra={"user_id": user.id},
        )
        return await self._response(user, group)

    async def decline_invitation(self, user: User, group_id: str) -> None:
        group = await get_family_group(self.db, group_id)
        invitation = group.pending_invitation(user.email) if group else None
        if group is None or invitation is None:
            raise NotFoundError("Invitation")
        invitation.status = InvitationStatus.DECLINED
        await save_family_group(self.db, group)
        logger.info(
            f"User {user.id} declined invitation to family group {group.id}",
            extra={"user_id": user.id},
        )

    async def update_member_role(
        self, user: User, group_id: str, member_id: str, update: MemberRoleUpdate
    ) -> FamilyGroupResponse:
        """
        Change a member's role and reset their permissions to the role's
        defaults. The last owner cannot be demoted.
        """
        group, decision = await self._authorize(user, group_id)
        target = group.member(member_id)
        if target is None:
            raise NotFoundError("Member")
        actor_role = FamilyRole(decision.level)
        if not can_manage_member(actor_role, target.role) or not can_manage_member(
            actor_role, update.role
        ):
            raise AuthorizationError("Insufficient permissions to update member")

        ensure_tier_retained(
            group.member_ranks(),
            member_id,
            update.role.rank,
            FamilyRole.OWNER.rank,
            LAST_OWNER_MESSAGE,
        )
        target.role = update.role
        target.permissions = default_permissions(update.role)
        self._reassign_owner(group)

        group = await save_family_group(self.db, group)
        logger.info(
            f"Member {member_id} of family group {group.id} set to {update.role.value}",
            extra={"user_id": user.id},
        )
        return await self._response(user, group)

    async def remove_member(self, user: User, group_id: str, member_id: str) -> None:
        """Remove a member, or leave the group when ``member_id`` is the caller."""
        group, decision = await self._authorize(user, group_id)
        target = group.member(member_id)
        if target is None:
            raise NotFoundError("Member")
        if member_id != user.id and not can_manage_member(
            FamilyRole(decision.level), target.role
        ):
            raise AuthorizationError("Insufficient permissions to remove member")

        ensure_tier_retained(
            group.member_ranks(), member_id, None, FamilyRole.OWNER.rank, LAST_OWNER_MESSAGE
        )
        group.members = [m for m in group.members if m.user_id != member_id]
        self._reassign_owner(group)

        removed = user if member_id == user.id else await get_user(self.db, member_id)
        await save_family_group(self.db, group)
        if removed and removed.family_group_id == group.id:
            removed.family_group_id = None
            if removed.role == UserRole.FAMILY:
                removed.role = UserRole.USER
            await save_user(self.db, removed)
        logger.info(
            f"Member {member_id} removed from family group {group.id}",
            extra={"user_id": user.id},
        )

    async def _authorize(
        self, user: User, group_id: str, role: FamilyRole = FamilyRole.GUEST
    ) -> tuple[FamilyGroup, AccessDecision]:
        group = await get_family_group(self.db, group_id)
        if group is None:
            raise NotFoundError(GROUP)
        decision = require_allowed(evaluate_family_group(user, group, role), GROUP)
        return group, decision

    def _enter_group(self, user: User, group_id: str) -> None:
        user.family_group_id = group_id
        if user.role == UserRole.USER:
            user.role = UserRole.FAMILY

    def _reassign_owner(self, group: FamilyGroup) -> None:
        # ownerId always names a listed owner
        owner = group.member(group.owner_id)
        if owner and owner.role == FamilyRole.OWNER:
            return
        successor = next(m for m in group.members if m.role == FamilyRole.OWNER)
        group.owner_id = successor.user_id

    async def _response(self, user: User, group: FamilyGroup) -> FamilyGroupResponse:
        users = await get_users(self.db, [m.user_id for m in group.members])
        me = group.member(user.id)
        can_invite = me is not None and has_family_permission(me, FamilyPermission.INVITE)
        return FamilyGroupResponse(
            id=group.id,
            name=group.name,
            description=group.description,
            owner_id=group.owner_id,
            invite_code=group.invite_code if can_invite else None,
            members=[
                FamilyMemberResponse(
                    user_id=m.user_id,
                    user=UserSummary.from_user(users[m.user_id]) if m.user_id in users else None,
                    role=m.role,
                    permissions=m.permissions,
                    joined_at=m.joined_at,
                )
                for m in group.members
            ],
            pending_invitations=[
                i for i in group.pending_invitations if i.status == InvitationStatus.PENDING
            ]
            if can_invite
            else [],
            settings=group.settings,
            member_count=len(group.members),
            is_full=group.is_full,
            my_role=me.role if me else None,
            created_at=group.created_at,
        )
