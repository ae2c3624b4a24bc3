# src/cbcloud/domains/family/routes.py
from fastapi import APIRouter, Depends, status

from cbcloud.core.database import Database, get_db
from cbcloud.domains.auth.dependencies import get_current_user
from cbcloud.domains.auth.models import MessageResponse
from cbcloud.domains.family.models import (
    FamilyGroupResponse,
    FamilyInviteRequest,
    MemberRoleUpdate,
)
from cbcloud.domains.family.service import FamilyGroupService
from cbcloud.domains.users.models import User
from cbcloud.shared.access.models import FamilyInvitation

router = APIRouter(prefix="/family-groups", tags=["Family Groups"])


@router.get("/{group_id}", response_model=FamilyGroupResponse, operation_id="getFamilyGroup")
async def get_family_group(
    group_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FamilyGroupResponse:
    return await FamilyGroupService(db).get_group(user, group_id)


@router.post(
    "/{group_id}/invitations",
    response_model=FamilyInvitation,
    status_code=status.HTTP_201_CREATED,
    operation_id="inviteToFamilyGroup",
)
async def invite_to_group(
    group_id: str,
    request: FamilyInviteRequest,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FamilyInvitation:
    """Invite someone by e-mail. Requires the invite permission."""
    return await FamilyGroupService(db).invite(user, group_id, request)


@router.post(
    "/{group_id}/invitations/accept",
    response_model=FamilyGroupResponse,
    operation_id="acceptFamilyInvitation",
)
async def accept_invitation(
    group_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FamilyGroupResponse:
    return await FamilyGroupService(db).accept_invitation(user, group_id)


@router.post(
    "/{group_id}/invitations/decline",
    response_model=MessageResponse,
    operation_id="declineFamilyInvitation",
)
async def decline_invitation(
    group_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> MessageResponse:
    await FamilyGroupService(db).decline_invitation(user, group_id)
    return MessageResponse(message="Invitation declined")


@router.put(
    "/{group_id}/members/{member_id}",
    response_model=FamilyGroupResponse,
    operation_id="updateFamilyMember",
)
async def update_member_role(
    group_id: str,
    member_id: str,
    update: MemberRoleUpdate,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FamilyGroupResponse:
    """
    Change a member's role.

    Business rules:
    - Owners manage everyone, admins manage members and guests
    - Permissions are reset to the new role's defaults
    - The last owner cannot be demoted
    """
    return await FamilyGroupService(db).update_member_role(user, group_id, member_id, update)


@router.delete(
    "/{group_id}/members/{member_id}",
    response_model=MessageResponse,
    operation_id="removeFamilyMember",
)
async def remove_member(
    group_id: str,
    member_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> MessageResponse:
    await FamilyGroupService(db).remove_member(user, group_id, member_id)
    return MessageResponse(message="Member removed successfully")
