# src/cbcloud/domains/users/routes.py
from fastapi import APIRouter, Depends, Query, status

from cbcloud.core.database import Database, get_db
from cbcloud.domains.auth.dependencies import get_current_user
from cbcloud.domains.auth.models import MessageResponse
from cbcloud.domains.family.models import FamilyGroupEnvelope
from cbcloud.domains.family.service import FamilyGroupService
from cbcloud.domains.users.models import (
    FamilyGroupAction,
    FriendRequest,
    FriendRequestCreate,
    FriendsResponse,
    ProfileUpdateRequest,
    User,
    UserResponse,
    UserSearchResponse,
    UserSummary,
)
from cbcloud.domains.users.service import UserService
from cbcloud.shared.exceptions import ValidationError

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/profile", response_model=UserResponse, operation_id="getProfile")
async def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(user)


@router.put("/profile", response_model=UserResponse, operation_id="updateProfile")
async def update_profile(
    updates: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> UserResponse:
    return await UserService(db).update_profile(user, updates)


@router.get("/search", response_model=UserSearchResponse, operation_id="searchUsers")
async def search_users(
    q: str = Query(..., description="Username, name or e-mail fragment"),
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> UserSearchResponse:
    users = await UserService(db).search_users(user, q, limit)
    return UserSearchResponse(users=users)


@router.post(
    "/friend-request",
    response_model=FriendRequest,
    status_code=status.HTTP_201_CREATED,
    operation_id="sendFriendRequest",
)
async def send_friend_request(
    request: FriendRequestCreate,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FriendRequest:
    return await UserService(db).send_friend_request(user, request.user_id)


@router.post(
    "/friend-request/{request_id}/accept",
    response_model=UserSummary,
    operation_id="acceptFriendRequest",
)
async def accept_friend_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> UserSummary:
    """Accept a pending request; returns the new friend."""
    return await UserService(db).accept_friend_request(user, request_id)


@router.post(
    "/friend-request/{request_id}/decline",
    response_model=MessageResponse,
    operation_id="declineFriendRequest",
)
async def decline_friend_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> MessageResponse:
    await UserService(db).decline_friend_request(user, request_id)
    return MessageResponse(message="Friend request declined")


@router.get("/friends", response_model=FriendsResponse, operation_id="listFriends")
async def list_friends(
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FriendsResponse:
    return await UserService(db).list_friends(user)


@router.delete(
    "/friends/{friend_id}", response_model=MessageResponse, operation_id="removeFriend"
)
async def remove_friend(
    friend_id: str,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> MessageResponse:
    await UserService(db).remove_friend(user, friend_id)
    return MessageResponse(message="Friend removed successfully")


@router.get("/family-group", response_model=FamilyGroupEnvelope, operation_id="getMyFamilyGroup")
async def get_family_group(
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FamilyGroupEnvelope:
    group = await FamilyGroupService(db).get_for_user(user)
    return FamilyGroupEnvelope(family_group=group)


@router.post(
    "/family-group",
    response_model=FamilyGroupEnvelope,
    operation_id="createOrJoinFamilyGroup",
)
async def family_group_action(
    action: FamilyGroupAction,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> FamilyGroupEnvelope:
    """Create a new family group, or join one with its invite code."""
    service = FamilyGroupService(db)
    if action.action == "create":
        if not action.name:
            raise ValidationError("Group name is required")
        group = await service.create_group(user, action.name, action.description)
    else:
        if not action.invite_code:
            raise ValidationError("Invite code is required")
        group = await service.join_by_code(user, action.invite_code)
    return FamilyGroupEnvelope(family_group=group)
