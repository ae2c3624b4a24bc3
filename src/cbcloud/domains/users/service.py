# src/cbcloud/domains/users/service.py
import logging
import uuid
from typing import List, Optional

from cbcloud.core.database import Database
from cbcloud.domains.users.models import (
    FriendRequest,
    FriendRequestResponse,
    FriendsResponse,
    ProfileUpdateRequest,
    User,
    UserResponse,
    UserSummary,
)
from cbcloud.shared.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


async def get_user(db: Database, user_id: str) -> Optional[User]:
    record = await db.user.find_unique(where={"id": user_id})
    return User.from_prisma(record) if record else None


async def get_users(db: Database, user_ids: List[str]) -> dict[str, User]:
    """Batch lookup used for read-side joins after access has been checked."""
    if not user_ids:
        return {}
    records = await db.user.find_many(where={"id": {"in": sorted(set(user_ids))}})
    return {record.id: User.from_prisma(record) for record in records}


async def save_user(db: Database, user: User) -> User:
    """Persist the whole user document in one update."""
    record = await db.user.update(where={"id": user.id}, data=user.to_prisma())
    return User.from_prisma(record) if record else user


class UserService:
    def __init__(self, db: Database):
        self.db = db

    async def update_profile(
        self, user: User, updates: ProfileUpdateRequest
    ) -> UserResponse:
        """Apply the provided profile fields; unset fields are left alone."""
        changes = updates.model_dump(exclude_unset=True)
        if "first_name" in changes:
            user.first_name = changes.pop("first_name")
        if "last_name" in changes:
            user.last_name = changes.pop("last_name")
        if updates.preferences is not None:
            user.profile.preferences = updates.preferences
            changes.pop("preferences")
        for field, value in changes.items():
            setattr(user.profile, field, value)

        saved = await save_user(self.db, user)
        logger.info(f"Profile updated for user {user.id}", extra={"user_id": user.id})
        return UserResponse.from_user(saved)

    async def search_users(
        self, user: User, query: str, limit: int = 10
    ) -> List[UserSummary]:
        query = query.strip()
        if len(query) < 2:
            raise ValidationError("Search query must be at least 2 characters")

        records = await self.db.user.find_many(
            where={
                "isActive": True,
                "id": {"not": user.id},
                "OR": [
                    {"username": {"contains": query, "mode": "insensitive"}},
                    {"firstName": {"contains": query, "mode": "insensitive"}},
                    {"lastName": {"contains": query, "mode": "insensitive"}},
                    {"email": {"contains": query, "mode": "insensitive"}},
                ],
            },
            take=limit,
            order={"username": "asc"},
        )
        return [UserSummary.from_user(User.from_prisma(r)) for r in records]

    async def send_friend_request(self, user: User, target_id: str) -> FriendRequest:
        if target_id == user.id:
            raise ValidationError("Cannot send friend request to yourself")

        target = await get_user(self.db, target_id)
        if not target or not target.is_active:
            raise NotFoundError("User")
        if target_id in user.friends:
            raise ConflictError("Already friends with this user")
        if any(r.from_user_id == user.id for r in target.pending_friend_requests):
            raise ConflictError("Friend request already sent")
        if any(r.from_user_id == target_id for r in user.pending_friend_requests):
            raise ConflictError("This user has already sent you a friend request")

        request = FriendRequest(id=str(uuid.uuid4()), from_user_id=user.id)
        target.pending_friend_requests.append(request)
        await save_user(self.db, target)

        logger.info(f"Friend request {request.id} sent from {user.id} to {target_id}")
        return request

    async def accept_friend_request(self, user: User, request_id: str) -> UserSummary:
        request = self._pop_request(user, request_id)
        sender = await get_user(self.db, request.from_user_id)
        if not sender or not sender.is_active:
            # Drop the dangling request before reporting it.
            await save_user(self.db, user)
            raise NotFoundError("User")

        if sender.id not in user.friends:
            user.friends.append(sender.id)
        if user.id not in sender.friends:
            sender.friends.append(user.id)
        # A crossed request in the other direction is settled too.
        sender.pending_friend_requests = [
            r for r in sender.pending_friend_requests if r.from_user_id != user.id
        ]

        await save_user(self.db, user)
        await save_user(self.db, sender)
        logger.info(f"Users {user.id} and {sender.id} are now friends")
        return UserSummary.from_user(sender)

    async def decline_friend_request(self, user: User, request_id: str) -> None:
        self._pop_request(user, request_id)
        await save_user(self.db, user)

    async def list_friends(self, user: User) -> FriendsResponse:
        pending_ids = [r.from_user_id for r in user.pending_friend_requests]
        users = await get_users(self.db, user.friends + pending_ids)
        friends = [
            UserSummary.from_user(users[fid]) for fid in user.friends if fid in users
        ]
        pending = [
            FriendRequestResponse(
                id=r.id,
                sender=UserSummary.from_user(users[r.from_user_id]),
                sent_at=r.sent_at,
            )
            for r in user.pending_friend_requests
            if r.from_user_id in users
        ]
        return FriendsResponse(friends=friends, pending_requests=pending)

    async def remove_friend(self, user: User, friend_id: str) -> None:
        if friend_id not in user.friends:
            raise NotFoundError("Friend")

        user.friends = [fid for fid in user.friends if fid != friend_id]
        await save_user(self.db, user)

        friend = await get_user(self.db, friend_id)
        if friend and user.id in friend.friends:
            friend.friends = [fid for fid in friend.friends if fid != user.id]
            await save_user(self.db, friend)
        logger.info(f"User {user.id} removed friend {friend_id}")

    def _pop_request(self, user: User, request_id: str) -> FriendRequest:
        for index, request in enumerate(user.pending_friend_requests):
            if request.id == request_id:
                return user.pending_friend_requests.pop(index)
        raise NotFoundError("Friend request")
