# src/cbcloud/core/realtime.py
import asyncio
import logging
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

CLIPBOARD_UPDATED = "clipboard-updated"
CLIPBOARD_SHARED = "clipboard-shared"
CLIPBOARD_SHARE_UPDATED = "clipboard-share-updated"
CLIPBOARD_SHARE_REMOVED = "clipboard-share-removed"


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RoomHub:
    """
    Room-scoped publish/subscribe for connected sockets.

    Rooms are keyed by resource id (a product id for clipboard events).
    Each subscription remembers the user it belongs to so a user can be
    evicted from a room when their access goes away. Delivery is best
    effort: a subscriber whose send fails is dropped and the failure never
    reaches the publisher.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[Subscriber, Optional[str]]] = {}

    def join(
        self, room: str, subscriber: Subscriber, user_id: Optional[str] = None
    ) -> None:
        self._rooms.setdefault(room, {})[subscriber] = user_id
        logger.debug(f"Subscriber joined room {room}", extra={"room": room})

    def leave(self, room: str, subscriber: Subscriber) -> None:
        members = self._rooms.get(room)
        if not members:
            return
        members.pop(subscriber, None)
        if not members:
            del self._rooms[room]

    def disconnect(self, subscriber: Subscriber) -> None:
        for room in list(self._rooms):
            self.leave(room, subscriber)

    def evict(self, room: str, user_id: Optional[str] = None) -> int:
        """Remove ``user_id``'s subscriptions from ``room``, or everyone's
        when no user is given. Returns the number removed."""
        members = self._rooms.get(room)
        if not members:
            return 0
        targets = [s for s, owner in members.items() if user_id is None or owner == user_id]
        for subscriber in targets:
            self.leave(room, subscriber)
        if targets:
            logger.info(
                f"Evicted {len(targets)} subscriber(s) from room {room}",
                extra={"room": room, "user_id": user_id},
            )
        return len(targets)

    def rooms_for(self, subscriber: Subscriber) -> list[str]:
        return [room for room, members in self._rooms.items() if subscriber in members]

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def connection_count(self) -> int:
        return len({s for members in self._rooms.values() for s in members})

    async def broadcast(self, room: str, event: str, data: Any) -> int:
        """Send ``{"event", "data"}`` to every subscriber of ``room``.

        Returns the number of subscribers the message was handed to.
        """
        targets = list(self._rooms.get(room, ()))
        if not targets:
            return 0
        message = {"event": event, "data": data}
        results = await asyncio.gather(
            *(target.send_json(message) for target in targets),
            return_exceptions=True,
        )
        delivered = 0
        for target, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.debug(
                    f"Dropping subscriber after failed send: {result}",
                    extra={"room": room},
                )
                self.disconnect(target)
            else:
                delivered += 1
        return delivered


_hub: Optional[RoomHub] = None


def init_hub() -> RoomHub:
    """Create the process-wide hub. Called once from the app lifespan."""
    global _hub
    _hub = RoomHub()
    return _hub


def get_hub() -> RoomHub:
    """FastAPI dependency returning the process-wide hub."""
    if _hub is None:
        raise RuntimeError("Realtime hub has not been initialised")
    return _hub
