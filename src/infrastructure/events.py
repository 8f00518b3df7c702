"""
Event bus for real-time notifications.

Services publish ``trip-update`` and ``itinerary-update`` events to the
per-user room ``user-<id>``. Delivery is best effort: a failing or stalled
publisher is logged and never fails or holds up the request that emitted the
event.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Protocol, Set

from fastapi import Request, WebSocket
from fastapi.encoders import jsonable_encoder


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 2.0

TRIP_UPDATE = "trip-update"
ITINERARY_UPDATE = "itinerary-update"


def user_room(user_id: int) -> str:
    return f"user-{user_id}"


class RealtimePublisher(Protocol):
    """Anything that can fan an event out to the sessions in a room."""

    async def emit(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class RoomConnectionManager:
    """
    In-process WebSocket fan-out keyed by room name.
    """

    def __init__(self, send_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.send_timeout = send_timeout
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, room: str) -> None:
        await websocket.accept()
        self.rooms[room].add(websocket)
        logger.info(f"WebSocket joined room {room} ({len(self.rooms[room])} connected)")

    def disconnect(self, websocket: WebSocket, room: str) -> None:
        connections = self.rooms.get(room)
        if not connections:
            return
        connections.discard(websocket)
        if not connections:
            del self.rooms[room]

    def connection_count(self, room: Optional[str] = None) -> int:
        if room is not None:
            return len(self.rooms.get(room, ()))
        return sum(len(connections) for connections in self.rooms.values())

    async def emit(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        """Send to every socket in the room concurrently; slow or broken sockets are dropped."""
        message = {"event": event, "data": payload}
        websockets: List[WebSocket] = list(self.rooms.get(room, ()))
        if not websockets:
            return
        results = await asyncio.gather(
            *(asyncio.wait_for(websocket.send_json(message), self.send_timeout) for websocket in websockets),
            return_exceptions=True,
        )
        for websocket, result in zip(websockets, results):
            if isinstance(result, Exception):
                logger.warning(f"Dropping WebSocket in room {room} after send failure: {result!r}")
                self.disconnect(websocket, room)


class EventBus:
    """Publishes domain events to a ``RealtimePublisher``."""

    def __init__(self, publisher: Optional[RealtimePublisher] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.publisher = publisher
        self.timeout = timeout

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> bool:
        """
        Hand an event to the publisher, waiting at most ``timeout`` seconds.

        Returns:
            True if the publisher accepted the event, False otherwise
        """
        if self.publisher is None:
            return False
        try:
            await asyncio.wait_for(self.publisher.emit(room, event, jsonable_encoder(payload)), self.timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out publishing {event} to {room} after {self.timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Failed to publish {event} to {room}: {e}")
            return False

    async def trip_update(self, user_id: int, change: str, **payload: Any) -> bool:
        """``trip-update`` with type created, updated or deleted."""
        return await self.publish(user_room(user_id), TRIP_UPDATE, {"type": change, **payload})

    async def itinerary_update(self, user_id: int, change: str, trip_id: int, **payload: Any) -> bool:
        """``itinerary-update`` with type item-created, item-updated, item-deleted or items-reordered."""
        return await self.publish(
            user_room(user_id),
            ITINERARY_UPDATE,
            {"type": change, "tripId": trip_id, **payload},
        )


def get_event_bus(request: Request) -> EventBus:
    """
    Dependency returning the application's event bus.
    """
    bus: Optional[EventBus] = getattr(request.app.state, "event_bus", None)
    return bus if bus is not None else EventBus()
