"""
In-process registry of open WebSocket connections, grouped into rooms.

Rooms in use:
- "feed": every connected client (new feed items)
- "user:<id>": all sockets of one user
- "feed:<feed_item_id>": clients looking at one feed item (comments, reactions)
"""
from collections import defaultdict
from typing import Any, Dict, Iterable, Set

from fastapi import WebSocket

from services.notification_dispatcher import FEED_ROOM, user_room
from utils.logger import get_logger

logger = get_logger(__name__)


class ConnectionManager:
    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._memberships: Dict[WebSocket, Set[str]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        self.join(websocket, user_room(user_id))
        self.join(websocket, FEED_ROOM)
        logger.debug(f"WebSocket connected for user {user_id}")

    def disconnect(self, websocket: WebSocket) -> None:
        for room in self._memberships.pop(websocket, set()):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms[room].add(websocket)
        self._memberships[websocket].add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self._rooms[room]
        self._memberships.get(websocket, set()).discard(room)

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def broadcast(self, rooms: Iterable[str], event: str, data: Any) -> int:
        """
        Send {"event", "data"} once to every socket in any of the rooms.
        Sockets that fail to receive are dropped. Returns the number of sockets reached.
        """
        targets: Set[WebSocket] = set()
        for room in rooms:
            targets.update(self._rooms.get(room, ()))

        message = {"event": event, "data": data}
        delivered = 0
        for websocket in list(targets):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping WebSocket after failed send of {event}: {e}")
                self.disconnect(websocket)
        return delivered
