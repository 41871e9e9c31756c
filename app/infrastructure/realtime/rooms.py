"""Realtime room router for WebSocket connections.

Connections join named rooms (``material:<id>``, ``user:<id>``) and receive
every event published to a room while they are members.  Delivery is best
effort: nothing is queued or replayed, and a connection that fails to
receive is dropped from every room it was in.
"""

import asyncio
import logging
from typing import Any, Protocol

from app.domain.repositories import IRealtimePublisher

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RealtimeChannelRouter(IRealtimePublisher):

    def __init__(self) -> None:
        self.rooms: dict[str, set[Connection]] = {}
        self._lock = asyncio.Lock()

    async def join(self, connection: Connection, room: str) -> bool:
        """Add *connection* to *room*; returns False if it was already a member."""
        async with self._lock:
            members = self.rooms.setdefault(room, set())
            if connection in members:
                return False
            members.add(connection)
        logger.debug("Connection joined %s (members=%d)", room, len(members))
        return True

    async def leave(self, connection: Connection, room: str) -> bool:
        async with self._lock:
            members = self.rooms.get(room)
            if not members or connection not in members:
                return False
            members.discard(connection)
            if not members:
                del self.rooms[room]
        logger.debug("Connection left %s", room)
        return True

    async def leave_all(self, connection: Connection) -> int:
        """Remove *connection* from every room; returns how many it left."""
        async with self._lock:
            left = self._remove(connection)
        return left

    def members(self, room: str) -> set[Connection]:
        return set(self.rooms.get(room, ()))

    def rooms_of(self, connection: Connection) -> set[str]:
        return {room for room, members in self.rooms.items() if connection in members}

    async def publish(self, room: str, event: str, payload: Any) -> int:
        async with self._lock:
            targets = list(self.rooms.get(room, ()))
        if not targets:
            return 0

        message = {"event": event, "data": payload}
        delivered = 0
        broken: list[Connection] = []
        for connection in targets:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as exc:
                logger.warning("Error sending %s to a member of %s: %s", event, room, exc)
                broken.append(connection)

        if broken:
            async with self._lock:
                for connection in broken:
                    self._remove(connection)
            logger.info("Dropped %d broken connection(s) after publishing to %s", len(broken), room)
        return delivered

    def _remove(self, connection: Connection) -> int:
        # Caller holds the lock.
        left = 0
        for room in list(self.rooms):
            members = self.rooms[room]
            if connection in members:
                members.discard(connection)
                left += 1
                if not members:
                    del self.rooms[room]
        return left
