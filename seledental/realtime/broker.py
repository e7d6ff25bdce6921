"""
Real-time notification broker

In-process pub/sub over live WebSocket connections. Rooms:

- ``date:<YYYY-MM-DD>``  viewers of slot availability for a day
- ``receptionists``      every connected receptionist/administrator
- ``client:<id>``        a client's own appointments
- ``dentist:<id>``       a dentist's own appointments

Delivery is best-effort and at-most-once. Nothing is queued for offline
subscribers; they re-fetch state when they reconnect.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

RECEPTIONISTS_ROOM = "receptionists"


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


def date_room(day: date | str) -> str:
    if isinstance(day, date):
        day = day.isoformat()
    return f"date:{day}"


def client_room(client_id: int) -> str:
    return f"client:{client_id}"


def dentist_room(dentist_id: int) -> str:
    return f"dentist:{dentist_id}"


def parse_room(room: str) -> Optional[tuple[str, Optional[str]]]:
    """Split a room name into (kind, key); None when the name is not a known room"""
    if room == RECEPTIONISTS_ROOM:
        return "receptionists", None

    kind, sep, key = room.partition(":")
    if not sep or not key:
        return None

    if kind == "date":
        try:
            date.fromisoformat(key)
        except ValueError:
            return None
        return kind, key

    if kind in ("client", "dentist") and key.isdigit():
        return kind, key

    return None


class RealtimeBroker:
    """Room membership plus fan-out. Join/leave are idempotent."""

    def __init__(self):
        self._rooms: dict[str, set[Connection]] = defaultdict(set)
        self._memberships: dict[Connection, set[str]] = defaultdict(set)

    def join(self, connection: Connection, room: str) -> None:
        self._rooms[room].add(connection)
        self._memberships[connection].add(room)
        logger.debug(f"➕ Connection {id(connection)} joined {room}")

    def leave(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]

        rooms = self._memberships.get(connection)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._memberships[connection]
        logger.debug(f"➖ Connection {id(connection)} left {room}")

    def disconnect(self, connection: Connection) -> None:
        """Drop a connection from every room it joined"""
        for room in list(self._memberships.get(connection, ())):
            self.leave(connection, room)

    def members(self, room: str) -> set[Connection]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, connection: Connection) -> set[str]:
        return set(self._memberships.get(connection, ()))

    async def publish(self, room: str, event: str, data: dict[str, Any]) -> int:
        """
        Send an event to everyone in a room.

        Returns the number of connections that received it. A connection that
        fails to receive is dropped from all rooms; the error is logged, never
        raised.
        """
        members = self.members(room)
        if not members:
            return 0

        message = {"evento": event, "datos": data}
        delivered = 0
        for connection in members:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"⚠️ Dropping connection {id(connection)} after failed {event} send to {room}: {e}")
                self.disconnect(connection)

        logger.debug(f"📡 {event} delivered to {delivered}/{len(members)} in {room}")
        return delivered


broker = RealtimeBroker()
