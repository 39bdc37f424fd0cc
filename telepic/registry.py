"""Directory of live rooms.

One ``RoomRegistry`` is created per application and hung off
``app.state``; rooms enter it on the first ``join`` for their code and leave
it when their last spectator disconnects.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Coroutine, Dict, Optional, Set

from .accounts import AccountService
from .constants import ROOM_CODE_MAX_LENGTH, ROOM_CODE_RE
from .errors import ProtocolError
from .room import Room
from .storage import Table

logger = logging.getLogger(__name__)


class RoomRegistry:
    def __init__(self, rooms_table: Table, accounts: AccountService):
        self.rooms: Dict[str, Room] = {}
        self.rooms_table = rooms_table
        self.accounts = accounts
        # fire-and-forget persistence work; kept so tasks aren't collected early
        self._tasks: Set[asyncio.Task] = set()
        # save of an evicted room, by code; a reload of that code waits for it
        self._saving: Dict[str, asyncio.Task] = {}

    def get(self, code: str) -> Optional[Room]:
        return self.rooms.get(code)

    def get_or_create(self, code: str) -> Room:
        room = self.rooms.get(code)
        if room is not None:
            return room
        if not ROOM_CODE_RE.fullmatch(code):
            raise ProtocolError("Room code must contain lowercase letters, numbers, and hyphens (dashes) only")
        if len(code) > ROOM_CODE_MAX_LENGTH:
            raise ProtocolError(f"Room code must be under {ROOM_CODE_MAX_LENGTH} characters long")
        room = Room(code, self)
        self.rooms[code] = room
        self.spawn(self._load(room))
        return room

    async def _load(self, room: Room) -> None:
        pending = self._saving.get(room.code)
        if pending is not None:
            await asyncio.wait([pending])
        await room.load()

    def evict(self, room: Room) -> None:
        if self.rooms.get(room.code) is room:
            del self.rooms[room.code]
        logger.info("Room %s has no spectators left, saving and closing", room.code)
        task = self.spawn(room.save())
        self._saving[room.code] = task
        task.add_done_callback(self._saved)

    def _saved(self, task: asyncio.Task) -> None:
        for code, pending in list(self._saving.items()):
            if pending is task:
                del self._saving[code]

    def spawn(self, coro: Coroutine[None, None, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every pending load/save/bookkeeping task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def save_all(self) -> None:
        await self.drain()
        logger.info("Saving %d open rooms", len(self.rooms))
        for room in list(self.rooms.values()):
            await room.save()


__all__ = ["RoomRegistry"]
