from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Set

from fastapi import WebSocket

from .accounts import Account, AccountRef

if TYPE_CHECKING:
    from .room import Room

logger = logging.getLogger(__name__)


class Connection:
    """One live websocket, possibly joined to several rooms.

    ``send`` only queues; ``pump`` is the single writer, so room handlers can
    fan out frames without awaiting.
    """

    def __init__(self, ws: Optional[WebSocket] = None, ip: str = ""):
        self.ws = ws
        self.ip = ip
        self.sessionid: Optional[str] = None
        # default display name for addplayer
        self.name: Optional[str] = None
        self.user: Optional[Account] = None
        self.rooms: Set["Room"] = set()
        self.outbox: "asyncio.Queue[str]" = asyncio.Queue()

    def account_ref(self) -> Optional[AccountRef]:
        if self.user is not None:
            return self.user.ref
        if self.sessionid:
            return AccountRef(self.sessionid)
        return None

    def send(self, message: str) -> None:
        self.outbox.put_nowait(message)

    async def pump(self) -> None:
        try:
            while True:
                message = await self.outbox.get()
                await self.ws.send_text(message)
        except Exception:
            # the read loop notices the closed socket and cleans up
            logger.warning("Could not write to %s", self.ip, exc_info=True)

    def destroy(self) -> None:
        for room in list(self.rooms):
            room.handle_disconnect(self)
        self.rooms = set()

    def set_user(self, user: Optional[Account]) -> None:
        if self.user == user:
            return
        self.user = user
        if user is not None:
            self.name = user.name
            self.send(f"user|{self.name}")
        else:
            # logged out: no longer a player anywhere
            self.send("user|")
        for room in list(self.rooms):
            room.handle_account_update(self)


__all__ = ["Connection"]
