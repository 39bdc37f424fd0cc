"""Frame dispatcher.

Single public entry point used by the websocket endpoint: parse one inbound
frame and route it to the account service, the registry or a room. Room
operations report failure by returning ``False``; the wording of the
``error|`` frame is decided here.
"""
from __future__ import annotations

import logging

from .connection import Connection
from .constants import Phase
from .errors import ProtocolError
from .protocol import RoomCommand, parse_frame
from .registry import RoomRegistry
from .room import Room

logger = logging.getLogger(__name__)


def handle_room_command(room: Room, connection: Connection, command: RoomCommand) -> None:
    verb = command.verb
    if verb == "addplayer":
        if not room.add_player(connection, command.name):
            if room.phase == Phase.LOADING:
                connection.send(f"error|Room {room.code} is still loading")
            elif room.started:
                connection.send("error|Game already started")
            else:
                connection.send(f"error|Name {command.name or connection.name or ''} already in use")
    elif verb == "removeplayer":
        if not room.remove_player(connection):
            if room.started:
                connection.send("error|Game already started")
            else:
                connection.send("error|You're not a player")
    elif verb == "startgame":
        if room.start():
            logger.info("Room %s started with %d players", room.code, len(room.players))
        else:
            connection.send("error|Could not start game (no players or already started)")
    elif verb == "settings":
        if not room.change_settings(command.settings):
            connection.send("error|Could not change settings")
    elif verb == "submit":
        if not room.submit(connection, command.value):
            connection.send("error|Could not submit sheet")


async def handle_message(registry: RoomRegistry, connection: Connection, message: str) -> None:
    try:
        command = parse_frame(message)
    except ProtocolError as err:
        logger.debug("Rejected frame %r: %s", message[:100], err.message)
        connection.send(f"error|{err.message}")
        return

    accounts = registry.accounts
    verb = command.verb
    if verb == "sessionid":
        await accounts.set_sessionid(connection, command.sessionid)
    elif verb == "login":
        await accounts.login(connection, command.email, command.password)
    elif verb == "register":
        await accounts.register(connection, command.email, command.password, command.name)
    elif verb == "logout":
        await accounts.logout(connection)
    elif verb == "name":
        connection.name = command.name
    elif verb == "join":
        try:
            room = registry.get_or_create(command.roomcode)
        except ProtocolError as err:
            connection.send(f"error|{err.message}")
            return
        if not room.host:
            room.host = connection.name or ""
        room.join(connection)
    else:
        room = registry.get(command.roomcode)
        if room is None:
            connection.send(f"error|Room {command.roomcode} not found")
            return
        handle_room_command(room, connection, command)


__all__ = ["handle_message", "handle_room_command"]
