from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Set

from tortoise.exceptions import BaseORMException

from .accounts import AccountRef
from .constants import DEFAULT_STACK_SIZE, PLAYER_SUMMARY_MAX_LENGTH, Phase, SheetType
from .schemas import (
    PlayerView,
    RoomSettings,
    RoomView,
    SerializedPlayer,
    SerializedRoom,
    SettingsPatch,
    Sheet,
    TurnRequest,
)
from .storage import now_ms

if TYPE_CHECKING:
    from .connection import Connection
    from .registry import RoomRegistry

logger = logging.getLogger(__name__)


def normalize(name: str) -> str:
    return "".join(name.lower().split())


class Stack:
    """A folded sheet of paper: sheets only ever get appended."""

    def __init__(self, owner: str, sheets: Optional[List[Sheet]] = None):
        self.owner = owner
        self.sheets: List[Sheet] = list(sheets or [])

    def __len__(self) -> int:
        return len(self.sheets)

    @property
    def top(self) -> Optional[Sheet]:
        return self.sheets[-1] if self.sheets else None

    def add(self, sheet: Sheet) -> None:
        self.sheets.append(sheet)


class Player:
    def __init__(self, name: str, account: Optional[AccountRef] = None,
                 connection: Optional["Connection"] = None):
        self.name = name
        self.account = account
        self.connections: Set["Connection"] = set()
        # Owner names of held stacks; [0] is the oldest and the one being worked on.
        self.stacks: List[str] = []
        if connection is not None:
            self.connections.add(connection)
            self.account = connection.account_ref()


class Room:
    """Runtime state of one game, plus every connection watching it.

    Stacks live in ``self.stacks`` keyed by owner name; players only hold
    owner names, so a stack is never shared by reference between players.
    All methods except ``load``/``save`` run to completion without awaiting.
    """

    def __init__(self, code: str, registry: "RoomRegistry"):
        self.code = code
        self.registry = registry
        self.phase = Phase.LOADING
        self.host = ""
        self.creation_time = now_ms()
        self.last_move_time = now_ms()
        # Order is the rotation ring.
        self.players: List[Player] = []
        self.stacks: Dict[str, Stack] = {}
        # includes players' connections
        self.spectators: Set["Connection"] = set()
        self.settings = RoomSettings()

    @property
    def loading(self) -> bool:
        return self.phase == Phase.LOADING

    @property
    def started(self) -> bool:
        return self.phase in (Phase.STARTED, Phase.ENDED)

    @property
    def ended(self) -> bool:
        return self.phase == Phase.ENDED

    # -------------------- Membership -------------------- #

    def join(self, connection: "Connection") -> None:
        account = connection.account_ref()
        reconnected: List[Player] = []
        if account is not None:
            for player in self.players:
                if player.account == account and connection not in player.connections:
                    player.connections.add(connection)
                    reconnected.append(player)
        if not reconnected and connection in self.spectators:
            return
        self.spectators.add(connection)
        connection.rooms.add(self)
        if reconnected:
            # online status changed
            self.update_spectators()
            for player in reconnected:
                self.update_player(player)
        elif not self.loading:
            # while loading, everyone gets the state once it arrives
            self.update(connection)

    def has_player(self, name: str) -> bool:
        wanted = normalize(name)
        return any(normalize(player.name) == wanted for player in self.players)

    def get_player(self, connection: "Connection") -> Optional[Player]:
        for player in self.players:
            if connection in player.connections:
                return player
        return None

    def next_player(self, player: Player) -> Player:
        index = self.players.index(player)
        return self.players[(index + 1) % len(self.players)]

    def add_player(self, connection: Optional["Connection"] = None, name: Optional[str] = None,
                   index: Optional[int] = None) -> bool:
        if self.phase != Phase.NOT_STARTED:
            return False
        player_name = (name or "").strip() or (connection.name if connection else None) \
            or f"Player {len(self.players) + 1}"
        if self.has_player(player_name):
            return False
        player = Player(player_name, connection=connection)
        self.players.insert(len(self.players) if index is None else index, player)
        if connection is not None:
            connection.rooms.add(self)
            self.spectators.add(connection)
        self.update_spectators()
        self.update_player(player)
        self._remember(player)
        return True

    def remove_player(self, connection: "Connection") -> bool:
        if self.phase != Phase.NOT_STARTED:
            return False
        player = self.get_player(connection)
        if player is None:
            return False
        for conn in player.connections:
            conn.send("player|")
        self.players.remove(player)
        self.update_spectators()
        self._forget(player)
        return True

    # -------------------- Game flow -------------------- #

    def change_settings(self, patch: SettingsPatch) -> bool:
        # Not limited to the lobby; clients may retune a running game.
        self.settings = self.settings.model_copy(
            update=patch.model_dump(exclude_unset=True, exclude_none=True)
        )
        self.update_spectators()
        return True

    def start(self) -> bool:
        if self.phase != Phase.NOT_STARTED or not self.players:
            return False
        if not self.settings.desired_stack_size:
            self.settings.desired_stack_size = max(DEFAULT_STACK_SIZE, len(self.players))
        self.phase = Phase.STARTED
        self.stacks = {}
        for player in self.players:
            self.stacks[player.name] = Stack(player.name)
            player.stacks = [player.name]
        self.update_spectators()
        self.update_players()
        return True

    def request_for(self, player: Player) -> TurnRequest:
        if not player.stacks:
            return TurnRequest(name=player.name)
        preview = self.stacks[player.stacks[0]].top
        if preview is None:
            request = self.settings.start_with
        elif preview.type == SheetType.TEXT:
            request = SheetType.PIC
        else:
            request = SheetType.TEXT
        return TurnRequest(name=player.name, preview=preview, request=request)

    def submit(self, connection: "Connection", value: str) -> bool:
        player = self.get_player(connection)
        if player is None:
            return False
        request = self.request_for(player).request
        if request is None:
            return False

        stack = self.stacks[player.stacks.pop(0)]
        stack.add(Sheet(type=request, value=value, author=player.name))

        next_player = self.next_player(player)
        next_player_updated = False
        if len(stack) < self.settings.desired_stack_size:
            if not next_player.stacks:
                next_player_updated = True
            next_player.stacks.append(stack.owner)
        self.last_move_time = now_ms()
        self._remember(player)
        if next_player is not player:
            self._remember(next_player)

        if self.try_end():
            return True

        self.update_spectators()
        self.update_player(player)
        if next_player_updated:
            self.update_player(next_player)
        return True

    def try_end(self) -> bool:
        if self.phase != Phase.STARTED:
            return False
        if any(player.stacks for player in self.players):
            return False
        return self.end()

    def end(self) -> bool:
        if self.phase != Phase.STARTED:
            return False
        self.phase = Phase.ENDED
        for player in self.players:
            player.stacks = []
        logger.info("Room %s ended", self.code)
        self.update_spectators()
        self.update_players()
        return True

    # -------------------- Snapshots -------------------- #

    def player_view(self, player: Player) -> PlayerView:
        own_stack = self.stacks.get(player.name) if self.started else None
        return PlayerView(
            name=player.name,
            offline=None if player.connections else True,
            stacks=[len(self.stacks[owner]) for owner in player.stacks] if own_stack is not None else None,
            own_stack=list(own_stack.sheets) if self.ended and own_stack is not None else None,
        )

    def to_view(self) -> RoomView:
        return RoomView(
            roomid=self.code,
            started=self.started or None,
            loading=self.loading or None,
            ended=self.ended or None,
            players=[self.player_view(p) for p in self.players],
            settings=self.settings,
        )

    # -------------------- Broadcasting helpers -------------------- #

    def update(self, connection: "Connection") -> None:
        connection.send(f"room|{self.to_view().to_wire()}")

    def update_spectators(self) -> None:
        message = f"room|{self.to_view().to_wire()}"
        for connection in self.spectators:
            connection.send(message)

    def update_player(self, player: Player) -> None:
        message = f"player|{self.request_for(player).to_wire()}"
        for connection in player.connections:
            connection.send(message)

    def update_players(self) -> None:
        for player in self.players:
            self.update_player(player)

    # -------------------- Connection lifecycle -------------------- #

    def handle_account_update(self, connection: "Connection") -> None:
        player = self.get_player(connection)
        if player is None:
            # maybe they logged into an account that's playing here
            self.join(connection)
            return
        account = connection.account_ref()
        if connection.user is not None:
            if any(p is not player and p.account == account for p in self.players):
                connection.send("error|You were a player, but the account you logged into is a different player.")
            else:
                player.account = account
                self._remember(player)
        if player.account != account:
            # logged out
            player.connections.discard(connection)
            connection.send("player|")
            if not player.connections:
                self.update_spectators()

    def handle_disconnect(self, connection: "Connection") -> None:
        went_offline = False
        for player in self.players:
            if player.connections == {connection}:
                went_offline = True
            player.connections.discard(connection)
        self.spectators.discard(connection)
        connection.rooms.discard(self)
        if not self.spectators:
            self.registry.evict(self)
        elif went_offline:
            self.update_spectators()

    def _remember(self, player: Player) -> None:
        if player.account is not None and player.account.registered:
            self.registry.spawn(self.registry.accounts.remember_game(
                player.account, self.code, self.last_move_time, len(player.stacks)))

    def _forget(self, player: Player) -> None:
        if player.account is not None and player.account.registered:
            self.registry.spawn(self.registry.accounts.forget_game(player.account, self.code))

    # -------------------- Persistence -------------------- #

    def serialize(self) -> SerializedRoom:
        players = []
        for player in self.players:
            own_stack = self.stacks.get(player.name)
            players.append(SerializedPlayer(
                name=player.name,
                accountid=player.account.key if player.account else None,
                registered=player.account.registered if player.account else False,
                own_stack=list(own_stack.sheets) if own_stack is not None else None,
                stacks=list(player.stacks),
            ))
        return SerializedRoom(
            started=self.started,
            ended=self.ended,
            players=players,
            settings=self.settings.model_copy(),
        )

    def deserialize(self, data: SerializedRoom) -> None:
        players: List[Player] = []
        stacks: Dict[str, Stack] = {}
        for player_data in data.players:
            account = AccountRef(player_data.accountid, player_data.registered) if player_data.accountid else None
            players.append(Player(player_data.name, account=account))
            if player_data.own_stack is not None:
                stacks[player_data.name] = Stack(player_data.name, player_data.own_stack)
        for player, player_data in zip(players, data.players):
            missing = [owner for owner in player_data.stacks if owner not in stacks]
            if missing:
                raise ValueError(f"Room {self.code}: {player.name} holds unknown stacks {missing}")
            player.stacks = list(player_data.stacks)

        self.players = players
        self.stacks = stacks
        self.settings = data.settings
        if not data.started:
            self.phase = Phase.NOT_STARTED
        else:
            self.phase = Phase.ENDED if data.ended else Phase.STARTED

        for connection in self.spectators:
            account = connection.account_ref()
            for player in self.players:
                if player.account is not None and player.account == account:
                    player.connections.add(connection)
        self.update_spectators()
        self.update_players()

    async def load(self) -> None:
        self.phase = Phase.LOADING
        try:
            record = await self.registry.rooms_table.get(self.code)
            if record is not None:
                self.host = record["host"]
                self.creation_time = record["creationtime"]
                self.last_move_time = record["lastmovetime"]
                self.deserialize(SerializedRoom.model_validate_json(record["state"]))
                return
        except (BaseORMException, ValueError, KeyError):
            # fail open: the room starts over
            logger.exception("Could not load room %s", self.code)
            self.players = []
            self.stacks = {}
            self.settings = RoomSettings()
        self.phase = Phase.NOT_STARTED
        self.update_spectators()

    async def save(self) -> None:
        if self.loading:
            return
        if not self.started and not self.players:
            return
        try:
            await self.registry.rooms_table.set(self.code, {
                "host": self.host[:100],
                "creationtime": self.creation_time,
                "lastmovetime": self.last_move_time,
                "playercount": len(self.players),
                "players": ", ".join(p.name for p in self.players)[:PLAYER_SUMMARY_MAX_LENGTH],
                "state": self.serialize().to_wire(),
            })
        except BaseORMException:
            logger.exception("Could not save room %s", self.code)


__all__ = ["normalize", "Stack", "Player", "Room"]
