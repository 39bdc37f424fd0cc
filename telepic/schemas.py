"""Pydantic data schemas used across the game server.

Wire snapshots (``room|`` and ``player|`` frames) and the persisted room
state are all described here so the room logic never builds raw dicts.
Field names are snake_case in Python and camelCase on the wire; always dump
with ``by_alias=True``.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import SheetType


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# -----------------------------
# Game content
# -----------------------------

class Sheet(WireModel):
    """One contribution to a stack. Immutable once created."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: SheetType
    # data-URL when type is pic
    value: str
    author: str


class RoomSettings(WireModel):
    start_with: SheetType = SheetType.TEXT
    # 0 = pick a default when the game starts
    desired_stack_size: int = Field(default=0, ge=0)


class SettingsPatch(WireModel):
    """Partial settings sent by clients; unset fields are left alone."""

    start_with: Optional[SheetType] = None
    desired_stack_size: Optional[int] = Field(default=None, ge=0)


# -----------------------------
# Outbound snapshots
# -----------------------------

class PlayerView(WireModel):
    name: str
    offline: Optional[bool] = None
    # Sheet counts of the stacks the player is holding; only once started.
    stacks: Optional[List[int]] = None
    own_stack: Optional[List[Sheet]] = None


class RoomView(WireModel):
    roomid: str
    started: Optional[bool] = None
    loading: Optional[bool] = None
    ended: Optional[bool] = None
    players: List[PlayerView]
    settings: RoomSettings


class TurnRequest(WireModel):
    """What a player is being asked for. No ``request`` means "waiting"."""

    name: str
    preview: Optional[Sheet] = None
    request: Optional[SheetType] = None


# -----------------------------
# Persistence
# -----------------------------

class SerializedPlayer(WireModel):
    name: str
    accountid: Optional[str] = None
    registered: bool = False
    own_stack: Optional[List[Sheet]] = None
    # Owner names of the stacks this player is holding, head first.
    stacks: List[str] = Field(default_factory=list)


class SerializedRoom(WireModel):
    started: bool = False
    ended: bool = False
    players: List[SerializedPlayer] = Field(default_factory=list)
    settings: RoomSettings = Field(default_factory=RoomSettings)


__all__ = [
    "Sheet",
    "RoomSettings",
    "SettingsPatch",
    "PlayerView",
    "RoomView",
    "TurnRequest",
    "SerializedPlayer",
    "SerializedRoom",
]
