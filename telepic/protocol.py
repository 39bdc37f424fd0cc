"""Inbound frame parsing.

Frames are ``verb|arg1|arg2|...``. Each verb maps to one pydantic command
model; the discriminated union rejects anything else at the boundary.
"""
from __future__ import annotations

from typing import Annotated, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, Json, TypeAdapter, ValidationError

from .errors import ProtocolError
from .schemas import SettingsPatch


class SessionIdCommand(BaseModel):
    verb: Literal["sessionid"]
    sessionid: str


class LoginCommand(BaseModel):
    verb: Literal["login"]
    email: str
    password: str


class RegisterCommand(BaseModel):
    verb: Literal["register"]
    email: str
    name: str
    password: str


class LogoutCommand(BaseModel):
    verb: Literal["logout"]


class NameCommand(BaseModel):
    verb: Literal["name"]
    name: str


class JoinCommand(BaseModel):
    verb: Literal["join"]
    roomcode: str


class AddPlayerCommand(BaseModel):
    verb: Literal["addplayer"]
    roomcode: str
    name: Optional[str] = None


class RemovePlayerCommand(BaseModel):
    verb: Literal["removeplayer"]
    roomcode: str


class StartGameCommand(BaseModel):
    verb: Literal["startgame"]
    roomcode: str


class SettingsCommand(BaseModel):
    verb: Literal["settings"]
    roomcode: str
    settings: Json[SettingsPatch]


class SubmitCommand(BaseModel):
    verb: Literal["submit"]
    roomcode: str
    value: str


Command = Annotated[
    Union[
        SessionIdCommand,
        LoginCommand,
        RegisterCommand,
        LogoutCommand,
        NameCommand,
        JoinCommand,
        AddPlayerCommand,
        RemovePlayerCommand,
        StartGameCommand,
        SettingsCommand,
        SubmitCommand,
    ],
    Field(discriminator="verb"),
]

RoomCommand = Union[AddPlayerCommand, RemovePlayerCommand, StartGameCommand, SettingsCommand, SubmitCommand]

_command_adapter: TypeAdapter = TypeAdapter(Command)

# Positional argument names per verb. A trailing "*" swallows the rest of the
# frame, pipes included.
ARGUMENTS: Dict[str, Tuple[str, ...]] = {
    "sessionid": ("sessionid",),
    "login": ("email", "password*"),
    "register": ("email", "name", "password*"),
    "logout": (),
    "name": ("name",),
    "join": ("roomcode",),
    "addplayer": ("roomcode", "name"),
    "removeplayer": ("roomcode",),
    "startgame": ("roomcode",),
    "settings": ("roomcode", "settings*"),
    "submit": ("roomcode", "value*"),
}


def parse_frame(message: str) -> Command:
    verb, *args = message.split("|")
    names = ARGUMENTS.get(verb)
    if names is None:
        raise ProtocolError(f"Unrecognized message {message}")

    data: Dict[str, str] = {"verb": verb}
    for i, name in enumerate(names):
        if i >= len(args):
            break
        if name.endswith("*"):
            data[name[:-1]] = "|".join(args[i:])
            break
        data[name] = args[i]

    try:
        return _command_adapter.validate_python(data)
    except ValidationError as err:
        fields = ", ".join(".".join(str(loc) for loc in e["loc"][1:]) or verb for e in err.errors())
        raise ProtocolError(f"Invalid {verb} message ({fields})") from err


__all__ = [
    "Command",
    "RoomCommand",
    "SessionIdCommand",
    "LoginCommand",
    "RegisterCommand",
    "LogoutCommand",
    "NameCommand",
    "JoinCommand",
    "AddPlayerCommand",
    "RemovePlayerCommand",
    "StartGameCommand",
    "SettingsCommand",
    "SubmitCommand",
    "parse_frame",
]
