import re
from enum import Enum


class SheetType(str, Enum):
    TEXT = "text"
    PIC = "pic"


class Phase(str, Enum):
    LOADING = "loading"
    NOT_STARTED = "not_started"
    STARTED = "started"
    ENDED = "ended"


# Floor for the stack size picked at start when the room has none configured.
DEFAULT_STACK_SIZE = 5

ROOM_CODE_RE = re.compile(r"^[a-z0-9-]+$")
ROOM_CODE_MAX_LENGTH = 200

SESSIONID_RE = re.compile(r"^[a-z0-9-]+$")
SESSIONID_MAX_LENGTH = 100

# Stored alongside each room record for listings.
PLAYER_SUMMARY_MAX_LENGTH = 100

__all__ = [
    "SheetType",
    "Phase",
    "DEFAULT_STACK_SIZE",
    "ROOM_CODE_RE",
    "ROOM_CODE_MAX_LENGTH",
    "SESSIONID_RE",
    "SESSIONID_MAX_LENGTH",
    "PLAYER_SUMMARY_MAX_LENGTH",
]
