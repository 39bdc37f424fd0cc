import json
import os
from typing import Any, Dict, List, Optional

# Keep password hashing fast; read when telepic.auth_utils is imported.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from tortoise.exceptions import OperationalError

from telepic.accounts import Account, AccountService
from telepic.connection import Connection
from telepic.constants import Phase
from telepic.registry import RoomRegistry
from telepic.room import Room


class MemoryTable:
    """Dict-backed stand-in for a database table."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.broken = False

    def _check(self):
        if self.broken:
            raise OperationalError("database is unavailable")

    async def get(self, key):
        self._check()
        row = self.rows.get(key)
        return dict(row) if row is not None else None

    async def set(self, key, record):
        self._check()
        self.rows[key] = {**self.rows.get(key, {}), **record}

    async def delete(self, key):
        self._check()
        self.rows.pop(key, None)

    async def try_insert(self, key, record):
        self._check()
        if key in self.rows:
            return False
        self.rows[key] = dict(record)
        return True


@pytest.fixture
def tables():
    return {
        "rooms": MemoryTable(),
        "users": MemoryTable(),
        "sessions": MemoryTable(),
        "user_rooms": MemoryTable(),
    }


@pytest.fixture
def accounts(tables):
    return AccountService(tables["users"], tables["sessions"], tables["user_rooms"])


@pytest.fixture
def registry(tables, accounts):
    return RoomRegistry(tables["rooms"], accounts)


@pytest.fixture
def room(registry):
    """A live, already-loaded empty room."""
    r = Room("r1", registry)
    r.phase = Phase.NOT_STARTED
    registry.rooms[r.code] = r
    return r


def make_connection(sessionid: Optional[str] = None, name: Optional[str] = None,
                    email: Optional[str] = None) -> Connection:
    conn = Connection(ip="127.0.0.1")
    conn.sessionid = sessionid
    conn.name = name
    if email is not None:
        conn.user = Account(email=email, name=name or email)
    return conn


def frames(conn: Connection) -> List[str]:
    """Pop everything queued for *conn*."""
    out = []
    while not conn.outbox.empty():
        out.append(conn.outbox.get_nowait())
    return out


def last(conn: Connection, kind: str, sent: Optional[List[str]] = None):
    """Decode the most recent ``kind|...`` frame; None for an empty payload."""
    sent = frames(conn) if sent is None else sent
    matching = [f for f in sent if f.split("|", 1)[0] == kind]
    assert matching, f"no {kind} frame in {sent}"
    payload = matching[-1].split("|", 1)[1]
    return json.loads(payload) if payload else None
