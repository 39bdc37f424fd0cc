"""Accounts, sessions and the per-user "games I'm in" bookkeeping.

A connection is identified to rooms by its ``AccountRef``: the e-mail of the
logged-in user, or failing that the bare browser session id. Only registered
references are worth remembering across sessions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from tortoise.exceptions import BaseORMException

from .auth_utils import hash_password, is_valid_email, is_valid_sessionid, verify_password
from .storage import Table, now_ms

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountRef:
    key: str
    registered: bool = False

    def __str__(self) -> str:
        return self.key


@dataclass
class Account:
    email: str
    name: str

    @property
    def ref(self) -> AccountRef:
        return AccountRef(self.email, registered=True)


class AccountService:
    def __init__(self, users: Table, sessions: Table, user_rooms: Table):
        self.users = users
        self.sessions = sessions
        self.user_rooms = user_rooms

    # -------------------- Sessions -------------------- #

    async def set_sessionid(self, connection: "Connection", sessionid: str) -> bool:
        """Bind *connection* to a session, logging in if the session has a user."""
        if not is_valid_sessionid(sessionid):
            connection.send(f'error|Invalid sessionid "{sessionid}"')
            return False
        connection.sessionid = sessionid
        connection.user = None
        try:
            session = await self.sessions.get(sessionid)
            if not session:
                return False
            user_info = await self.users.get(session["email"])
            if not user_info:
                return False
        except BaseORMException:
            logger.exception("Could not restore session %s", sessionid)
            return False
        connection.set_user(Account(email=session["email"], name=user_info["name"]))
        return True

    async def _record_session(self, connection: "Connection", email: str) -> None:
        await self.sessions.set(connection.sessionid, {
            "email": email,
            "ip": connection.ip,
            "lastlogintime": now_ms(),
        })

    # -------------------- Login / registration -------------------- #

    async def register(self, connection: "Connection", email: str, password: str, name: str) -> bool:
        email = email.strip().lower()
        if not connection.sessionid:
            connection.send("usererror|Invalid sessionid")
            return False
        if not is_valid_email(email):
            connection.send("usererror|Invalid email address")
            return False
        try:
            inserted = await self.users.try_insert(email, {
                "password_hash": hash_password(password),
                "name": name,
                "regtime": now_ms(),
                "regip": connection.ip,
            })
            if not inserted:
                connection.send(f'usererror|An account with e-mail address "{email}" already exists.')
                return False
            await self._record_session(connection, email)
        except BaseORMException as err:
            logger.exception("Registration failed for %s", email)
            connection.send(f"usererror|Database error: {err}")
            return False
        connection.set_user(Account(email=email, name=name))
        return True

    async def login(self, connection: "Connection", email: str, password: str) -> bool:
        email = email.strip().lower()
        try:
            user_info = await self.users.get(email)
            if not user_info:
                connection.send("usererror|No account with that email exists")
                return False
            if not verify_password(password, user_info["password_hash"]):
                connection.send("usererror|Wrong password")
                return False
            if not connection.sessionid:
                connection.send("usererror|Invalid sessionid")
                return False
            await self._record_session(connection, email)
        except BaseORMException as err:
            logger.exception("Login failed for %s", email)
            connection.send(f"usererror|Database error: {err}")
            return False
        connection.set_user(Account(email=email, name=user_info["name"]))
        return True

    async def logout(self, connection: "Connection") -> bool:
        if not connection.sessionid or connection.user is None:
            return False
        connection.set_user(None)
        try:
            await self.sessions.delete(connection.sessionid)
        except BaseORMException:
            logger.exception("Could not delete session %s", connection.sessionid)
        return True

    # -------------------- Game membership hooks -------------------- #

    async def remember_game(self, account: Optional[AccountRef], roomcode: str,
                            lastmovetime: int, yourstacks: int) -> None:
        if account is None or not account.registered:
            return
        try:
            await self.user_rooms.set(f"{account.key}|{roomcode}", {
                "email": account.key,
                "roomcode": roomcode,
                "lastmovetime": lastmovetime,
                "yourstacks": yourstacks,
            })
        except BaseORMException:
            logger.exception("Could not remember game %s for %s", roomcode, account)

    async def forget_game(self, account: Optional[AccountRef], roomcode: str) -> None:
        if account is None or not account.registered:
            return
        try:
            await self.user_rooms.delete(f"{account.key}|{roomcode}")
        except BaseORMException:
            logger.exception("Could not forget game %s for %s", roomcode, account)


__all__ = ["AccountRef", "Account", "AccountService"]
