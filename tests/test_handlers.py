"""Frame dispatch, end to end through the registry and account service."""

import pytest

from telepic.auth_utils import hash_password
from telepic.handlers import handle_message

from conftest import frames, last, make_connection

pytestmark = pytest.mark.asyncio


async def send(registry, conn, message):
    await handle_message(registry, conn, message)
    await registry.drain()
    return frames(conn)


def errors(sent):
    return [f.split("|", 1)[1] for f in sent if f.startswith("error|")]


async def test_unknown_verb(registry):
    conn = make_connection()
    sent = await send(registry, conn, "hello|there")
    assert errors(sent) == ["Unrecognized message hello|there"]


@pytest.mark.parametrize("code, message", [
    ("Bad Room", "Room code must contain lowercase letters, numbers, and hyphens (dashes) only"),
    ("r1\n", "Room code must contain lowercase letters, numbers, and hyphens (dashes) only"),
    ("a" * 201, "Room code must be under 200 characters long"),
])
async def test_join_validates_room_code(registry, code, message):
    conn = make_connection()
    sent = await send(registry, conn, f"join|{code}")
    assert errors(sent) == [message]
    assert registry.rooms == {}


async def test_join_creates_room_and_sends_state_after_load(registry):
    conn = make_connection(sessionid="s-1", name="Alice")
    sent = await send(registry, conn, "join|party")
    room = registry.get("party")
    assert room is not None
    assert room.host == "Alice"
    snapshot = last(conn, "room", sent)
    assert snapshot == {"roomid": "party", "players": [], "settings": {"startWith": "text", "desiredStackSize": 0}}


async def test_room_commands_need_a_live_room(registry):
    conn = make_connection()
    for frame in ("addplayer|nowhere|Alice", "removeplayer|nowhere", "startgame|nowhere",
                  'settings|nowhere|{"desiredStackSize": 3}', "submit|nowhere|hi"):
        sent = await send(registry, conn, frame)
        assert errors(sent) == ["Room nowhere not found"]


async def test_full_game_over_the_wire(registry, tables):
    alice = make_connection(sessionid="s-alice")
    bob = make_connection(sessionid="s-bob")
    await send(registry, alice, "join|game")
    await send(registry, bob, "join|game")
    await send(registry, alice, "addplayer|game|Alice")
    await send(registry, bob, "addplayer|game|Bob")
    await send(registry, alice, 'settings|game|{"desiredStackSize": 2}')
    sent = await send(registry, bob, "startgame|game")
    assert last(bob, "player", sent) == {"name": "Bob", "request": "text"}

    await send(registry, alice, "submit|game|a red balloon")
    await send(registry, bob, "submit|game|a blue kite")
    sent = await send(registry, bob, "submit|game|data:image/png;base64,BALLOON")
    assert errors(sent) == []
    sent = await send(registry, alice, "submit|game|data:image/png;base64,KITE")
    snapshot = last(alice, "room", sent)
    assert snapshot["ended"] is True
    assert [s["value"] for s in snapshot["players"][0]["ownStack"]] == [
        "a red balloon", "data:image/png;base64,BALLOON"]

    sent = await send(registry, alice, "submit|game|one more")
    assert errors(sent) == ["Could not submit sheet"]


async def test_precondition_errors(registry):
    alice = make_connection(sessionid="s-alice")
    await send(registry, alice, "join|lobby")

    assert errors(await send(registry, alice, "startgame|lobby")) == [
        "Could not start game (no players or already started)"]
    assert errors(await send(registry, alice, "removeplayer|lobby")) == ["You're not a player"]

    await send(registry, alice, "addplayer|lobby|Alice")
    other = make_connection(sessionid="s-other")
    await send(registry, other, "join|lobby")
    assert errors(await send(registry, other, "addplayer|lobby|alice")) == ["Name alice already in use"]

    await send(registry, alice, "startgame|lobby")
    assert errors(await send(registry, other, "addplayer|lobby|Zoe")) == ["Game already started"]
    assert errors(await send(registry, alice, "removeplayer|lobby")) == ["Game already started"]


async def test_bad_settings_frame_changes_nothing(registry):
    conn = make_connection(sessionid="s-1")
    await send(registry, conn, "join|cfg")
    sent = await send(registry, conn, 'settings|cfg|{"desiredStackSize": "lots"}')
    assert len(errors(sent)) == 1
    assert registry.get("cfg").settings.desired_stack_size == 0


async def test_last_disconnect_evicts_and_rejoin_reloads(registry, tables):
    alice = make_connection(sessionid="s-alice")
    await send(registry, alice, "join|saved")
    await send(registry, alice, "addplayer|saved|Alice")
    alice.destroy()
    await registry.drain()
    assert registry.get("saved") is None
    assert "saved" in tables["rooms"].rows

    again = make_connection(sessionid="s-alice")
    sent = await send(registry, again, "join|saved")
    room = registry.get("saved")
    assert [p.name for p in room.players] == ["Alice"]
    assert room.players[0].connections == {again}
    assert last(again, "player", sent) == {"name": "Alice"}


# -------------------- Accounts -------------------- #

async def test_sessionid_is_validated(registry):
    conn = make_connection()
    sent = await send(registry, conn, "sessionid|NOT VALID")
    assert errors(sent) == ['Invalid sessionid "NOT VALID"']
    assert conn.sessionid is None


async def test_sessionid_rejects_trailing_newline(registry):
    conn = make_connection()
    sent = await send(registry, conn, "sessionid|abc-123\n")
    assert errors(sent) == ['Invalid sessionid "abc-123\n"']
    assert conn.sessionid is None


async def test_register_login_logout(registry, tables):
    conn = make_connection()
    await send(registry, conn, "sessionid|abc-123")
    sent = await send(registry, conn, "register|Ann@Example.com|Ann|hunter|2")
    assert "user|Ann" in sent
    assert conn.user.email == "ann@example.com"
    assert tables["sessions"].rows["abc-123"]["email"] == "ann@example.com"

    sent = await send(registry, conn, "logout")
    assert "user|" in sent
    assert conn.user is None
    assert "abc-123" not in tables["sessions"].rows

    sent = await send(registry, conn, "login|ann@example.com|wrong")
    assert "usererror|Wrong password" in sent
    sent = await send(registry, conn, "login|ann@example.com|hunter|2")
    assert "user|Ann" in sent


async def test_register_rejections(registry, tables):
    conn = make_connection()
    assert "usererror|Invalid sessionid" in await send(registry, conn, "register|a@example.com|A|pw")
    await send(registry, conn, "sessionid|s-1")
    assert "usererror|Invalid email address" in await send(registry, conn, "register|nope|A|pw")
    tables["users"].rows["a@example.com"] = {"email": "a@example.com", "name": "A", "password_hash": "x"}
    sent = await send(registry, conn, "register|a@example.com|A|pw")
    assert 'usererror|An account with e-mail address "a@example.com" already exists.' in sent


async def test_login_unknown_account(registry):
    conn = make_connection(sessionid="s-1")
    sent = await send(registry, conn, "login|ghost@example.com|pw")
    assert "usererror|No account with that email exists" in sent


async def test_sessionid_restores_login(registry, tables):
    tables["users"].rows["bo@example.com"] = {
        "email": "bo@example.com", "name": "Bo", "password_hash": hash_password("pw")}
    tables["sessions"].rows["s-bo"] = {"sessionid": "s-bo", "email": "bo@example.com"}
    conn = make_connection()
    sent = await send(registry, conn, "sessionid|s-bo")
    assert "user|Bo" in sent
    assert conn.account_ref().key == "bo@example.com"


async def test_login_reconnects_to_running_game(registry, tables):
    tables["users"].rows["bo@example.com"] = {
        "email": "bo@example.com", "name": "Bo", "password_hash": hash_password("pw")}

    phone = make_connection()
    await send(registry, phone, "sessionid|phone")
    await send(registry, phone, "login|bo@example.com|pw")
    await send(registry, phone, "join|trip")
    await send(registry, phone, "addplayer|trip")
    await send(registry, phone, "startgame|trip")
    assert "bo@example.com|trip" in tables["user_rooms"].rows

    laptop = make_connection()
    await send(registry, laptop, "sessionid|laptop")
    await send(registry, laptop, "join|trip")
    sent = await send(registry, laptop, "login|bo@example.com|pw")
    assert last(laptop, "player", sent) == {"name": "Bo", "request": "text"}

    sent = await send(registry, laptop, "logout")
    assert "player|" in sent
    assert registry.get("trip").players[0].connections == {phone}
