from tortoise import fields
from tortoise.models import Model


class User(Model):
    """Registered account, keyed by e-mail address."""

    email = fields.CharField(pk=True, max_length=254)
    password_hash = fields.CharField(max_length=128)
    name = fields.CharField(max_length=100)
    regtime = fields.BigIntField(default=0)
    regip = fields.CharField(max_length=64, default="")

    class Meta:
        table = "users"


class Session(Model):
    """Durable browser session; ``email`` is set while logged in."""

    sessionid = fields.CharField(pk=True, max_length=100)
    email = fields.CharField(max_length=254)
    ip = fields.CharField(max_length=64, default="")
    lastlogintime = fields.BigIntField(default=0)

    class Meta:
        table = "sessions"


class RoomRecord(Model):
    roomcode = fields.CharField(pk=True, max_length=200)
    host = fields.CharField(max_length=100, default="")
    creationtime = fields.BigIntField(default=0)
    lastmovetime = fields.BigIntField(default=0)
    playercount = fields.IntField(default=0)
    players = fields.CharField(max_length=100, default="")
    # SerializedRoom as JSON
    state = fields.TextField()

    class Meta:
        table = "rooms"


class UserRoom(Model):
    """A registered user's membership in a room, for "your games" listings."""

    # "<email>|<roomcode>"
    id = fields.CharField(pk=True, max_length=455)
    email = fields.CharField(max_length=254, index=True)
    roomcode = fields.CharField(max_length=200)
    lastmovetime = fields.BigIntField(default=0)
    yourstacks = fields.IntField(default=0)

    class Meta:
        table = "userrooms"
