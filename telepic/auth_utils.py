import re

from passlib.context import CryptContext

from .config import Config
from .constants import SESSIONID_MAX_LENGTH, SESSIONID_RE

# -----------------------------
# Password hashing helpers
# -----------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=Config.BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    """Return a secure bcrypt hash of *password*."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Verify *password* against *hashed* bcrypt digest."""
    return pwd_context.verify(password, hashed)


# -----------------------------
# Identifier validation
# -----------------------------

EMAIL_RE = re.compile(
    r"^[a-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[a-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$"
)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.fullmatch(email))


def is_valid_sessionid(sessionid: str) -> bool:
    return bool(SESSIONID_RE.fullmatch(sessionid)) and len(sessionid) <= SESSIONID_MAX_LENGTH


__all__ = [
    "pwd_context",
    "hash_password",
    "verify_password",
    "is_valid_email",
    "is_valid_sessionid",
]
