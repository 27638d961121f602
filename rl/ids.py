"""
Short ID generation and validation.

New links get 128 random bits (a UUID4) encoded as unpadded, lowercase
base-32: always 26 characters. Validation is deliberately looser so that
12-character hex ids written by older versions of the store keep working.
"""
import base64
import re
import uuid

from rl.errors import InvalidIDError

ID_LENGTH = 26

_VALID_ID = re.compile(r"[A-Za-z0-9]{10,30}")


def new_id() -> str:
    """Return a fresh short ID."""
    encoded = base64.b32encode(uuid.uuid4().bytes).decode("ascii")
    return encoded.rstrip("=").lower()


def is_valid_id(value) -> bool:
    """
    Check whether a string looks like a short ID.

    Accepts any ASCII alphanumeric string of 10 to 30 characters,
    case-insensitive.
    """
    return isinstance(value, str) and _VALID_ID.fullmatch(value) is not None


def require_valid_id(value) -> str:
    """Return value unchanged, or raise InvalidIDError."""
    if not is_valid_id(value):
        raise InvalidIDError(str(value))
    return value
