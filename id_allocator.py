"""
Share id allocation: random UUIDs or administrator-chosen custom ids.
"""

import uuid
from typing import Iterable
from urllib.parse import quote, unquote

from errors import IdConflictError, InvalidIdError
from kv_store import KVStore

SESSION_PREFIX = "session:"
CLIPBOARD_KEY = "clipboard"

# Exact keys a share id may never take
RESERVED_NAMES = frozenset({CLIPBOARD_KEY})
# Key prefixes owned by other parts of the namespace
RESERVED_PREFIXES = (SESSION_PREFIX,)
# Path segments URL normalization removes before the request is sent
DOT_SEGMENTS = frozenset({".", ".."})


def generate_random_id() -> str:
    """Return a version 4 UUID string"""
    return str(uuid.uuid4())


def is_reserved(key: str, reserved_names: Iterable[str] = RESERVED_NAMES) -> bool:
    return key in reserved_names or key.startswith(RESERVED_PREFIXES)


def validate_custom_id(candidate: str, store: KVStore, reserved_names: Iterable[str] = RESERVED_NAMES,
                       max_length: int = 64, from_url_path: bool = False) -> str:
    """
    Validate a caller-supplied share id and return it in stored form.

    Pass from_url_path=True when the candidate was taken from a URL path
    segment; only then is it percent-decoded. Ids typed into a request body
    are kept literally.

    Raises:
        InvalidIdError: empty, too long, reserved, or unusable in a URL path
        IdConflictError: a live key already uses this id
    """
    share_id = candidate or ""
    if from_url_path:
        share_id = unquote(share_id)
    share_id = share_id.strip()
    if not share_id:
        raise InvalidIdError("Custom id must not be empty")
    if len(share_id) > max_length:
        raise InvalidIdError(f"Custom id must be at most {max_length} characters")
    if "/" in share_id or any(not ch.isprintable() for ch in share_id):
        raise InvalidIdError("Custom id contains characters not allowed in a link")
    # Clients collapse dot segments, so /s/. and /s/.. never reach the share
    if share_id in DOT_SEGMENTS:
        raise InvalidIdError("Custom id cannot be '.' or '..'")
    if is_reserved(share_id, reserved_names):
        raise InvalidIdError(f"Custom id '{share_id}' is reserved")
    if store.exists(share_id):
        raise IdConflictError(f"Share id '{share_id}' is already in use")
    return share_id


def share_path(share_id: str) -> str:
    """Path of the public link for share_id, percent-encoded"""
    return f"/s/{quote(share_id, safe='')}"
