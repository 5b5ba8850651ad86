"""Remote identifier derivation and sync token handling.

A login identity maps to the remote snapshot through a stable, one-way,
non-secret encoding. This is a personal namespace key, not an auth token:
anyone who knows the identity (or the token) can read the snapshot.
"""

from __future__ import annotations

import hashlib
import re

from .validation import ValidationError

__all__ = [
    "InvalidToken",
    "REMOTE_ID_PREFIX",
    "derive_remote_id",
    "normalize_identity",
    "normalize_token",
]

REMOTE_ID_PREFIX = "dm"
REMOTE_ID_DIGEST_CHARS = 30

_TOKEN_RE = re.compile(r"^[0-9a-z][0-9a-z_-]{7,63}$")


class InvalidToken(Exception):
    """A sync token that is malformed or does not resolve to a remote snapshot."""


def normalize_identity(identity: str) -> str:
    """Case-fold and trim a login identity.

    Raises:
        ValidationError: If the identity is empty
    """
    if not isinstance(identity, str) or not identity.strip():
        raise ValidationError("identity", "cannot be empty")
    return identity.strip().casefold()


def derive_remote_id(identity: str) -> str:
    """Derive the remote snapshot id for a login identity.

    The same identity always yields the same 32-character lowercase id.

    >>> derive_remote_id("Charan") == derive_remote_id("  charan ")
    True
    """
    digest = hashlib.sha256(normalize_identity(identity).encode("utf-8")).hexdigest()
    return REMOTE_ID_PREFIX + digest[:REMOTE_ID_DIGEST_CHARS]


def normalize_token(token: str) -> str:
    """Clean up a pasted sync token.

    Raises:
        InvalidToken: If the token cannot be a remote id
    """
    if not isinstance(token, str):
        raise InvalidToken("Sync token must be text")
    cleaned = token.strip().lower()
    if not _TOKEN_RE.match(cleaned):
        raise InvalidToken(
            "Sync token must be 8-64 characters of letters, digits, '-' or '_'"
        )
    return cleaned
