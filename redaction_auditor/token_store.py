"""
Hand-off of raw document bytes keyed by an opaque token.

The intake side puts the bytes and passes only the token along; the
analysis side takes them exactly once.
"""

import time
import uuid
from typing import Optional


class TokenError(Exception):
    """Document bytes could not be obtained for a token."""


class MissingTokenError(TokenError):
    """No token was supplied."""


class ExpiredTokenError(TokenError):
    """The token is unknown, already used or past its time-to-live."""


class TokenStore:
    """
    In-memory byte store with fetch-once semantics.

    Args:
        ttl: Seconds an entry stays valid (None keeps it until taken)
    """

    def __init__(self, ttl: Optional[float] = None):
        self.ttl = ttl
        self._entries: dict[str, tuple[bytes, float]] = {}

    def put(self, data: bytes) -> str:
        token = uuid.uuid4().hex
        self._entries[token] = (bytes(data), time.monotonic())
        return token

    def take(self, token: Optional[str]) -> bytes:
        """
        Remove and return the bytes stored under a token.

        Raises:
            MissingTokenError: If token is empty
            ExpiredTokenError: If there is nothing (left) under the token
        """
        if not token:
            raise MissingTokenError("No document token found")

        entry = self._entries.pop(token, None)
        if entry is None:
            raise ExpiredTokenError(f"Document for token {token} has expired")

        data, stored_at = entry
        if self.ttl is not None and time.monotonic() - stored_at > self.ttl:
            raise ExpiredTokenError(f"Document for token {token} has expired")
        return data

    def discard(self, token: str) -> None:
        self._entries.pop(token, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, token: str) -> bool:
        return token in self._entries
