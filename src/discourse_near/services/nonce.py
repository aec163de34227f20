"""Single-use nonces bound to a client and an ephemeral private key."""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock
from typing import Final

from discourse_near.core.log import short_nonce

logger = logging.getLogger(__name__)

DEFAULT_NONCE_TTL_SECONDS: Final[int] = 600  # 10 minutes
NONCE_BYTES: Final[int] = 32


@dataclass(frozen=True)
class NonceRecord:
    """State bridging the auth URL request and the link completion."""

    nonce: str
    client_id: str
    private_key: bytes = field(repr=False)
    created_at: float


class NonceRegistry:
    """In-memory registry of pending nonces.

    Records are immutable. They leave the registry either through
    ``consume`` or once they are older than the TTL, whichever comes first.
    All methods are safe to call from concurrent requests.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_NONCE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._records: dict[str, NonceRecord] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _is_expired(self, record: NonceRecord, now: float) -> bool:
        return now - record.created_at > self.ttl_seconds

    def create(self, client_id: str, private_key: bytes) -> str:
        """Register a new nonce for ``client_id`` and return it."""
        with self._lock:
            nonce = secrets.token_hex(NONCE_BYTES)
            while nonce in self._records:  # pragma: no cover - 256-bit collision
                nonce = secrets.token_hex(NONCE_BYTES)
            self._records[nonce] = NonceRecord(
                nonce=nonce,
                client_id=client_id,
                private_key=private_key,
                created_at=self._clock(),
            )
        logger.info("Created nonce %s", short_nonce(nonce))
        return nonce

    def verify(self, nonce: str, client_id: str) -> bool:
        """Return True if ``nonce`` is pending, unexpired and owned by ``client_id``.

        Expired records are evicted. The nonce is not consumed.
        """
        with self._lock:
            record = self._records.get(nonce)
            if record is None:
                logger.info("Nonce not found: %s", short_nonce(nonce))
                return False
            if self._is_expired(record, self._clock()):
                del self._records[nonce]
                logger.info("Nonce expired: %s", short_nonce(nonce))
                return False
        if record.client_id != client_id:
            logger.warning("Client ID mismatch for nonce %s", short_nonce(nonce))
            return False
        return True

    def get_private_key(self, nonce: str) -> bytes | None:
        """Return the private key stored for ``nonce``; callers must ``verify`` first."""
        with self._lock:
            record = self._records.get(nonce)
        return record.private_key if record is not None else None

    def get(self, nonce: str) -> NonceRecord | None:
        with self._lock:
            return self._records.get(nonce)

    def consume(self, nonce: str, expected: NonceRecord | None = None) -> bool:
        """Remove ``nonce`` from the registry.

        With ``expected`` the removal only happens while that exact record is
        still registered, so only one of several concurrent completions can
        consume it. Returns True for the caller that removed the record.
        Consuming an absent nonce is a no-op.
        """
        with self._lock:
            record = self._records.get(nonce)
            if record is None or (expected is not None and record is not expected):
                return False
            del self._records[nonce]
        logger.info("Consumed nonce %s", short_nonce(nonce))
        return True

    def sweep(self) -> int:
        """Drop every expired record and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [n for n, record in self._records.items() if self._is_expired(record, now)]
            for nonce in expired:
                del self._records[nonce]
        if expired:
            logger.info("Cleaned up %d expired nonces", len(expired))
        return len(expired)
