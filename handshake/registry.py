"""
handshake/registry.py -- Bounded, self-expiring, single-use nonce cache.

Flow:
  1. GET /api/handshake          -> issue(): fresh nonce + server packet.
  2. POST /api/handshake/confirm -> confirm(nonce): succeeds once, then the
                                    nonce is gone.

Every issued entry has exactly one fate: confirmed-and-removed, or evicted
after the TTL (default 2 minutes). Three mechanisms keep that true:

  - Per-nonce timer: issue() schedules loop.call_later(ttl, evict) when it
    runs on an asyncio loop (the normal case -- the handshake routes are
    async). confirm() cancels the timer.
  - Lazy check: confirm() rejects an entry whose age is >= ttl even if its
    timer has not fired yet (or there was no loop to schedule one on).
  - Opportunistic purge: issue() drops expired entries before inserting, so
    the map stays bounded when used without an event loop.

The map is shared process-wide and mutated from request handlers and timer
callbacks, so all access goes through one threading.Lock. The map itself is
never handed out.

Ages are measured with time.monotonic() (injectable for tests); the packet's
timestamp field is wall-clock epoch milliseconds for the client.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from core.errors import NonceInvalidOrExpired, NonceMissing

logger = logging.getLogger("careshop.handshake")

DEFAULT_TTL_SECONDS = 120.0
SERVER_TYPE = "api"


@dataclass(frozen=True)
class HandshakePacket:
    """The payload a client receives and must echo the nonce of."""

    nonce: str
    server_version: str
    server_type: str
    server_name: str
    timestamp: int  # epoch milliseconds at issue
    features: list[str] = field(default_factory=list)


@dataclass
class _Entry:
    packet: HandshakePacket
    created_at: float  # clock() seconds
    timer: Optional[asyncio.TimerHandle] = None


class HandshakeRegistry:
    """Issues handshake nonces and validates their echo.

    Usage:
        registry = HandshakeRegistry("careshop-api", "1.0.0", ["auth"])
        packet = registry.issue()
        registry.confirm(packet.nonce, {"browser": "..."})   # ok
        registry.confirm(packet.nonce)                       # NonceInvalidOrExpired
    """

    def __init__(
        self,
        server_name: str,
        server_version: str,
        features: Iterable[str] = (),
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.server_name = server_name
        self.server_version = server_version
        self.features = list(features)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def issue(self) -> HandshakePacket:
        """Create a nonce, remember it for ttl_seconds, and return the packet."""
        packet = HandshakePacket(
            nonce=secrets.token_urlsafe(24),
            server_version=self.server_version,
            server_type=SERVER_TYPE,
            server_name=self.server_name,
            timestamp=int(time.time() * 1000),
            features=list(self.features),
        )
        now = self._clock()
        with self._lock:
            self._purge_expired_locked(now)
            self._entries[packet.nonce] = _Entry(packet, now, self._schedule_eviction(packet.nonce))
        return packet

    def confirm(self, nonce: str | None, client_metadata: Mapping[str, Any] | None = None) -> HandshakePacket:
        """Consume a nonce. Returns the packet it was issued with.

        Raises:
            NonceMissing:          nonce is empty.
            NonceInvalidOrExpired: never issued, already confirmed, or past the TTL.
        """
        if not nonce:
            raise NonceMissing()
        now = self._clock()
        with self._lock:
            entry = self._entries.pop(nonce, None)
        if entry is None:
            raise NonceInvalidOrExpired()
        if entry.timer is not None:
            entry.timer.cancel()
        if now - entry.created_at >= self.ttl_seconds:
            raise NonceInvalidOrExpired()
        meta = client_metadata or {}
        logger.info(
            "Handshake confirmed (browser=%s, platform=%s, language=%s)",
            str(meta.get("browser", ""))[:200],
            meta.get("platform", ""),
            meta.get("language", ""),
        )
        return entry.packet

    def purge_expired(self) -> int:
        """Drop every entry past its TTL. Returns the number removed."""
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def close(self) -> None:
        """Cancel all pending eviction timers and forget every nonce."""
        with self._lock:
            for entry in self._entries.values():
                if entry.timer is not None:
                    entry.timer.cancel()
            self._entries.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _schedule_eviction(self, nonce: str) -> Optional[asyncio.TimerHandle]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        return loop.call_later(self.ttl_seconds, self._evict, nonce)

    def _evict(self, nonce: str) -> None:
        with self._lock:
            evicted = self._entries.pop(nonce, None)
        if evicted is not None:
            logger.debug("Handshake nonce expired unconfirmed")

    def _purge_expired_locked(self, now: float) -> int:
        expired = [n for n, e in self._entries.items() if now - e.created_at >= self.ttl_seconds]
        for nonce in expired:
            entry = self._entries.pop(nonce)
            if entry.timer is not None:
                entry.timer.cancel()
        return len(expired)
