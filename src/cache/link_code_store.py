# coding: utf-8
"""
Ephemeral link code store: code → wallet with absolute expiry

Writes are insert-or-overwrite per code key. Entries carry their absolute
expiry so a reader never trusts an entry the store has not evicted yet.
"""
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Callable, Optional, Protocol

from loguru import logger

from src.cache.cache_keys import CacheKeyBuilder
from src.cache.redis_manager import RedisManager

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class LinkCodeEntry:
    """Issued link code."""
    code: str
    wallet: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_payload(self) -> dict:
        return {"wallet": self.wallet, "expires_at": self.expires_at.isoformat()}

    @classmethod
    def from_payload(cls, code: str, payload: dict) -> "LinkCodeEntry":
        return cls(
            code=code,
            wallet=payload["wallet"],
            expires_at=datetime.fromisoformat(payload["expires_at"]),
        )


class LinkCodeStore(Protocol):
    async def put(self, entry: LinkCodeEntry, ttl_seconds: int) -> bool: ...

    async def get(self, code: str) -> Optional[LinkCodeEntry]: ...


class RedisLinkCodeStore:
    """
    Link codes in Redis (SETEX, evicted by TTL)

    put() returns False instead of raising when Redis is down, following
    RedisManager's graceful degradation.
    """

    def __init__(self, redis_manager: RedisManager):
        self._redis = redis_manager

    async def put(self, entry: LinkCodeEntry, ttl_seconds: int) -> bool:
        return await self._redis.set(
            CacheKeyBuilder.link_code(entry.code), entry.to_payload(), ttl=ttl_seconds
        )

    async def get(self, code: str) -> Optional[LinkCodeEntry]:
        payload = await self._redis.get(CacheKeyBuilder.link_code(code))
        if not isinstance(payload, dict):
            return None

        try:
            return LinkCodeEntry.from_payload(code, payload)
        except (KeyError, ValueError) as e:
            logger.warning(f"Malformed link code entry for {code}: {e}")
            return None


class InMemoryLinkCodeStore:
    """
    Process-local link codes for development and tests

    Expired entries are evicted on read and swept on every write. Entries are
    kept in write order, so with one TTL the sweep stops at the first live
    entry. Not shared between workers.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._entries: dict[str, LinkCodeEntry] = {}

    async def put(self, entry: LinkCodeEntry, ttl_seconds: int) -> bool:
        self._evict_expired()
        self._entries.pop(entry.code, None)
        self._entries[entry.code] = entry
        return True

    async def get(self, code: str) -> Optional[LinkCodeEntry]:
        entry = self._entries.get(code)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[code]
            return None

        return entry

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = []
        for code, entry in self._entries.items():
            if not entry.is_expired(now):
                break
            expired.append(code)
        for code in expired:
            del self._entries[code]

    def __len__(self) -> int:
        return len(self._entries)
