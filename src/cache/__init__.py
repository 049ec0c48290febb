# coding: utf-8
"""
Cache module for Redis integration

Provides the ephemeral link code store used by the lazy trading flow.
"""

from src.cache.redis_manager import RedisManager, get_redis_manager
from src.cache.cache_keys import CacheKeyBuilder
from src.cache.link_code_store import (
    LinkCodeEntry,
    LinkCodeStore,
    RedisLinkCodeStore,
    InMemoryLinkCodeStore,
)

__all__ = [
    "RedisManager",
    "get_redis_manager",
    "CacheKeyBuilder",
    "LinkCodeEntry",
    "LinkCodeStore",
    "RedisLinkCodeStore",
    "InMemoryLinkCodeStore",
]
