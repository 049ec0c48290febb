# coding: utf-8
"""
Redis configuration for the link code store

Redis holds nothing but lazy trading link codes; a lost Redis loses at most
ten minutes of unexchanged codes.
"""
import os


class RedisConfig:
    """
    Redis connection and failure behavior
    """

    URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Link code writes are small and rare
    MAX_CONNECTIONS = int(os.getenv("REDIS_MAX_CONNECTIONS", "10"))

    SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "2"))
    SOCKET_CONNECT_TIMEOUT = float(os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "2"))

    ENABLED = os.getenv("REDIS_ENABLED", "true").lower() == "true"
    """false = never connect, every link code write is degraded"""

    RAISE_ON_ERROR = os.getenv("REDIS_RAISE_ON_ERROR", "false").lower() == "true"
    """true = Redis errors propagate instead of being logged and swallowed"""


class KeyConfig:
    """
    Key layout: {namespace}:{service}:{kind}:{id}
    """

    NAMESPACE = os.getenv("REDIS_KEY_NAMESPACE", "maxxit")
    SEPARATOR = ":"


if __name__ == "__main__":
    print("Redis Configuration:")
    print(f"URL: {RedisConfig.URL}")
    print(f"Enabled: {RedisConfig.ENABLED}")
    print(f"Key namespace: {KeyConfig.NAMESPACE}")
