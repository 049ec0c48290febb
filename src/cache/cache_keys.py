# coding: utf-8
"""
Redis key layout
"""
from typing import Optional

from config.cache_config import KeyConfig


class CacheKeyBuilder:
    """
    Namespaced Redis keys

    Examples:
        >>> CacheKeyBuilder.link_code('LT3F9A0C12BB7E')
        'maxxit:lazy_trading:link_code:LT3F9A0C12BB7E'
    """

    @staticmethod
    def build(service: str, kind: str, item_id: Optional[str] = None) -> str:
        parts = [KeyConfig.NAMESPACE, service, kind]
        if item_id:
            parts.append(item_id)
        return KeyConfig.SEPARATOR.join(parts)

    @classmethod
    def link_code(cls, code: str) -> str:
        return cls.build("lazy_trading", "link_code", code)
