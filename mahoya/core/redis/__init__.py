"""
Redis infrastructure for Mahoya.
"""

from mahoya.core.redis.service import RedisService

__all__ = ["RedisService"]
