"""
RedisService: async Redis client for Mahoya.

Purpose
-------
Own a single ``redis.asyncio`` client and expose the small key-value
surface the guest D20 storage needs.

Responsibilities
----------------
- Initialize and shut down the client (idempotent, guarded by a lock)
- Verify connectivity on startup and on demand (``health_check``)
- GET / SET / DELETE with structured debug logging and failure logging

Non-Responsibilities
--------------------
- Business logic of any kind
- Translating Redis errors into domain errors (``RedisKeyValueStore``)

Configuration Keys
------------------
- REDIS_URL              : str (default "redis://localhost:6379/0")
- REDIS_PASSWORD         : str | None
- REDIS_MAX_CONNECTIONS  : int (default 20)
- REDIS_SOCKET_TIMEOUT   : int seconds (default 5)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from mahoya.core.config.config import Config
from mahoya.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisService:
    """Singleton async Redis client with observable KV operations."""

    _client: Optional[AsyncRedis] = None
    _init_lock: asyncio.Lock = asyncio.Lock()
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the client and PING it.

        Raises:
            RuntimeError: If the connection cannot be established.
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        async with cls._init_lock:
            if cls._client is not None:
                return

            url = url or Config.REDIS_URL
            start_time = time.monotonic()
            client: Optional[AsyncRedis] = None
            try:
                client = AsyncRedis.from_url(
                    url,
                    password=Config.REDIS_PASSWORD,
                    socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                    max_connections=Config.REDIS_MAX_CONNECTIONS,
                    decode_responses=True,
                    encoding="utf-8",
                )
                await client.ping()
            except RedisError as exc:
                if client is not None:
                    await client.aclose()
                cls._is_healthy = False
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": url.split("://")[0] if "://" in url else "unknown",
                    },
                    exc_info=True,
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

            cls._client = client
            cls._is_healthy = True
            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": url.split("://")[0] if "://" in url else "unknown",
                    "max_connections": Config.REDIS_MAX_CONNECTIONS,
                    "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Close the client. Safe to call when not initialized."""
        client = cls._client
        cls._client = None
        cls._is_healthy = False
        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return
        await client.aclose()
        logger.info("RedisService shutdown complete")

    @classmethod
    def use_client(cls, client: Any) -> None:
        """Install an already-built client (tests, shared pools)."""
        cls._client = client
        cls._is_healthy = client is not None

    @classmethod
    def client(cls) -> AsyncRedis:
        if cls._client is None:
            raise RuntimeError("RedisService not initialized. Call RedisService.initialize() first.")
        return cls._client

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        if cls._client is None:
            logger.warning("Health check failed: RedisService not initialized")
            cls._is_healthy = False
            return False

        try:
            start_time = time.monotonic()
            pong = await cls._client.ping()
            cls._is_healthy = bool(pong)
            logger.debug(
                "Redis health check",
                extra={"healthy": cls._is_healthy, "latency_ms": round((time.monotonic() - start_time) * 1000, 2)},
            )
            return cls._is_healthy
        except (RedisConnectionError, RedisError) as exc:
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

    @classmethod
    def is_healthy(cls) -> bool:
        return cls._is_healthy

    # ═══════════════════════════════════════════════════════════════════════
    # KEY-VALUE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def get(cls, key: str) -> Optional[str]:
        start_time = time.monotonic()
        try:
            result = await cls.client().get(key)
        except RedisError as exc:
            cls._log_failure("GET", key, start_time, exc)
            raise
        logger.debug(
            "Redis GET operation",
            extra={"key": key, "found": result is not None, "latency_ms": cls._elapsed_ms(start_time)},
        )
        return result

    @classmethod
    async def set(cls, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """Set ``key``; ``ttl_seconds=None`` keeps the value until deleted."""
        start_time = time.monotonic()
        try:
            result = await cls.client().set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            cls._log_failure("SET", key, start_time, exc)
            raise
        logger.debug(
            "Redis SET operation",
            extra={"key": key, "ttl_seconds": ttl_seconds, "latency_ms": cls._elapsed_ms(start_time)},
        )
        return bool(result)

    @classmethod
    async def delete(cls, key: str) -> int:
        start_time = time.monotonic()
        try:
            count = await cls.client().delete(key)
        except RedisError as exc:
            cls._log_failure("DELETE", key, start_time, exc)
            raise
        logger.debug(
            "Redis DELETE operation",
            extra={"key": key, "deleted_count": int(count), "latency_ms": cls._elapsed_ms(start_time)},
        )
        return int(count)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.monotonic() - start_time) * 1000, 2)

    @classmethod
    def _log_failure(cls, operation: str, key: str, start_time: float, exc: Exception) -> None:
        logger.error(
            f"Redis {operation} operation failed",
            extra={
                "key": key,
                "latency_ms": cls._elapsed_ms(start_time),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
