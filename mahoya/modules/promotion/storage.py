"""
Key-value storage for guest D20 state.

Guests have no server identity, so their roll and "popup shown" flag live
in a key-value store under ``<prefix>:<name>:<identity>``.
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol, runtime_checkable

from redis.exceptions import RedisError

from mahoya.core.redis.service import RedisService
from mahoya.modules.shared.constants import POPUP_SHOWN_KEY, ROLL_KEY, STORAGE_KEY_PREFIX
from mahoya.modules.shared.exceptions import TransientIOError


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


def roll_key(identity: str, prefix: str = STORAGE_KEY_PREFIX) -> str:
    return f"{prefix}:{ROLL_KEY}:{identity}"


def popup_shown_key(identity: str, prefix: str = STORAGE_KEY_PREFIX) -> str:
    return f"{prefix}:{POPUP_SHOWN_KEY}:{identity}"


class InMemoryKeyValueStore:
    """Process-local store; one instance per browser-like session."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisKeyValueStore:
    """
    ``KeyValueStore`` over ``RedisService``.

    Redis failures surface as ``TransientIOError``.
    """

    def __init__(self, redis: type[RedisService] | object = RedisService) -> None:
        self._redis = redis

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            raise TransientIOError("kv_get", str(exc)) from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.set(key, value)
        except RedisError as exc:
            raise TransientIOError("kv_set", str(exc)) from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except RedisError as exc:
            raise TransientIOError("kv_delete", str(exc)) from exc
