from typing import Any, Awaitable, Callable, Protocol, cast

from loguru import logger
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from config.app_settings import settings


class SnapshotBackend(Protocol):
    async def read(self, field: str) -> str | None: ...

    async def write(self, field: str, value: str) -> bool: ...

    async def delete(self, field: str) -> None: ...

    async def close(self) -> None: ...


class RedisSnapshotBackend:
    """Stores one serialized snapshot per user as a field of a single Redis hash."""

    def __init__(
        self,
        key: str | None = None,
        *,
        url: str | None = None,
        client_factory: Callable[[], Redis] | None = None,
    ) -> None:
        self.key = self._add_prefix(key or settings.SUGGESTIONS_CACHE_KEY)
        self._url = url or settings.REDIS_URL
        self._client_factory = client_factory or self._create_client
        self._redis: Redis | None = None

    def _create_client(self) -> Redis:
        return from_url(
            url=self._url,
            db=settings.REDIS_DB,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
        )

    def _client(self) -> Redis:
        if self._redis is None:
            self._redis = self._client_factory()
        return self._redis

    async def _reset_client(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Redis client close failed: {exc}")
        finally:
            self._redis = None

    async def _with_client(
        self,
        func: Callable[[Redis], Awaitable[Any]],
        *,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> Any:
        for attempt in (1, 2):
            client = self._client()
            try:
                return await func(client)
            except RedisError as exc:
                logger.warning(f"Redis operation failed (attempt {attempt}): {exc}")
                await self._reset_client()
                if attempt >= 2 and on_error is not None:
                    return on_error(exc)
        return None

    @staticmethod
    def _add_prefix(key: str) -> str:
        return key if key.startswith("liftlog:") else f"liftlog:{key}"

    async def read(self, field: str) -> str | None:
        def _op(client: Redis) -> Awaitable[str | None]:
            return cast(Awaitable[str | None], client.hget(self.key, field))

        return await self._with_client(
            _op,
            on_error=lambda e: logger.error(f"Redis HGET error [{self.key}:{field}]: {e}") or None,
        )

    async def write(self, field: str, value: str) -> bool:
        async def _op(client: Redis) -> bool:
            await cast(Awaitable[int], client.hset(self.key, field, value))
            return True

        result = await self._with_client(
            _op,
            on_error=lambda e: logger.error(f"Redis HSET error [{self.key}:{field}]: {e}") or False,
        )
        return bool(result)

    async def delete(self, field: str) -> None:
        def _op(client: Redis) -> Awaitable[int]:
            return cast(Awaitable[int], client.hdel(self.key, field))

        await self._with_client(_op, on_error=lambda e: logger.error(f"Redis HDEL error [{self.key}:{field}]: {e}"))

    async def close(self) -> None:
        try:
            await self._reset_client()
            logger.debug("Redis connection closed.")
        except Exception as e:  # noqa: BLE001
            logger.error(f"Error closing Redis connection: {e}")


class MemorySnapshotBackend:
    """Process-local backend for setups without Redis."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def read(self, field: str) -> str | None:
        return self._data.get(field)

    async def write(self, field: str, value: str) -> bool:
        self._data[field] = value
        return True

    async def delete(self, field: str) -> None:
        self._data.pop(field, None)

    async def close(self) -> None:
        return None


def build_snapshot_backend(kind: str | None = None) -> SnapshotBackend:
    backend = (kind or settings.SUGGESTIONS_CACHE_BACKEND).lower()
    if backend == "memory":
        return MemorySnapshotBackend()
    if backend == "redis":
        return RedisSnapshotBackend()
    raise ValueError(f"Unknown snapshot backend: {kind}")
