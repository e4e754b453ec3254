import asyncio
from contextlib import suppress
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from loguru import logger

from config.app_settings import settings
from liftlog.cache.snapshot import SnapshotCacheStore
from liftlog.enums import FreshnessState
from liftlog.exceptions import CandidateSourceError
from liftlog.schemas import FetchErrorInfo, Snapshot


class CandidateSource(Protocol):
    async def get_snapshot(self, user_id: str) -> Snapshot: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FreshnessController:
    """Decides when the cached snapshot must be refetched and runs the fetch.

    Only one fetch is in flight at a time; ``ensure_fresh``, ``refresh`` and
    ``invalidate`` issued while fetching all await the same task. Fetch
    failures never propagate: they are kept in ``last_error`` and the held
    snapshot, if any, keeps being served.
    """

    def __init__(
        self,
        store: SnapshotCacheStore,
        source: CandidateSource,
        *,
        window: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.source = source
        self.window = window if window is not None else timedelta(seconds=settings.SUGGESTIONS_CACHE_TTL)
        self._clock = clock or _utcnow
        self._state = FreshnessState.cold
        self._last_error: FetchErrorInfo | None = None
        self._inflight: asyncio.Task[Snapshot | None] | None = None
        self._request_seq = 0

    @property
    def user_id(self) -> str:
        return self.store.user_id

    @property
    def state(self) -> FreshnessState:
        return self._state

    @property
    def snapshot(self) -> Snapshot | None:
        return self.store.current()

    @property
    def last_error(self) -> FetchErrorInfo | None:
        return self._last_error

    @property
    def is_ready(self) -> bool:
        return self.store.current() is not None

    @property
    def is_fetching(self) -> bool:
        return self._inflight is not None

    def is_fresh(self, snapshot: Snapshot) -> bool:
        return snapshot.age(self._clock()) < self.window

    async def ensure_fresh(self) -> Snapshot | None:
        if self._inflight is not None:
            return await self._join()

        snapshot = self.store.current()
        if snapshot is None:
            self._state = FreshnessState.cold
            snapshot = await self.store.load()
            if self._inflight is not None:
                return await self._join()

        if snapshot is not None and self.is_fresh(snapshot):
            self._state = FreshnessState.fresh
            return snapshot
        return await self._join()

    async def refresh(self) -> Snapshot | None:
        return await self._join()

    async def invalidate(self) -> Snapshot | None:
        logger.debug(f"exercise_cache_invalidated user={self.user_id} fetching={self.is_fetching}")
        await self.store.clear()
        if self._inflight is None:
            self._state = FreshnessState.cold
        return await self._join()

    async def close(self) -> None:
        self._request_seq += 1
        task = self._inflight
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._inflight = None

    async def _join(self) -> Snapshot | None:
        if self._inflight is None:
            self._request_seq += 1
            self._state = FreshnessState.fetching
            self._inflight = asyncio.create_task(self._run_fetch(self._request_seq))
        return await asyncio.shield(self._inflight)

    async def _run_fetch(self, request_id: int) -> Snapshot | None:
        try:
            try:
                snapshot = await self.source.get_snapshot(self.user_id)
            except CandidateSourceError as exc:
                self._record_failure(str(exc), exc.status_code)
                return self.store.current()
            except Exception as exc:  # noqa: BLE001
                logger.exception(f"Unexpected error fetching exercise candidates for user={self.user_id}: {exc}")
                self._record_failure(f"Unexpected error: {exc}", None)
                return self.store.current()

            if request_id != self._request_seq:
                logger.info(f"exercise_cache_fetch_superseded user={self.user_id} request={request_id}")
                return self.store.current()

            await self.store.store(snapshot)
            self._last_error = None
            self._state = FreshnessState.fresh
            logger.debug(f"exercise_cache_refreshed user={self.user_id} count={snapshot.count}")
            return self.store.current()
        finally:
            self._inflight = None

    def _record_failure(self, message: str, status_code: int | None) -> None:
        self._last_error = FetchErrorInfo(message=message, status_code=status_code, occurred_at=self._clock())
        held = self.store.current()
        self._state = FreshnessState.stale if held is not None else FreshnessState.cold
        logger.warning(
            f"exercise_cache_fetch_failed user={self.user_id} status={status_code} "
            f"serving={'stale' if held is not None else 'none'} error={message}"
        )


__all__ = ["CandidateSource", "FreshnessController"]
