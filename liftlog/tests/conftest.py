import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from liftlog.cache import MemorySnapshotBackend, SnapshotCacheStore
from liftlog.enums import ExerciseSource
from liftlog.exceptions import CandidateSourceError
from liftlog.schemas import CandidateExercise, Snapshot

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_exercise(
    name: str,
    variations: list[str] | None = None,
    *,
    source: ExerciseSource | str = ExerciseSource.common,
    usage_count: int = 0,
    **extra: Any,
) -> CandidateExercise:
    return CandidateExercise(
        canonical_name=name,
        variations=tuple(variations or [name]),
        source=source,
        usage_count=usage_count,
        **extra,
    )


def make_snapshot(*exercises: CandidateExercise, fetched_at: datetime = T0) -> Snapshot:
    return Snapshot(exercises=tuple(exercises), fetched_at=fetched_at)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeSource:
    """Candidate source returning queued results; each call can be held on a gate."""

    def __init__(self, *results: Snapshot | Exception) -> None:
        self.results = list(results)
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def get_snapshot(self, user_id: str) -> Snapshot:
        self.calls.append(user_id)
        if self.gate is not None:
            await self.gate.wait()
        if not self.results:
            raise CandidateSourceError("no result queued", status_code=503)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class CountingBackend(MemorySnapshotBackend):
    def __init__(self) -> None:
        super().__init__()
        self.writes: list[str] = []
        self.deletes: list[str] = []

    async def write(self, field: str, value: str) -> bool:
        self.writes.append(field)
        return await super().write(field, value)

    async def delete(self, field: str) -> None:
        self.deletes.append(field)
        await super().delete(field)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> CountingBackend:
    return CountingBackend()


@pytest.fixture
def store(backend: CountingBackend) -> SnapshotCacheStore:
    return SnapshotCacheStore("42", backend)


@pytest.fixture
def bench_snapshot() -> Snapshot:
    return make_snapshot(
        make_exercise("Bench Press", ["Bench Press", "BP"], source=ExerciseSource.user, usage_count=5),
        make_exercise("Incline Bench Press", ["Incline Bench Press"]),
    )
