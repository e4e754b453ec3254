import asyncio
from datetime import timedelta

import pytest

from liftlog.cache import encode_snapshot
from liftlog.enums import FreshnessState
from liftlog.exceptions import CandidateSourceError
from liftlog.suggestions import FreshnessController
from liftlog.tests.conftest import T0, FakeSource, make_exercise, make_snapshot


def _controller(store, source, clock) -> FreshnessController:
    return FreshnessController(store, source, window=timedelta(minutes=5), clock=clock)


@pytest.mark.asyncio
async def test_cold_start_uses_fresh_persisted_snapshot(store, backend, clock, bench_snapshot):
    await backend.write("42", encode_snapshot(bench_snapshot))
    clock.advance(minutes=1)
    source = FakeSource()
    controller = _controller(store, source, clock)

    assert controller.state == FreshnessState.cold
    assert await controller.ensure_fresh() == bench_snapshot
    assert controller.state == FreshnessState.fresh
    assert source.calls == []


@pytest.mark.asyncio
async def test_cold_start_refetches_expired_snapshot(store, backend, clock, bench_snapshot):
    await backend.write("42", encode_snapshot(bench_snapshot))
    clock.advance(minutes=10)
    fetched = make_snapshot(make_exercise("Squat"), fetched_at=clock.now)
    source = FakeSource(fetched)
    controller = _controller(store, source, clock)

    assert await controller.ensure_fresh() == fetched
    assert controller.state == FreshnessState.fresh
    assert source.calls == ["42"]
    assert backend.writes == ["42", "42"]


@pytest.mark.asyncio
async def test_fresh_window_skips_fetch_until_expired(store, clock):
    first = make_snapshot(make_exercise("Squat"), fetched_at=T0)
    source = FakeSource(first, make_snapshot(make_exercise("Row"), fetched_at=T0 + timedelta(minutes=6)))
    controller = _controller(store, source, clock)

    await controller.ensure_fresh()
    clock.advance(minutes=4)
    assert await controller.ensure_fresh() == first
    assert len(source.calls) == 1

    clock.advance(minutes=2)
    refreshed = await controller.ensure_fresh()
    assert refreshed.exercises[0].canonical_name == "Row"
    assert len(source.calls) == 2


@pytest.mark.asyncio
async def test_failure_without_cache_reports_error(store, clock):
    source = FakeSource(CandidateSourceError("boom", status_code=500))
    controller = _controller(store, source, clock)

    assert await controller.ensure_fresh() is None
    assert controller.state == FreshnessState.cold
    assert controller.is_ready is False
    assert controller.last_error is not None
    assert controller.last_error.status_code == 500
    assert controller.last_error.occurred_at == T0


@pytest.mark.asyncio
async def test_failure_serves_stale_snapshot(store, clock, bench_snapshot):
    recovered = make_snapshot(make_exercise("Squat"), fetched_at=T0 + timedelta(minutes=20))
    source = FakeSource(bench_snapshot, CandidateSourceError("unavailable", status_code=503), recovered)
    controller = _controller(store, source, clock)
    await controller.ensure_fresh()

    clock.advance(minutes=10)
    assert await controller.ensure_fresh() == bench_snapshot
    assert controller.state == FreshnessState.stale
    assert controller.is_ready is True
    assert controller.last_error.status_code == 503

    clock.advance(minutes=10)
    assert await controller.ensure_fresh() == recovered
    assert controller.state == FreshnessState.fresh
    assert controller.last_error is None


@pytest.mark.asyncio
async def test_unexpected_source_error_is_contained(store, clock):
    controller = _controller(store, FakeSource(RuntimeError("bad payload")), clock)

    assert await controller.refresh() is None
    assert controller.last_error.status_code is None
    assert "bad payload" in controller.last_error.message


@pytest.mark.asyncio
async def test_concurrent_triggers_share_one_fetch(store, backend, clock):
    fetched = make_snapshot(make_exercise("Squat"), fetched_at=T0)
    source = FakeSource(fetched)
    source.gate = asyncio.Event()
    controller = _controller(store, source, clock)

    first = asyncio.create_task(controller.ensure_fresh())
    await asyncio.sleep(0)
    assert controller.is_fetching
    assert controller.state == FreshnessState.fetching
    second = asyncio.create_task(controller.ensure_fresh())
    third = asyncio.create_task(controller.invalidate())
    await asyncio.sleep(0)
    source.gate.set()

    results = await asyncio.gather(first, second, third)
    assert results == [fetched, fetched, fetched]
    assert source.calls == ["42"]
    assert backend.writes == ["42"]
    assert controller.is_fetching is False


@pytest.mark.asyncio
async def test_invalidate_when_idle_refetches(store, backend, clock, bench_snapshot):
    updated = make_snapshot(make_exercise("Squat"), fetched_at=T0 + timedelta(seconds=30))
    source = FakeSource(bench_snapshot, updated)
    controller = _controller(store, source, clock)
    await controller.ensure_fresh()

    assert await controller.invalidate() == updated
    assert store.current() == updated
    assert backend.deletes == ["42"]
    assert len(source.calls) == 2


@pytest.mark.asyncio
async def test_later_fetch_replaces_snapshot_even_with_earlier_timestamp(store, backend, clock):
    first = make_snapshot(make_exercise("Squat"), fetched_at=T0)
    # server clock behind the first stamp
    second = make_snapshot(
        make_exercise("Squat", usage_count=3, source="user"),
        make_exercise("Row"),
        fetched_at=T0 - timedelta(seconds=5),
    )
    controller = _controller(store, FakeSource(first, second), clock)

    await controller.refresh()
    assert await controller.refresh() == second
    assert store.current() == second
    assert controller.state == FreshnessState.fresh
    assert backend.writes == ["42", "42"]


@pytest.mark.asyncio
async def test_close_discards_in_flight_fetch(store, backend, clock):
    source = FakeSource(make_snapshot(make_exercise("Squat"), fetched_at=T0))
    source.gate = asyncio.Event()
    controller = _controller(store, source, clock)

    pending = asyncio.create_task(controller.refresh())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    await controller.close()
    source.gate.set()

    with pytest.raises(asyncio.CancelledError):
        await pending
    assert store.current() is None
    assert backend.writes == []
    assert controller.is_fetching is False
