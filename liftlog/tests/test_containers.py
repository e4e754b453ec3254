import pytest
from dependency_injector import providers

from liftlog.cache import MemorySnapshotBackend
from liftlog.containers import create_container, open_suggestion_context, shutdown_container
from liftlog.services import SuggestionService
from liftlog.tests.conftest import FakeSource


def test_container_builds_service():
    container = create_container()
    service = container.suggestion_service()
    assert isinstance(service, SuggestionService)
    assert service.client is container.http_client()


@pytest.mark.asyncio
async def test_suggestion_context_fetches_and_reuses_cache(bench_snapshot):
    container = create_container()
    source = FakeSource(bench_snapshot)
    container.suggestion_service.override(providers.Object(source))
    container.snapshot_backend.override(providers.Object(MemorySnapshotBackend()))

    async with open_suggestion_context(container, 42) as session:
        assert session.is_ready() is True
        assert [item.canonical_name for item in session.search("bench")] == ["Bench Press", "Incline Bench Press"]

    # the persisted snapshot is past its window and the source has nothing left
    async with open_suggestion_context(container, 42) as session:
        assert session.is_ready() is True
        assert session.last_error() is not None
        assert session.search("bp")[0].source_name == "Bench Press"

    assert source.calls == ["42", "42"]
    await shutdown_container(container)
