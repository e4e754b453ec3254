from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from dependency_injector import containers, providers
from loguru import logger

from config.app_settings import settings
from liftlog.cache import SnapshotCacheStore, build_snapshot_backend
from liftlog.services.internal.suggestion_service import SuggestionService
from liftlog.suggestions import FreshnessController, SuggestionSession


def build_http_client(**_: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.API_TIMEOUT,
        limits=httpx.Limits(
            max_connections=settings.API_MAX_CONNECTIONS,
            max_keepalive_connections=settings.API_MAX_KEEPALIVE_CONNECTIONS,
        ),
    )


class App(containers.DeclarativeContainer):
    http_client = providers.Singleton(build_http_client)
    snapshot_backend = providers.Singleton(build_snapshot_backend)

    suggestion_service = providers.Factory(SuggestionService, client=http_client, settings=settings)

    # per user context: call with user_id= / store= / controller=
    cache_store = providers.Factory(SnapshotCacheStore, backend=snapshot_backend)
    freshness_controller = providers.Factory(FreshnessController, source=suggestion_service)
    suggestion_session = providers.Factory(SuggestionSession)


def create_container() -> App:
    return App()


async def shutdown_container(container: App) -> None:
    await container.snapshot_backend().close()
    try:
        await container.http_client().aclose()
    except Exception as exc:  # noqa: BLE001
        logger.warning(f"HTTP client close failed: {exc}")


@asynccontextmanager
async def open_suggestion_context(container: App, user_id: str | int) -> AsyncIterator[SuggestionSession]:
    """Build the cache store, controller and session for one signed-in user."""
    store = container.cache_store(user_id=str(user_id))
    controller = container.freshness_controller(store=store)
    session = container.suggestion_session(controller=controller)
    await controller.ensure_fresh()
    try:
        yield session
    finally:
        await session.close()
        await controller.close()
        logger.debug(f"suggestion_context_closed user={user_id}")


__all__ = ["App", "build_http_client", "create_container", "open_suggestion_context", "shutdown_container"]
