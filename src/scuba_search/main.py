from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI

from scuba_search.bridge import EventQueue, ShellBridge, ViewStore, build_router
from scuba_search.config import Settings
from scuba_search.dedupe import CategoryLimits, DedupeThresholds, Deduplicator
from scuba_search.engines import EngineRegistry
from scuba_search.orchestrator import SearchOrchestrator
from scuba_search.presenter import ResultPresenter
from scuba_search.recent_searches import RecentSearchStore
from scuba_search.result_cache import ResultCache
from scuba_search.search_client import CategorySearchClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings, *, http_client: httpx.AsyncClient | None = None
) -> FastAPI:
    http_client = http_client or httpx.AsyncClient()
    engines = EngineRegistry.from_settings(settings)
    search_client = CategorySearchClient(
        engines=engines,
        http_client=http_client,
        settings=settings,
    )
    views = ViewStore()
    events = EventQueue()
    recent_searches = RecentSearchStore(
        settings.recent_searches_path, limit=settings.recent_searches_limit
    )
    orchestrator = SearchOrchestrator(
        search_client=search_client,
        cache=ResultCache(),
        presenter=ResultPresenter(
            deduplicator=Deduplicator(DedupeThresholds.from_settings(settings)),
            limits=CategoryLimits.from_settings(settings),
        ),
        render_sink=views,
        loading_sink=events,
        navigation_sink=events,
        prefetch=settings.search_prefetch,
        recent_searches=recent_searches,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if settings.search_auto_detect:
            await orchestrator.auto_detect_engine()
        yield
        await http_client.aclose()

    app = FastAPI(title="scuba-search", version="1.0", lifespan=lifespan)

    bridge = ShellBridge(
        orchestrator=orchestrator,
        engines=engines,
        views=views,
        events=events,
        recent_searches=recent_searches,
    )
    app.include_router(build_router(bridge))

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok", "engine": engines.current_key}

    return app


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    settings = Settings.from_env()
    app = create_app(settings)
    logger.info(
        "bridge_starting host=%s port=%d engine=%s",
        settings.bridge_host,
        settings.bridge_port,
        settings.search_engine,
    )

    uvicorn.run(
        app,
        host=settings.bridge_host,
        port=settings.bridge_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
