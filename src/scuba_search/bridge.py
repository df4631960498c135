from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException

from scuba_search.engines import EngineRegistry, UnknownEngineError
from scuba_search.orchestrator import SearchOrchestrator, UnknownTabError
from scuba_search.presenter import ErrorView, RenderedView
from scuba_search.recent_searches import RecentSearchStore
from scuba_search.search_client import SearchError
from scuba_search.types import parse_category

MAX_QUEUED_EVENTS = 200


class ViewStore:
    """Render sink keeping the latest view (or error) per tab for the shell."""

    def __init__(self) -> None:
        self._views: dict[str, RenderedView | ErrorView] = {}

    def render(self, tab_id: str, view: RenderedView) -> None:
        self._views[tab_id] = view

    def render_error(self, tab_id: str, view: ErrorView) -> None:
        self._views[tab_id] = view

    def latest(self, tab_id: str) -> RenderedView | ErrorView | None:
        return self._views.get(tab_id)

    def clear(self, tab_id: str) -> None:
        self._views.pop(tab_id, None)


class EventQueue:
    """Loading and navigation sink; the shell drains it by polling."""

    def __init__(self, *, max_events: int = MAX_QUEUED_EVENTS) -> None:
        self._events: deque[dict[str, str]] = deque(maxlen=max(1, max_events))

    def loading_started(self, message: str) -> None:
        self._events.append({"type": "loading_started", "message": message})

    def loading_stopped(self) -> None:
        self._events.append({"type": "loading_stopped"})

    def navigate_requested(self, url: str) -> None:
        self._events.append({"type": "navigate_requested", "url": url})

    def drain(self) -> list[dict[str, str]]:
        events = list(self._events)
        self._events.clear()
        return events


class ShellBridge:
    def __init__(
        self,
        *,
        orchestrator: SearchOrchestrator,
        engines: EngineRegistry,
        views: ViewStore,
        events: EventQueue,
        recent_searches: RecentSearchStore,
    ) -> None:
        self._orchestrator = orchestrator
        self._engines = engines
        self._views = views
        self._events = events
        self._recent_searches = recent_searches

    def tab_created(self, tab_id: str) -> dict[str, str]:
        self._orchestrator.on_tab_created(tab_id)
        return {"status": "ok", "tab_id": tab_id}

    def tab_closed(self, tab_id: str) -> dict[str, str]:
        self._orchestrator.on_tab_closed(tab_id)
        self._views.clear(tab_id)
        return {"status": "ok", "tab_id": tab_id}

    def tab_activated(self, tab_id: str) -> dict[str, str]:
        with _tab_errors():
            self._orchestrator.on_tab_activated(tab_id)
        return {"status": "ok", "tab_id": tab_id}

    async def search(self, tab_id: str, payload: dict[str, object]) -> dict[str, Any]:
        query = payload.get("query")
        if not isinstance(query, str) or not query.strip():
            raise HTTPException(status_code=400, detail="Search query is empty.")
        with _tab_errors():
            await self._orchestrator.perform_search(tab_id, query)
        return self.view(tab_id)

    async def switch_category(
        self, tab_id: str, payload: dict[str, object]
    ) -> dict[str, Any]:
        raw_category = payload.get("category")
        if not isinstance(raw_category, str):
            raise HTTPException(status_code=400, detail="Category is required.")
        try:
            category = parse_category(raw_category)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        with _tab_errors():
            await self._orchestrator.switch_category(tab_id, category)
        return self.view(tab_id)

    async def retry(self, tab_id: str) -> dict[str, Any]:
        with _tab_errors():
            await self._orchestrator.retry(tab_id)
        return self.view(tab_id)

    def open_result(self, tab_id: str, payload: dict[str, object]) -> dict[str, str]:
        url = payload.get("url")
        if not isinstance(url, str) or not url.strip():
            raise HTTPException(status_code=400, detail="Result URL is required.")
        with _tab_errors():
            self._orchestrator.activate_result(tab_id, url.strip())
        return {"status": "ok", "url": url.strip()}

    def view(self, tab_id: str) -> dict[str, Any]:
        with _tab_errors():
            session = self._orchestrator.session(tab_id)
        latest = self._views.latest(tab_id)
        return {
            "tab_id": tab_id,
            "state": session.state.value,
            "category": session.current_category,
            "query": session.query.text if session.query else None,
            "visible": session.visible,
            "error": asdict(latest) if isinstance(latest, ErrorView) else None,
            "view": asdict(latest) if isinstance(latest, RenderedView) else None,
        }

    def drain_events(self) -> list[dict[str, str]]:
        return self._events.drain()

    def list_engines(self) -> dict[str, Any]:
        return {
            "current": self._engines.current_key,
            "engines": [asdict(engine) for engine in self._engines.all()],
        }

    def set_engine(self, payload: dict[str, object]) -> dict[str, Any]:
        engine = payload.get("engine")
        if not isinstance(engine, str):
            raise HTTPException(status_code=400, detail="Engine is required.")
        try:
            self._engines.set_current(engine)
        except UnknownEngineError as exc:
            raise HTTPException(status_code=400, detail=exc.user_message) from exc
        return self.list_engines()

    def recent_searches(self) -> dict[str, list[str]]:
        return {"recent": self._recent_searches.recent()}


@contextmanager
def _tab_errors() -> Iterator[None]:
    try:
        yield
    except UnknownTabError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SearchError as exc:
        raise HTTPException(status_code=400, detail=exc.user_message) from exc


def build_router(bridge: ShellBridge) -> APIRouter:
    router = APIRouter()

    @router.post("/tabs/{tab_id}")
    async def tab_created(tab_id: str) -> dict[str, str]:
        return bridge.tab_created(tab_id)

    @router.delete("/tabs/{tab_id}")
    async def tab_closed(tab_id: str) -> dict[str, str]:
        return bridge.tab_closed(tab_id)

    @router.post("/tabs/{tab_id}/activate")
    async def tab_activated(tab_id: str) -> dict[str, str]:
        return bridge.tab_activated(tab_id)

    @router.post("/tabs/{tab_id}/search")
    async def search(tab_id: str, payload: dict[str, object]) -> dict[str, Any]:
        return await bridge.search(tab_id, payload)

    @router.post("/tabs/{tab_id}/category")
    async def switch_category(
        tab_id: str, payload: dict[str, object]
    ) -> dict[str, Any]:
        return await bridge.switch_category(tab_id, payload)

    @router.post("/tabs/{tab_id}/retry")
    async def retry(tab_id: str) -> dict[str, Any]:
        return await bridge.retry(tab_id)

    @router.post("/tabs/{tab_id}/open")
    async def open_result(tab_id: str, payload: dict[str, object]) -> dict[str, str]:
        return bridge.open_result(tab_id, payload)

    @router.get("/tabs/{tab_id}/view")
    async def view(tab_id: str) -> dict[str, Any]:
        return bridge.view(tab_id)

    @router.get("/events")
    async def events() -> list[dict[str, str]]:
        return bridge.drain_events()

    @router.get("/engines")
    async def engines() -> dict[str, Any]:
        return bridge.list_engines()

    @router.put("/engines/current")
    async def set_engine(payload: dict[str, object]) -> dict[str, Any]:
        return bridge.set_engine(payload)

    @router.get("/recent-searches")
    async def recent_searches() -> dict[str, list[str]]:
        return bridge.recent_searches()

    return router
