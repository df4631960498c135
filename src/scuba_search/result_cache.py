from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from scuba_search.presenter import RenderedView
from scuba_search.types import Category, CategoryResultSet, SearchQuery

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    READY = "ready"
    CATEGORY_LOADING = "category_loading"


@dataclass
class TabSearchSession:
    tab_id: str
    query: SearchQuery | None = None
    current_category: Category = "general"
    state: SessionState = SessionState.IDLE
    visible: bool = False
    error: str | None = None
    results: dict[Category, CategoryResultSet] = field(default_factory=dict)
    materialized: dict[Category, RenderedView] = field(default_factory=dict)
    in_flight: dict[Category, asyncio.Task[CategoryResultSet | None]] = field(
        default_factory=dict
    )


class ResultCache:
    """Registry of tab sessions and their per-category result caches.

    Each session owns its own maps; nothing is shared between tabs.
    Materialized views are only dropped wholesale by ``invalidate_all``.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, TabSearchSession] = {}

    def create_session(self, tab_id: str) -> TabSearchSession:
        session = self._sessions.get(tab_id)
        if session is None:
            session = TabSearchSession(tab_id=tab_id)
            self._sessions[tab_id] = session
        return session

    def session(self, tab_id: str) -> TabSearchSession | None:
        return self._sessions.get(tab_id)

    def tab_ids(self) -> tuple[str, ...]:
        return tuple(self._sessions)

    def get(self, tab_id: str, category: Category) -> CategoryResultSet | None:
        session = self._sessions.get(tab_id)
        if session is None:
            return None
        return session.results.get(category)

    def put(
        self, tab_id: str, category: Category, result_set: CategoryResultSet
    ) -> None:
        session = self._sessions.get(tab_id)
        if session is None:
            logger.debug(
                "cache_put_unknown_tab tab_id=%s category=%s", tab_id, category
            )
            return
        session.results[category] = result_set

    def get_materialized(
        self, tab_id: str, category: Category
    ) -> RenderedView | None:
        session = self._sessions.get(tab_id)
        if session is None:
            return None
        return session.materialized.get(category)

    def put_materialized(
        self, tab_id: str, category: Category, view: RenderedView
    ) -> None:
        session = self._sessions.get(tab_id)
        if session is None:
            return
        session.materialized[category] = view

    def invalidate_all(self, tab_id: str) -> None:
        session = self._sessions.get(tab_id)
        if session is None:
            return
        session.results.clear()
        session.materialized.clear()

    def drop_tab(self, tab_id: str) -> TabSearchSession | None:
        return self._sessions.pop(tab_id, None)
