from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from scuba_search.config import PrefetchPolicy
from scuba_search.presenter import ErrorView, RenderedView, ResultPresenter
from scuba_search.recent_searches import RecentSearchStore
from scuba_search.result_cache import ResultCache, SessionState, TabSearchSession
from scuba_search.search_client import (
    BackendUnavailable,
    SearchError,
    UnsupportedEngine,
)
from scuba_search.types import CATEGORIES, Category, CategoryResultSet, SearchQuery

logger = logging.getLogger(__name__)


class UnknownTabError(LookupError):
    def __init__(self, tab_id: str) -> None:
        super().__init__(f"Unknown tab: {tab_id}")
        self.tab_id = tab_id


class SearchClientLike(Protocol):
    async def search(
        self, query: str, category: Category | None = None
    ) -> CategoryResultSet: ...

    def search_page_url(self, query: str) -> str: ...

    async def auto_detect_engine(self) -> str: ...


class RenderSink(Protocol):
    def render(self, tab_id: str, view: RenderedView) -> None: ...

    def render_error(self, tab_id: str, view: ErrorView) -> None: ...

    def clear(self, tab_id: str) -> None: ...


class LoadingSink(Protocol):
    def loading_started(self, message: str) -> None: ...

    def loading_stopped(self) -> None: ...


class NavigationSink(Protocol):
    def navigate_requested(self, url: str) -> None: ...


class SearchOrchestrator:
    """Drives per-tab search sessions: fan-out, caching and race-free rendering.

    A response is applied only while it is still relevant: the tab must still
    exist and carry the query the request was issued for. It is rendered only
    if, at completion time, its category is the session's current category,
    the session is visible and the tab is the active one. Superseded responses
    are dropped when they arrive; in-flight requests are never cancelled.
    """

    def __init__(
        self,
        *,
        search_client: SearchClientLike,
        cache: ResultCache,
        presenter: ResultPresenter,
        render_sink: RenderSink,
        loading_sink: LoadingSink,
        navigation_sink: NavigationSink,
        prefetch: PrefetchPolicy = "lazy",
        recent_searches: RecentSearchStore | None = None,
    ) -> None:
        self._search_client = search_client
        self._cache = cache
        self._presenter = presenter
        self._render_sink = render_sink
        self._loading_sink = loading_sink
        self._navigation_sink = navigation_sink
        self._prefetch = prefetch
        self._recent_searches = recent_searches
        self._active_tab_id: str | None = None
        self._background: set[asyncio.Task[CategoryResultSet | None]] = set()

    @property
    def active_tab_id(self) -> str | None:
        return self._active_tab_id

    def session(self, tab_id: str) -> TabSearchSession:
        session = self._cache.session(tab_id)
        if session is None:
            raise UnknownTabError(tab_id)
        return session

    def on_tab_created(self, tab_id: str) -> TabSearchSession:
        session = self._cache.create_session(tab_id)
        if self._active_tab_id is None:
            self._active_tab_id = tab_id
        logger.debug("tab_session_created tab_id=%s", tab_id)
        return session

    def on_tab_closed(self, tab_id: str) -> None:
        self._cache.drop_tab(tab_id)
        if self._active_tab_id == tab_id:
            self._active_tab_id = None
        logger.debug("tab_session_dropped tab_id=%s", tab_id)

    def on_tab_activated(self, tab_id: str) -> None:
        session = self.session(tab_id)
        self._active_tab_id = tab_id
        if session.visible and session.query is not None:
            self._replay(session)

    def show(self, tab_id: str) -> None:
        session = self.session(tab_id)
        session.visible = True
        if session.query is not None:
            self._replay(session)

    def hide(self, tab_id: str) -> None:
        self.session(tab_id).visible = False

    async def perform_search(
        self, tab_id: str, query_text: str
    ) -> RenderedView | None:
        session = self.session(tab_id)
        text = " ".join(query_text.split())
        if not text:
            raise SearchError("Search query is empty.")

        url = direct_navigation_url(text)
        if url is not None:
            await self._record_recent_search(text)
            session.visible = False
            logger.info("search_direct_navigation tab_id=%s", tab_id)
            self._navigation_sink.navigate_requested(url)
            return None

        query = SearchQuery(text=text, tab_id=tab_id)
        self._cache.invalidate_all(tab_id)
        self._render_sink.clear(tab_id)
        session.in_flight.clear()
        session.query = query
        session.current_category = "general"
        session.state = SessionState.SEARCHING
        session.error = None
        session.visible = True
        logger.info("search_started tab_id=%s prefetch=%s", tab_id, self._prefetch)

        self._loading_sink.loading_started("Searching...")
        try:
            general = self._start_load(session, query, "general")
            if self._prefetch == "eager":
                for category in CATEGORIES:
                    if category != "general":
                        self._start_load(session, query, category)
            await self._record_recent_search(text)
            await asyncio.shield(general)
        finally:
            self._loading_sink.loading_stopped()

        if self._relevant_session(tab_id, query) is None:
            return None
        return self._cache.get_materialized(tab_id, "general")

    async def retry(self, tab_id: str) -> RenderedView | None:
        session = self.session(tab_id)
        if session.query is None:
            return None
        return await self.perform_search(tab_id, session.query.text)

    async def switch_category(
        self, tab_id: str, category: Category
    ) -> RenderedView | None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}")

        session = self.session(tab_id)
        if category == session.current_category:
            return self._cache.get_materialized(tab_id, category)

        session.current_category = category
        query = session.query
        if query is None:
            return None

        view = self._cached_view(session, category)
        if view is not None:
            session.state = SessionState.READY
            session.error = None
            if self._is_displayed(session, query, category):
                self._render_sink.render(tab_id, view)
            return view

        session.state = SessionState.CATEGORY_LOADING
        session.error = None
        task = session.in_flight.get(category)
        if task is None:
            task = self._start_load(session, query, category)
        else:
            logger.debug(
                "category_request_joined tab_id=%s category=%s", tab_id, category
            )

        self._loading_sink.loading_started(f"Loading {category} results...")
        try:
            await asyncio.shield(task)
        finally:
            self._loading_sink.loading_stopped()

        if self._relevant_session(tab_id, query) is None:
            return None
        return self._cache.get_materialized(tab_id, category)

    def activate_result(self, tab_id: str, url: str) -> None:
        session = self.session(tab_id)
        session.visible = False
        logger.info("result_activated tab_id=%s", tab_id)
        self._navigation_sink.navigate_requested(url)

    async def auto_detect_engine(self) -> str:
        return await self._search_client.auto_detect_engine()

    async def _record_recent_search(self, text: str) -> None:
        if self._recent_searches is None:
            return
        await asyncio.to_thread(self._recent_searches.add, text)

    def _start_load(
        self, session: TabSearchSession, query: SearchQuery, category: Category
    ) -> asyncio.Task[CategoryResultSet | None]:
        task = asyncio.create_task(self._load_category(session.tab_id, query, category))
        session.in_flight[category] = task
        self._background.add(task)

        def _done(finished: asyncio.Task[CategoryResultSet | None]) -> None:
            self._background.discard(finished)
            if session.in_flight.get(category) is finished:
                del session.in_flight[category]

        task.add_done_callback(_done)
        return task

    async def _load_category(
        self, tab_id: str, query: SearchQuery, category: Category
    ) -> CategoryResultSet | None:
        try:
            result_set = await self._search_client.search(
                query.text, None if category == "general" else category
            )
        except UnsupportedEngine:
            self._fall_back_to_navigation(tab_id, query, category)
            return None
        except BackendUnavailable as exc:
            self._apply_failure(tab_id, query, category, exc)
            return None

        session = self._relevant_session(tab_id, query)
        if session is None:
            logger.debug(
                "dropping_stale_response tab_id=%s category=%s", tab_id, category
            )
            return None

        self._cache.put(tab_id, category, result_set)
        view = self._cached_view(session, category)
        self._finish_loading(session, category)
        if session.current_category == category:
            session.error = None
        if view is not None and self._is_displayed(session, query, category):
            self._render_sink.render(tab_id, view)
        else:
            logger.debug(
                "cached_without_render tab_id=%s category=%s current=%s",
                tab_id,
                category,
                session.current_category,
            )
        return result_set

    def _apply_failure(
        self,
        tab_id: str,
        query: SearchQuery,
        category: Category,
        exc: BackendUnavailable,
    ) -> None:
        logger.warning(
            "category_search_failed tab_id=%s category=%s reason=%s status=%s",
            tab_id,
            category,
            exc.__class__.__name__,
            exc.status_code,
        )
        session = self._relevant_session(tab_id, query)
        if session is None:
            return
        self._finish_loading(session, category)
        if session.current_category == category:
            session.error = exc.user_message
        if not self._is_displayed(session, query, category):
            return
        self._render_sink.render_error(
            tab_id, self._presenter.error_view(category, query.text, exc.user_message)
        )

    def _fall_back_to_navigation(
        self, tab_id: str, query: SearchQuery, category: Category
    ) -> None:
        session = self._relevant_session(tab_id, query)
        if session is None:
            return
        self._finish_loading(session, category)
        if not self._is_displayed(session, query, category):
            return
        url = self._search_client.search_page_url(query.text)
        logger.info("search_navigation_fallback tab_id=%s", tab_id)
        session.visible = False
        self._navigation_sink.navigate_requested(url)

    def _cached_view(
        self, session: TabSearchSession, category: Category
    ) -> RenderedView | None:
        view = self._cache.get_materialized(session.tab_id, category)
        if view is not None:
            return view
        result_set = self._cache.get(session.tab_id, category)
        if result_set is None or session.query is None:
            return None
        view = self._presenter.materialize(category, result_set, session.query.text)
        self._cache.put_materialized(session.tab_id, category, view)
        return view

    def _replay(self, session: TabSearchSession) -> None:
        if session.tab_id != self._active_tab_id:
            return
        view = self._cached_view(session, session.current_category)
        if view is not None:
            self._render_sink.render(session.tab_id, view)
        elif session.error is not None and session.query is not None:
            self._render_sink.render_error(
                session.tab_id,
                self._presenter.error_view(
                    session.current_category, session.query.text, session.error
                ),
            )

    def _finish_loading(self, session: TabSearchSession, category: Category) -> None:
        if session.current_category == category and session.state in (
            SessionState.SEARCHING,
            SessionState.CATEGORY_LOADING,
        ):
            session.state = SessionState.READY

    def _relevant_session(
        self, tab_id: str, query: SearchQuery
    ) -> TabSearchSession | None:
        session = self._cache.session(tab_id)
        if session is None or session.query is not query:
            return None
        return session

    def _is_displayed(
        self, session: TabSearchSession, query: SearchQuery, category: Category
    ) -> bool:
        return (
            session.query is query
            and session.current_category == category
            and session.visible
            and session.tab_id == self._active_tab_id
        )


def direct_navigation_url(text: str) -> str | None:
    """URL to open instead of searching, for input that is already an address."""
    if text.startswith(("http://", "https://")):
        return text
    if " " not in text and "." in text:
        return f"https://{text}"
    return None
