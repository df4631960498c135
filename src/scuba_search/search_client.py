from __future__ import annotations

import logging

import httpx

from scuba_search.config import SafeSearch, Settings
from scuba_search.engines import EngineRegistry
from scuba_search.types import Category, CategoryResultSet, parse_result_set

logger = logging.getLogger(__name__)

_PROBE_TIMEOUT_SECONDS = 5.0


class SearchError(Exception):
    def __init__(self, user_message: str) -> None:
        super().__init__(user_message)
        self.user_message = user_message


class BackendUnavailable(SearchError):
    def __init__(self, user_message: str, *, status_code: int | None = None) -> None:
        super().__init__(user_message)
        self.status_code = status_code


class MalformedResponse(BackendUnavailable):
    pass


class UnsupportedEngine(SearchError):
    def __init__(self, engine_key: str) -> None:
        super().__init__(f"Engine {engine_key} does not support structured results.")
        self.engine_key = engine_key


class CategorySearchClient:
    """Issues one backend query per category and parses it to the uniform schema.

    Uses the shared httpx.AsyncClient from the app. No caching happens here.
    """

    def __init__(
        self,
        *,
        engines: EngineRegistry,
        http_client: httpx.AsyncClient,
        settings: Settings,
    ) -> None:
        self._engines = engines
        self._http_client = http_client
        self._settings = settings

    @property
    def engines(self) -> EngineRegistry:
        return self._engines

    async def search(
        self,
        query: str,
        category: Category | None = None,
        *,
        structured: bool = True,
        language: str | None = None,
        safesearch: SafeSearch | None = None,
    ) -> CategoryResultSet:
        normalized_query = " ".join(query.split()).strip()
        if not normalized_query:
            raise SearchError("Search query is empty.")

        engine = self._engines.current
        api_url = engine.api_url()
        if structured and api_url is None:
            raise UnsupportedEngine(engine.key)
        if api_url is None:
            return CategoryResultSet(query=normalized_query, total_count=0)

        params = engine.api_params(
            normalized_query,
            category=category,
            language=language or self._settings.search_language,
            safesearch=safesearch
            if safesearch is not None
            else self._settings.search_safesearch,
        )
        _debug_log(
            self._settings,
            event="search_request",
            engine=engine.key,
            category=category or "general",
            query=normalized_query,
        )

        try:
            response = await self._http_client.get(
                api_url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self._settings.search_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise BackendUnavailable("Search service timed out. Try again.") from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailable(
                "Search service is unavailable. Try again."
            ) from exc

        if not response.is_success:
            raise BackendUnavailable(
                f"Search request failed with status {response.status_code}.",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponse(
                "Search service returned invalid JSON.",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise MalformedResponse(
                "Search service returned an unexpected response.",
                status_code=response.status_code,
            )

        result_set = parse_result_set(payload, query=normalized_query)
        _debug_log(
            self._settings,
            event="search_response",
            engine=engine.key,
            category=category or "general",
            result_count=result_set.total_count,
            unresponsive=",".join(result_set.unresponsive_engines),
        )
        return result_set

    def search_page_url(self, query: str) -> str:
        return self._engines.current.search_url(" ".join(query.split()))

    async def probe(self, engine_key: str | None = None) -> bool:
        engine = (
            self._engines.get(engine_key) if engine_key else self._engines.current
        )
        try:
            response = await self._http_client.get(
                f"{engine.base_url}/", timeout=_PROBE_TIMEOUT_SECONDS
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "search_engine_probe_failed engine=%s reason=%s",
                engine.key,
                exc.__class__.__name__,
            )
            return False
        return response.is_success

    async def auto_detect_engine(self) -> str:
        """Prefer the structured engine when reachable, else the fallback engine."""
        structured = self._engines.first_structured()
        if structured is not None and await self.probe(structured.key):
            self._engines.set_current(structured.key)
        else:
            self._engines.set_current(self._settings.search_fallback_engine)
        logger.info("search_engine_detected engine=%s", self._engines.current_key)
        return self._engines.current_key


def _debug_log(settings: Settings, event: str, **fields: object) -> None:
    if not settings.search_debug_logging:
        return
    logger.info(
        "search_debug event=%s %s",
        event,
        " ".join(
            "{}={}".format(key, str(value).replace("\n", " ").strip() or "-")
            for key, value in sorted(fields.items())
        ),
    )
