from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from urllib.parse import quote

from scuba_search.config import SafeSearch, Settings

logger = logging.getLogger(__name__)


class UnknownEngineError(ValueError):
    def __init__(self, engine_key: str, available: tuple[str, ...]) -> None:
        super().__init__(
            f"Unknown search engine '{engine_key}'. Available: {', '.join(available)}"
        )
        self.engine_key = engine_key
        self.user_message = f"Unknown search engine: {engine_key}"


@dataclass(frozen=True)
class SearchEngineDescriptor:
    key: str
    name: str
    base_url: str
    search_path: str
    api_path: str | None
    supports_json: bool
    icon: str = ""

    def search_url(self, query: str) -> str:
        """HTML results page URL, used when the engine has no JSON API."""
        return f"{self.base_url}{self.search_path}?q={quote(query, safe='')}"

    def api_url(self) -> str | None:
        if not self.supports_json or self.api_path is None:
            return None
        return f"{self.base_url}{self.api_path}"

    def api_params(
        self,
        query: str,
        *,
        category: str | None = None,
        language: str | None = None,
        safesearch: SafeSearch | None = None,
    ) -> dict[str, str]:
        params = {"q": query, "format": "json"}
        if category and category != "general":
            params[f"category_{category}"] = "1"
        if language:
            params["language"] = language
        if safesearch is not None:
            params["safesearch"] = str(safesearch)
        return params


DEFAULT_ENGINES: tuple[SearchEngineDescriptor, ...] = (
    SearchEngineDescriptor(
        key="searxng",
        name="SearXNG",
        base_url="http://localhost:8080",
        search_path="/search",
        api_path="/search",
        supports_json=True,
        icon="🔍",
    ),
    SearchEngineDescriptor(
        key="google",
        name="Google",
        base_url="https://www.google.com",
        search_path="/search",
        api_path=None,
        supports_json=False,
        icon="🌐",
    ),
    SearchEngineDescriptor(
        key="duckduckgo",
        name="DuckDuckGo",
        base_url="https://duckduckgo.com",
        search_path="/",
        api_path=None,
        supports_json=False,
        icon="🦆",
    ),
)


class EngineRegistry:
    """Fixed set of engines with exactly one current engine per process."""

    def __init__(
        self,
        engines: tuple[SearchEngineDescriptor, ...] = DEFAULT_ENGINES,
        *,
        current: str = "searxng",
    ) -> None:
        if not engines:
            raise ValueError("At least one search engine is required.")
        self._engines = {engine.key: engine for engine in engines}
        if current not in self._engines:
            raise UnknownEngineError(current, self.keys())
        self._current = current

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineRegistry:
        engines = tuple(
            replace(engine, base_url=settings.searxng_base_url)
            if engine.key == "searxng"
            else engine
            for engine in DEFAULT_ENGINES
        )
        registry = cls(engines, current=settings.search_engine)
        if settings.search_fallback_engine not in registry.keys():
            raise UnknownEngineError(settings.search_fallback_engine, registry.keys())
        return registry

    def keys(self) -> tuple[str, ...]:
        return tuple(self._engines)

    def all(self) -> tuple[SearchEngineDescriptor, ...]:
        return tuple(self._engines.values())

    def get(self, engine_key: str) -> SearchEngineDescriptor:
        engine = self._engines.get(engine_key)
        if engine is None:
            raise UnknownEngineError(engine_key, self.keys())
        return engine

    @property
    def current_key(self) -> str:
        return self._current

    @property
    def current(self) -> SearchEngineDescriptor:
        return self._engines[self._current]

    def set_current(self, engine_key: str) -> SearchEngineDescriptor:
        normalized = engine_key.strip().lower()
        if normalized not in self._engines:
            logger.warning("unknown_search_engine engine=%s", engine_key)
            raise UnknownEngineError(engine_key, self.keys())
        if normalized != self._current:
            logger.info(
                "search_engine_changed previous=%s current=%s",
                self._current,
                normalized,
            )
        self._current = normalized
        return self._engines[normalized]

    def first_structured(self) -> SearchEngineDescriptor | None:
        for engine in self._engines.values():
            if engine.supports_json:
                return engine
        return None
