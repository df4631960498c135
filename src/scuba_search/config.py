from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

PrefetchPolicy = Literal["lazy", "eager"]
SafeSearch = Literal[0, 1, 2]

DEFAULT_ENGINE = "searxng"
DEFAULT_FALLBACK_ENGINE = "google"
DEFAULT_SEARXNG_BASE_URL = "http://localhost:8080"
DEFAULT_RECENT_SEARCHES_PATH = "~/.scuba/recent-searches.json"
SEARCH_ENGINE_KEYS = ("searxng", "google", "duckduckgo")


@dataclass(frozen=True)
class Settings:
    search_engine: str = DEFAULT_ENGINE
    search_fallback_engine: str = DEFAULT_FALLBACK_ENGINE
    searxng_base_url: str = DEFAULT_SEARXNG_BASE_URL
    search_timeout_seconds: float = 8.0
    search_language: str | None = None
    search_safesearch: SafeSearch | None = None
    search_prefetch: PrefetchPolicy = "lazy"
    # from_env turns this off when SCUBA_SEARCH_ENGINE pins an engine.
    search_auto_detect: bool = True
    search_debug_logging: bool = False
    dedupe_max_per_domain: int = 2
    dedupe_url_similarity: float = 0.7
    dedupe_title_similarity: float = 0.75
    dedupe_word_overlap: float = 0.6
    general_max_results: int = 15
    images_max_results: int = 30
    videos_max_results: int = 20
    general_min_score: float = 0.05
    recent_searches_path: Path = Path(DEFAULT_RECENT_SEARCHES_PATH).expanduser()
    recent_searches_limit: int = 10
    bridge_host: str = "127.0.0.1"
    bridge_port: int = 8765

    @classmethod
    def from_env(cls) -> Settings:
        engine_pinned = _optional_str(os.getenv("SCUBA_SEARCH_ENGINE")) is not None
        return cls(
            search_engine=_engine_key("SCUBA_SEARCH_ENGINE", DEFAULT_ENGINE),
            search_fallback_engine=_engine_key(
                "SCUBA_SEARCH_FALLBACK_ENGINE", DEFAULT_FALLBACK_ENGINE
            ),
            searxng_base_url=os.getenv(
                "SCUBA_SEARXNG_BASE_URL", DEFAULT_SEARXNG_BASE_URL
            ).rstrip("/"),
            search_timeout_seconds=float(
                os.getenv("SCUBA_SEARCH_TIMEOUT_SECONDS", "8")
            ),
            search_language=_optional_str(os.getenv("SCUBA_SEARCH_LANGUAGE")),
            search_safesearch=_parse_safesearch(os.getenv("SCUBA_SEARCH_SAFESEARCH")),
            search_prefetch=_parse_prefetch(os.getenv("SCUBA_SEARCH_PREFETCH")),
            search_auto_detect=_parse_auto_detect(
                os.getenv("SCUBA_SEARCH_AUTO_DETECT"), engine_pinned=engine_pinned
            ),
            search_debug_logging=_parse_bool(os.getenv("SCUBA_SEARCH_DEBUG_LOGGING")),
            dedupe_max_per_domain=int(os.getenv("SCUBA_DEDUPE_MAX_PER_DOMAIN", "2")),
            dedupe_url_similarity=float(
                os.getenv("SCUBA_DEDUPE_URL_SIMILARITY", "0.7")
            ),
            dedupe_title_similarity=float(
                os.getenv("SCUBA_DEDUPE_TITLE_SIMILARITY", "0.75")
            ),
            dedupe_word_overlap=float(os.getenv("SCUBA_DEDUPE_WORD_OVERLAP", "0.6")),
            general_max_results=int(os.getenv("SCUBA_GENERAL_MAX_RESULTS", "15")),
            images_max_results=int(os.getenv("SCUBA_IMAGES_MAX_RESULTS", "30")),
            videos_max_results=int(os.getenv("SCUBA_VIDEOS_MAX_RESULTS", "20")),
            general_min_score=float(os.getenv("SCUBA_GENERAL_MIN_SCORE", "0.05")),
            recent_searches_path=Path(
                os.getenv("SCUBA_RECENT_SEARCHES_PATH", DEFAULT_RECENT_SEARCHES_PATH)
            ).expanduser(),
            bridge_host=os.getenv("SCUBA_BRIDGE_HOST", "127.0.0.1"),
            bridge_port=int(os.getenv("SCUBA_BRIDGE_PORT", "8765")),
        )


def _optional_str(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _engine_key(env_name: str, default: str) -> str:
    normalized = (os.getenv(env_name) or "").strip().lower()
    if not normalized:
        return default
    if normalized not in SEARCH_ENGINE_KEYS:
        raise RuntimeError(
            f"Invalid {env_name}. Expected one of: {', '.join(SEARCH_ENGINE_KEYS)}."
        )
    return normalized


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_safesearch(value: str | None) -> SafeSearch | None:
    if value is None or not value.strip():
        return None

    normalized = value.strip()
    if normalized == "0":
        return 0
    if normalized == "1":
        return 1
    if normalized == "2":
        return 2

    raise RuntimeError("Invalid SCUBA_SEARCH_SAFESEARCH. Expected 0, 1, or 2.")


def _parse_prefetch(value: str | None) -> PrefetchPolicy:
    if value is None:
        return "lazy"

    normalized = value.strip().lower()
    if normalized == "lazy":
        return "lazy"
    if normalized == "eager":
        return "eager"

    raise RuntimeError("Invalid SCUBA_SEARCH_PREFETCH. Expected 'lazy' or 'eager'.")


def _parse_auto_detect(value: str | None, *, engine_pinned: bool) -> bool:
    if value is None:
        return not engine_pinned
    return _parse_bool(value)
