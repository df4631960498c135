from __future__ import annotations

import pytest

from scuba_search.config import SEARCH_ENGINE_KEYS, Settings
from scuba_search.engines import (
    DEFAULT_ENGINES,
    EngineRegistry,
    SearchEngineDescriptor,
    UnknownEngineError,
)


def test_default_registry_has_three_engines() -> None:
    registry = EngineRegistry()

    assert registry.keys() == ("searxng", "google", "duckduckgo")
    assert registry.current_key == "searxng"
    assert registry.first_structured() is not None
    assert registry.first_structured().key == "searxng"


def test_search_url_encodes_query() -> None:
    registry = EngineRegistry()

    assert registry.get("duckduckgo").search_url("emperor penguin & chick") == (
        "https://duckduckgo.com/?q=emperor%20penguin%20%26%20chick"
    )


def test_api_url_only_for_json_engines() -> None:
    registry = EngineRegistry()

    assert registry.get("searxng").api_url() == "http://localhost:8080/search"
    assert registry.get("google").api_url() is None


def test_api_params_omit_category_for_general() -> None:
    engine = DEFAULT_ENGINES[0]

    assert engine.api_params("penguin", category="general") == {
        "q": "penguin",
        "format": "json",
    }
    assert engine.api_params("penguin", category="news", safesearch=2) == {
        "q": "penguin",
        "format": "json",
        "category_news": "1",
        "safesearch": "2",
    }


def test_set_current_normalizes_key() -> None:
    registry = EngineRegistry()

    engine = registry.set_current("  Google ")

    assert engine.key == "google"
    assert registry.current_key == "google"


def test_set_current_unknown_engine_keeps_current() -> None:
    registry = EngineRegistry(current="duckduckgo")

    with pytest.raises(UnknownEngineError) as exc_info:
        registry.set_current("altavista")

    assert exc_info.value.engine_key == "altavista"
    assert exc_info.value.user_message == "Unknown search engine: altavista"
    assert registry.current_key == "duckduckgo"


def test_registry_rejects_unknown_initial_engine() -> None:
    with pytest.raises(UnknownEngineError):
        EngineRegistry(current="altavista")


def test_from_settings_overrides_searxng_base_url() -> None:
    registry = EngineRegistry.from_settings(
        Settings(searxng_base_url="https://searx.example", search_engine="google")
    )

    assert registry.current_key == "google"
    assert registry.get("searxng").api_url() == "https://searx.example/search"


def test_first_structured_none_without_json_engines() -> None:
    engine = SearchEngineDescriptor(
        key="html",
        name="HTML",
        base_url="https://html.example",
        search_path="/s",
        api_path=None,
        supports_json=False,
    )

    registry = EngineRegistry((engine,), current="html")

    assert registry.first_structured() is None
    assert registry.current.search_url("a b") == "https://html.example/s?q=a%20b"


def test_from_settings_rejects_unknown_fallback_engine() -> None:
    with pytest.raises(UnknownEngineError) as exc_info:
        EngineRegistry.from_settings(Settings(search_fallback_engine="bing"))

    assert exc_info.value.engine_key == "bing"


def test_configured_engine_keys_match_registry() -> None:
    assert EngineRegistry().keys() == SEARCH_ENGINE_KEYS
