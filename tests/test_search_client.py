from __future__ import annotations

from dataclasses import replace

import httpx
import pytest

from scuba_search.config import Settings
from scuba_search.engines import EngineRegistry
from scuba_search.search_client import (
    BackendUnavailable,
    CategorySearchClient,
    MalformedResponse,
    SearchError,
    UnsupportedEngine,
)


def _settings(**overrides: object) -> Settings:
    return replace(
        Settings(searxng_base_url="http://searx.test", search_timeout_seconds=1),
        **overrides,
    )


def _client(
    transport: httpx.MockTransport,
    *,
    settings: Settings | None = None,
    current: str = "searxng",
) -> CategorySearchClient:
    settings = settings or _settings()
    engines = EngineRegistry.from_settings(replace(settings, search_engine=current))
    return CategorySearchClient(
        engines=engines,
        http_client=httpx.AsyncClient(transport=transport),
        settings=settings,
    )


def _payload() -> dict[str, object]:
    return {
        "query": "penguins",
        "results": [
            {
                "title": "Penguin",
                "url": "https://en.wikipedia.org/wiki/Penguin",
                "content": "Penguins are flightless birds.",
                "engine": "wikipedia",
                "score": 0.9,
                "publishedDate": "2024-03-05T00:00:00",
            },
            {"url": "https://a.example"},
            "not-a-result",
        ],
        "suggestions": ["emperor penguin", "", 3],
        "infoboxes": [
            {
                "infobox": "Penguin",
                "content": "Family of aquatic birds",
                "img_src": "https://img.example/penguin.jpg",
                "urls": [
                    {"title": "Wikipedia", "url": "https://en.wikipedia.org"},
                    {"title": "Missing url"},
                ],
            },
            {"content": "no title"},
        ],
        "engines": ["wikipedia", "bing"],
        "unresponsive_engines": [["google", "timeout"]],
    }


@pytest.mark.anyio
async def test_search_sends_structured_request_and_parses_results() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_payload())

    client = _client(httpx.MockTransport(handler))
    result_set = await client.search("  penguins  ")

    assert len(seen) == 1
    request = seen[0]
    assert request.url.host == "searx.test"
    assert request.url.path == "/search"
    assert request.url.params["q"] == "penguins"
    assert request.url.params["format"] == "json"
    assert not any(key.startswith("category_") for key in request.url.params)
    assert request.headers["Accept"] == "application/json"

    assert result_set.query == "penguins"
    assert result_set.total_count == 2
    first, second = result_set.results
    assert first.title == "Penguin"
    assert first.engine == "wikipedia"
    assert first.score == 0.9
    assert first.published_date == "2024-03-05T00:00:00"
    assert second.title == "No Title"
    assert second.engine == "unknown"
    assert second.score == 0.0
    assert second.description == ""
    assert result_set.suggestions == ("emperor penguin",)
    assert len(result_set.infoboxes) == 1
    infobox = result_set.infoboxes[0]
    assert infobox.title == "Penguin"
    assert [link.url for link in infobox.urls] == ["https://en.wikipedia.org"]
    assert result_set.responding_engines == frozenset({"wikipedia", "bing"})
    assert result_set.unresponsive_engines == ("google",)


@pytest.mark.anyio
async def test_search_adds_category_language_and_safesearch_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": []})

    client = _client(
        httpx.MockTransport(handler),
        settings=_settings(search_language="en-US", search_safesearch=1),
    )
    result_set = await client.search("penguin", "videos")

    params = seen[0].url.params
    assert params["category_videos"] == "1"
    assert params["language"] == "en-US"
    assert params["safesearch"] == "1"
    assert result_set.total_count == 0
    assert result_set.results == ()


@pytest.mark.anyio
async def test_search_call_arguments_override_settings() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": []})

    client = _client(
        httpx.MockTransport(handler),
        settings=_settings(search_language="en-US", search_safesearch=1),
    )
    await client.search("penguin", "images", language="fr", safesearch=0)

    params = seen[0].url.params
    assert params["category_images"] == "1"
    assert params["language"] == "fr"
    assert params["safesearch"] == "0"


@pytest.mark.anyio
async def test_search_rejects_empty_query_without_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(httpx.MockTransport(handler))

    with pytest.raises(SearchError) as exc_info:
        await client.search("   ")

    assert exc_info.value.user_message == "Search query is empty."


@pytest.mark.anyio
async def test_search_maps_non_success_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    client = _client(httpx.MockTransport(handler))

    with pytest.raises(BackendUnavailable) as exc_info:
        await client.search("penguin")

    assert exc_info.value.status_code == 503
    assert "503" in exc_info.value.user_message


@pytest.mark.anyio
async def test_search_maps_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(httpx.MockTransport(handler))

    with pytest.raises(BackendUnavailable) as exc_info:
        await client.search("penguin")

    assert exc_info.value.user_message == "Search service timed out. Try again."
    assert exc_info.value.status_code is None


@pytest.mark.anyio
async def test_search_maps_connection_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(httpx.MockTransport(handler))

    with pytest.raises(BackendUnavailable) as exc_info:
        await client.search("penguin")

    assert exc_info.value.user_message == "Search service is unavailable. Try again."


@pytest.mark.anyio
async def test_search_maps_invalid_json_to_malformed_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    client = _client(httpx.MockTransport(handler))

    with pytest.raises(MalformedResponse) as exc_info:
        await client.search("penguin")

    assert isinstance(exc_info.value, BackendUnavailable)


@pytest.mark.anyio
async def test_search_maps_non_object_json_to_malformed_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "an", "object"])

    client = _client(httpx.MockTransport(handler))

    with pytest.raises(MalformedResponse):
        await client.search("penguin")


@pytest.mark.anyio
async def test_search_raises_unsupported_engine_for_html_only_engine() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(httpx.MockTransport(handler), current="google")

    with pytest.raises(UnsupportedEngine) as exc_info:
        await client.search("penguin")

    assert exc_info.value.engine_key == "google"
    assert client.search_page_url("emperor  penguin") == (
        "https://www.google.com/search?q=emperor%20penguin"
    )


@pytest.mark.anyio
async def test_unstructured_search_returns_empty_set_for_html_only_engine() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(httpx.MockTransport(handler), current="duckduckgo")

    result_set = await client.search("penguin", structured=False)

    assert result_set.total_count == 0
    assert result_set.query == "penguin"


@pytest.mark.anyio
async def test_auto_detect_prefers_reachable_structured_engine() -> None:
    probed: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        probed.append(str(request.url))
        return httpx.Response(200, text="ok")

    client = _client(httpx.MockTransport(handler), current="google")

    engine = await client.auto_detect_engine()

    assert engine == "searxng"
    assert client.engines.current_key == "searxng"
    assert probed == ["http://searx.test/"]


@pytest.mark.anyio
async def test_auto_detect_falls_back_when_structured_engine_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(httpx.MockTransport(handler))

    engine = await client.auto_detect_engine()

    assert engine == "google"
    assert client.engines.current_key == "google"


@pytest.mark.anyio
async def test_probe_reports_error_status_as_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    client = _client(httpx.MockTransport(handler))

    assert await client.probe() is False
