from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal, cast

from scuba_search.parsing import (
    as_dict,
    as_list,
    as_score,
    first_non_empty_str,
    str_items,
)

Category = Literal["general", "images", "videos", "news", "map", "music", "it"]

CATEGORIES: tuple[Category, ...] = (
    "general",
    "images",
    "videos",
    "news",
    "map",
    "music",
    "it",
)


def parse_category(value: str) -> Category:
    normalized = value.strip().lower()
    if normalized not in CATEGORIES:
        raise ValueError(
            f"Unknown category '{value}'. Expected one of: {', '.join(CATEGORIES)}"
        )
    return cast(Category, normalized)


@dataclass(frozen=True)
class SearchQuery:
    text: str
    tab_id: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class UniformResult:
    title: str = "No Title"
    url: str = ""
    description: str = ""
    engine: str = "unknown"
    category: str = "general"
    thumbnail: str | None = None
    image_url: str | None = None
    published_date: str | None = None
    score: float = 0.0
    duration: str | None = None


@dataclass(frozen=True)
class InfoboxLink:
    title: str
    url: str


@dataclass(frozen=True)
class Infobox:
    title: str
    content: str = ""
    image_url: str | None = None
    urls: tuple[InfoboxLink, ...] = ()


@dataclass(frozen=True)
class CategoryResultSet:
    query: str
    total_count: int
    results: tuple[UniformResult, ...] = ()
    suggestions: tuple[str, ...] = ()
    infoboxes: tuple[Infobox, ...] = ()
    responding_engines: frozenset[str] = frozenset()
    unresponsive_engines: tuple[str, ...] = ()


def parse_result(payload: dict[str, Any]) -> UniformResult:
    image_url = first_non_empty_str(payload, "img_src")
    return UniformResult(
        title=first_non_empty_str(payload, "title") or "No Title",
        url=first_non_empty_str(payload, "url") or "",
        description=first_non_empty_str(payload, "content", "description") or "",
        engine=first_non_empty_str(payload, "engine") or "unknown",
        category=first_non_empty_str(payload, "category") or "general",
        thumbnail=image_url or first_non_empty_str(payload, "thumbnail"),
        image_url=image_url,
        published_date=first_non_empty_str(payload, "publishedDate"),
        score=as_score(payload.get("score")),
        duration=first_non_empty_str(payload, "length"),
    )


def parse_infobox(payload: dict[str, Any]) -> Infobox | None:
    title = first_non_empty_str(payload, "infobox")
    if title is None:
        return None

    links: list[InfoboxLink] = []
    for item in as_list(payload.get("urls")):
        link = as_dict(item)
        url = first_non_empty_str(link, "url")
        if url is None:
            continue
        link_title = first_non_empty_str(link, "title") or url
        links.append(InfoboxLink(title=link_title, url=url))

    return Infobox(
        title=title,
        content=first_non_empty_str(payload, "content") or "",
        image_url=first_non_empty_str(payload, "img_src"),
        urls=tuple(links),
    )


def parse_result_set(payload: dict[str, Any], *, query: str) -> CategoryResultSet:
    results = tuple(
        parse_result(item)
        for item in as_list(payload.get("results"))
        if isinstance(item, dict)
    )
    infoboxes = tuple(
        infobox
        for infobox in (
            parse_infobox(item)
            for item in as_list(payload.get("infoboxes"))
            if isinstance(item, dict)
        )
        if infobox is not None
    )
    return CategoryResultSet(
        query=first_non_empty_str(payload, "query") or query,
        total_count=len(results),
        results=results,
        suggestions=str_items(payload.get("suggestions")),
        infoboxes=infoboxes,
        responding_engines=frozenset(_engine_names(payload.get("engines"))),
        unresponsive_engines=tuple(_engine_names(payload.get("unresponsive_engines"))),
    )


def _engine_names(value: Any) -> list[str]:
    # SearXNG reports unresponsive engines as [name, reason] pairs.
    names: list[str] = []
    for item in as_list(value):
        if isinstance(item, str) and item.strip():
            names.append(item.strip())
        elif isinstance(item, list) and item and isinstance(item[0], str):
            names.append(item[0].strip())
    return names
