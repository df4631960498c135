"""Render-ready card descriptors built from cached category results."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from scuba_search.dedupe import CategoryLimits, Deduplicator, rank_results
from scuba_search.normalize import domain_of
from scuba_search.types import Category, CategoryResultSet, Infobox, UniformResult

Layout = Literal["general", "images", "videos"]

MAX_SUGGESTIONS = 6
MAX_INFOBOX_LINKS = 3
RESULT_DESCRIPTION_CHARS = 160
VIDEO_DESCRIPTION_CHARS = 100

_TRAILING_PARTIAL_WORD_RE = re.compile(r"\s+\S*$")


@dataclass(frozen=True)
class InfoboxCard:
    title: str
    content: str
    image_url: str | None
    links: tuple[tuple[str, str], ...]
    kind: str = "infobox"


@dataclass(frozen=True)
class ResultCard:
    title: str
    url: str
    domain: str
    description: str
    engine: str
    date: str | None
    thumbnail: str | None
    primary: bool = False
    kind: str = "result"


@dataclass(frozen=True)
class ImageCard:
    title: str
    url: str
    image_url: str
    kind: str = "image"


@dataclass(frozen=True)
class VideoCard:
    title: str
    url: str
    domain: str
    thumbnail: str | None
    duration: str | None
    date: str | None
    description: str
    kind: str = "video"


@dataclass(frozen=True)
class SuggestionsCard:
    suggestions: tuple[str, ...]
    kind: str = "suggestions"


Card = InfoboxCard | ResultCard | ImageCard | VideoCard | SuggestionsCard


@dataclass(frozen=True)
class RenderedView:
    category: Category
    query: str
    layout: Layout
    cards: tuple[Card, ...]
    total_count: int
    engines: tuple[str, ...]
    highlight_terms: tuple[str, ...]


@dataclass(frozen=True)
class ErrorView:
    category: Category
    query: str
    message: str
    retryable: bool = True


class ResultPresenter:
    def __init__(
        self,
        *,
        deduplicator: Deduplicator | None = None,
        limits: CategoryLimits | None = None,
    ) -> None:
        self._deduplicator = deduplicator or Deduplicator()
        self._limits = limits or CategoryLimits()

    def materialize(
        self, category: Category, result_set: CategoryResultSet, query_text: str
    ) -> RenderedView:
        ranked = rank_results(
            category,
            result_set.results,
            deduplicator=self._deduplicator,
            limits=self._limits,
        )

        if category == "images":
            layout: Layout = "images"
            cards: list[Card] = [_image_card(result) for result in ranked]
        elif category == "videos":
            layout = "videos"
            cards = [_video_card(result) for result in ranked]
        else:
            layout = "general"
            cards = [_infobox_card(infobox) for infobox in result_set.infoboxes]
            primary = _primary_result(ranked) if category == "general" else None
            if primary is not None:
                cards.append(_result_card(primary, primary=True))
            cards.extend(
                _result_card(result) for result in ranked if result is not primary
            )
            if result_set.suggestions:
                cards.append(
                    SuggestionsCard(
                        suggestions=result_set.suggestions[:MAX_SUGGESTIONS]
                    )
                )

        return RenderedView(
            category=category,
            query=query_text,
            layout=layout,
            cards=tuple(cards),
            total_count=result_set.total_count,
            engines=tuple(sorted(result_set.responding_engines)),
            highlight_terms=highlight_terms(query_text),
        )

    def error_view(
        self, category: Category, query_text: str, message: str
    ) -> ErrorView:
        return ErrorView(category=category, query=query_text, message=message)


def is_wikipedia_result(result: UniformResult) -> bool:
    domain = domain_of(result.url)
    if domain == "wikipedia.org" or domain.endswith(".wikipedia.org"):
        return True
    return "wikipedia" in result.engine.lower()


def _primary_result(ranked: list[UniformResult]) -> UniformResult | None:
    for result in ranked:
        if is_wikipedia_result(result):
            return result
    return None


def _infobox_card(infobox: Infobox) -> InfoboxCard:
    return InfoboxCard(
        title=infobox.title,
        content=infobox.content,
        image_url=infobox.image_url,
        links=tuple(
            (link.title, link.url) for link in infobox.urls[:MAX_INFOBOX_LINKS]
        ),
    )


def _result_card(result: UniformResult, *, primary: bool = False) -> ResultCard:
    return ResultCard(
        title=result.title,
        url=result.url,
        domain=domain_of(result.url) or result.url,
        description=truncate_text(result.description, RESULT_DESCRIPTION_CHARS),
        engine=result.engine,
        date=format_date(result.published_date),
        thumbnail=result.thumbnail,
        primary=primary,
    )


def _image_card(result: UniformResult) -> ImageCard:
    return ImageCard(
        title=result.title or "Image",
        url=result.url,
        image_url=result.image_url or result.thumbnail or result.url,
    )


def _video_card(result: UniformResult) -> VideoCard:
    return VideoCard(
        title=result.title or "Video",
        url=result.url,
        domain=domain_of(result.url) or result.url,
        thumbnail=result.thumbnail,
        duration=result.duration,
        date=format_date(result.published_date),
        description=truncate_text(result.description, VIDEO_DESCRIPTION_CHARS),
    )


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return _TRAILING_PARTIAL_WORD_RE.sub("", text[:max_length]) + "..."


def format_date(value: str | None) -> str | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return value
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def highlight_terms(query_text: str) -> tuple[str, ...]:
    seen: set[str] = set()
    terms: list[str] = []
    for word in query_text.lower().split():
        if len(word) <= 2 or word in seen:
            continue
        seen.add(word)
        terms.append(word)
    return tuple(terms)
