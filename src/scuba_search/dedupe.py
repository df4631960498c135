"""Near-duplicate filtering and per-category ranking of search results.

Results are tested left to right against the results already kept:

  1. identical normalized URL
  2. per-domain cap reached
  3. same domain and similar normalized URL
  4. similar normalized title
  5. large overlap of significant title words

The thresholds are empirical product constants and are configurable.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from scuba_search.config import Settings
from scuba_search.normalize import (
    domain_of,
    normalize_title,
    normalize_url,
    significant_words,
)
from scuba_search.similarity import similarity
from scuba_search.types import Category, UniformResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupeThresholds:
    max_per_domain: int = 2
    url_similarity: float = 0.7
    title_similarity: float = 0.75
    word_overlap: float = 0.6
    significant_word_min_length: int = 4

    @classmethod
    def from_settings(cls, settings: Settings) -> DedupeThresholds:
        return cls(
            max_per_domain=max(1, settings.dedupe_max_per_domain),
            url_similarity=settings.dedupe_url_similarity,
            title_similarity=settings.dedupe_title_similarity,
            word_overlap=settings.dedupe_word_overlap,
        )


@dataclass(frozen=True)
class CategoryLimits:
    general: int = 15
    images: int = 30
    videos: int = 20
    min_score: float = 0.05

    @classmethod
    def from_settings(cls, settings: Settings) -> CategoryLimits:
        return cls(
            general=max(1, settings.general_max_results),
            images=max(1, settings.images_max_results),
            videos=max(1, settings.videos_max_results),
            min_score=settings.general_min_score,
        )


@dataclass(frozen=True)
class _Fingerprint:
    url: str
    title: str
    domain: str
    words: tuple[str, ...]


class Deduplicator:
    def __init__(self, thresholds: DedupeThresholds | None = None) -> None:
        self._thresholds = thresholds or DedupeThresholds()

    @property
    def thresholds(self) -> DedupeThresholds:
        return self._thresholds

    def dedupe(self, results: Iterable[UniformResult]) -> list[UniformResult]:
        """Drop near-duplicates, preserving the order of the survivors.

        Callers pass results already sorted by descending score so the
        higher-scored copy of a duplicate is the one kept.
        """
        kept: list[UniformResult] = []
        kept_prints: list[_Fingerprint] = []
        domain_counts: Counter[str] = Counter()

        for result in results:
            candidate = self._fingerprint(result)
            if self._is_duplicate(candidate, kept_prints, domain_counts):
                continue
            kept.append(result)
            kept_prints.append(candidate)
            domain_counts[candidate.domain] += 1

        return kept

    def _fingerprint(self, result: UniformResult) -> _Fingerprint:
        title = normalize_title(result.title)
        return _Fingerprint(
            url=normalize_url(result.url),
            title=title,
            domain=domain_of(result.url),
            words=tuple(
                significant_words(
                    title, min_length=self._thresholds.significant_word_min_length
                )
            ),
        )

    def _is_duplicate(
        self,
        candidate: _Fingerprint,
        kept: Sequence[_Fingerprint],
        domain_counts: Counter[str],
    ) -> bool:
        thresholds = self._thresholds
        domain_full = domain_counts[candidate.domain] >= thresholds.max_per_domain

        for previous in kept:
            if candidate.url == previous.url:
                return True

            same_domain = candidate.domain == previous.domain
            if same_domain and domain_full:
                return True

            if (
                same_domain
                and similarity(candidate.url, previous.url) > thresholds.url_similarity
            ):
                return True

            title_score = similarity(candidate.title, previous.title)
            if title_score > thresholds.title_similarity:
                return True

            if _words_overlap(candidate.words, previous.words, thresholds.word_overlap):
                return True

        return False


def _words_overlap(
    words: tuple[str, ...], other: tuple[str, ...], ratio: float
) -> bool:
    smaller = min(len(words), len(other))
    if smaller == 0:
        return False
    common = sum(1 for word in words if word in other)
    return common >= smaller * ratio


def sort_by_score(results: Iterable[UniformResult]) -> list[UniformResult]:
    return sorted(results, key=lambda result: result.score, reverse=True)


def rank_results(
    category: Category,
    results: Iterable[UniformResult],
    *,
    deduplicator: Deduplicator,
    limits: CategoryLimits | None = None,
) -> list[UniformResult]:
    """Filter, sort, dedupe and cap raw results for display in ``category``."""
    limits = limits or CategoryLimits()
    candidates = list(results)

    if category == "images":
        filtered = [item for item in candidates if item.image_url or item.thumbnail]
        limit = limits.images
    elif category == "videos":
        filtered = candidates
        limit = limits.videos
    else:
        filtered = [
            item
            for item in candidates
            if item.score > limits.min_score and item.url and item.title.strip()
        ]
        limit = limits.general

    ranked = deduplicator.dedupe(sort_by_score(filtered))[:limit]
    logger.debug(
        "ranked_results category=%s input_count=%d filtered_count=%d kept_count=%d",
        category,
        len(candidates),
        len(filtered),
        len(ranked),
    )
    return ranked
