"""Canonical forms of result URLs, titles and domains used for duplicate checks."""

from __future__ import annotations

import re
from urllib.parse import SplitResult, urlsplit

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_url(url: str) -> str:
    """Return ``host + path`` lower-cased, without ``www.``, query or fragment.

    Falls back to the lower-cased input when it has no parsable host.
    """
    parts = _split(url)
    if parts is None:
        return url.lower()

    normalized = _strip_www(parts.hostname or "") + parts.path
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized.lower()


def normalize_title(title: str) -> str:
    text = _NON_WORD_RE.sub(" ", title.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def domain_of(url: str) -> str:
    parts = _split(url)
    if parts is None:
        return ""
    return _strip_www(parts.hostname or "")


def significant_words(normalized_title: str, *, min_length: int = 4) -> list[str]:
    return [word for word in normalized_title.split(" ") if len(word) >= min_length]


def _split(url: str) -> SplitResult | None:
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return parts


def _strip_www(hostname: str) -> str:
    hostname = hostname.lower()
    if hostname.startswith("www."):
        return hostname[4:]
    return hostname
