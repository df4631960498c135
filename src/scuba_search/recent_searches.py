from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class RecentSearchStore:
    """Most-recent-first list of submitted queries persisted as a JSON array."""

    def __init__(self, path: Path, *, limit: int = 10) -> None:
        self._path = path
        self._limit = max(1, limit)

    def recent(self) -> list[str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning(
                "recent_searches_read_failed path=%s reason=%s",
                self._path,
                exc.__class__.__name__,
            )
            return []

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("recent_searches_corrupt path=%s", self._path)
            return []
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, str)][: self._limit]

    def add(self, query: str) -> list[str]:
        normalized = " ".join(query.split()).strip()
        if not normalized:
            return self.recent()

        recent = [item for item in self.recent() if item != normalized]
        recent.insert(0, normalized)
        recent = recent[: self._limit]
        self._write(recent)
        return recent

    def clear(self) -> None:
        self._write([])

    def _write(self, recent: list[str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(recent), encoding="utf-8")
        except OSError as exc:
            logger.warning(
                "recent_searches_write_failed path=%s reason=%s",
                self._path,
                exc.__class__.__name__,
            )
