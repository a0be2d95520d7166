"""Per-entity parse cache keyed by a cheap text fingerprint."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from core.markdowndb.models import ParsedDocument
from core.markdowndb.parser import parse

logger = logging.getLogger("markdowndb.cache")

DEFAULT_FINGERPRINT_LENGTH = 50
_STATS_LOG_EVERY_MISSES = 10


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    invalidations: int

    def to_dict(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "invalidations": self.invalidations}


@dataclass(frozen=True)
class _CacheEntry:
    fingerprint: str
    document: ParsedDocument


class ParseCache:
    """Memoizes `parse` per entity id.

    The fingerprint is the first `fingerprint_length` characters of the text,
    so an edit beyond that prefix is not detected and returns the previously
    parsed document. Lookup, insert and prune run under one lock.
    """

    def __init__(
        self,
        fingerprint_length: int = DEFAULT_FINGERPRINT_LENGTH,
        parser: Callable[[str], ParsedDocument] = parse,
    ) -> None:
        if fingerprint_length < 1:
            raise ValueError("fingerprint_length must be >= 1")
        self._fingerprint_length = fingerprint_length
        self._parser = parser
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    @property
    def fingerprint_length(self) -> int:
        return self._fingerprint_length

    def fingerprint(self, text: str) -> str:
        return text[: self._fingerprint_length]

    def get_or_parse(self, entity_id: str, text: str) -> ParsedDocument:
        fingerprint = self.fingerprint(text)
        with self._lock:
            cached = self._entries.get(entity_id)
            if cached is not None and cached.fingerprint == fingerprint:
                self._hits += 1
                return cached.document

            if cached is not None:
                self._invalidations += 1
            self._misses += 1
            document = self._parser(text)
            self._entries[entity_id] = _CacheEntry(fingerprint=fingerprint, document=document)
            if self._misses % _STATS_LOG_EVERY_MISSES == 0:
                self._log_stats("misses")
            return document

    def prune(self, live_ids: Iterable[str]) -> int:
        """Drop entries whose id is not in live_ids; return how many were dropped."""

        keep = set(live_ids)
        with self._lock:
            stale = [entity_id for entity_id in self._entries if entity_id not in keep]
            for entity_id in stale:
                del self._entries[entity_id]
            self._invalidations += len(stale)
            self._log_stats("prune", pruned=len(stale))
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits, misses=self._misses, invalidations=self._invalidations
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, entity_id: object) -> bool:
        with self._lock:
            return entity_id in self._entries

    def _log_stats(self, reason: str, **extra: int) -> None:
        # Caller holds the lock.
        logger.info(
            "parse cache %s: hits=%d misses=%d invalidations=%d size=%d%s",
            reason,
            self._hits,
            self._misses,
            self._invalidations,
            len(self._entries),
            "".join(f" {key}={value}" for key, value in extra.items()),
        )
