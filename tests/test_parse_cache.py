from __future__ import annotations

import logging

import pytest

from core.cache.parse_cache import CacheStats, ParseCache
from core.markdowndb.models import ParsedDocument
from core.markdowndb.parser import parse


def test_second_read_is_a_hit() -> None:
    cache = ParseCache()
    text = "<JOB>\nTITLE: Engineer\n"

    first = cache.get_or_parse("job-1", text)
    second = cache.get_or_parse("job-1", text)

    assert second is first
    assert cache.stats == CacheStats(hits=1, misses=1, invalidations=0)
    assert "job-1" in cache
    assert len(cache) == 1


def test_changed_prefix_is_a_miss_and_invalidation() -> None:
    cache = ParseCache()
    cache.get_or_parse("job-1", "<JOB>\nTITLE: Engineer\n")

    document = cache.get_or_parse("job-1", "<JOB>\nTITLE: Manager\n")

    assert document.get_field("TITLE") == "Manager"
    assert cache.stats == CacheStats(hits=0, misses=2, invalidations=1)


def test_change_past_fingerprint_prefix_is_not_detected() -> None:
    cache = ParseCache(fingerprint_length=5)
    cache.get_or_parse("job-1", "<JOB>\nTITLE: Engineer\n")

    document = cache.get_or_parse("job-1", "<JOB>\nTITLE: Manager\n")

    assert document.get_field("TITLE") == "Engineer"
    assert cache.stats.hits == 1


def test_entries_are_independent_per_id() -> None:
    cache = ParseCache()

    cache.get_or_parse("a", "TITLE: A\n")
    cache.get_or_parse("b", "TITLE: B\n")

    assert cache.get_or_parse("a", "TITLE: A\n").get_field("TITLE") == "A"
    assert cache.stats == CacheStats(hits=1, misses=2, invalidations=0)


def test_prune_drops_dead_ids_and_counts_invalidations() -> None:
    cache = ParseCache()
    for entity_id in ("a", "b", "c"):
        cache.get_or_parse(entity_id, f"TITLE: {entity_id}\n")

    pruned = cache.prune({"a"})

    assert pruned == 2
    assert len(cache) == 1
    assert "a" in cache
    assert "b" not in cache
    assert cache.stats.invalidations == 2
    assert cache.prune(["a"]) == 0


def test_cache_uses_injected_parser() -> None:
    calls: list[str] = []

    def counting_parse(text: str) -> ParsedDocument:
        calls.append(text)
        return parse(text)

    cache = ParseCache(parser=counting_parse)
    cache.get_or_parse("a", "TITLE: A\n")
    cache.get_or_parse("a", "TITLE: A\n")

    assert calls == ["TITLE: A\n"]


def test_cache_logs_stats_every_ten_misses(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="markdowndb.cache")
    cache = ParseCache()

    for index in range(10):
        cache.get_or_parse(f"id-{index}", f"TITLE: {index}\n")

    messages = [record.message for record in caplog.records if record.name == "markdowndb.cache"]
    assert len(messages) == 1
    assert "misses=10" in messages[0]


def test_prune_logs_stats(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="markdowndb.cache")
    cache = ParseCache()
    cache.get_or_parse("a", "TITLE: A\n")

    cache.prune(set())

    assert any("pruned=1" in record.message for record in caplog.records)


def test_fingerprint_length_must_be_positive() -> None:
    with pytest.raises(ValueError, match="fingerprint_length"):
        ParseCache(fingerprint_length=0)


def test_stats_to_dict() -> None:
    assert CacheStats(hits=1, misses=2, invalidations=3).to_dict() == {
        "hits": 1,
        "misses": 2,
        "invalidations": 3,
    }
