"""Tests for the analysis cache and its durable collections."""
import json

import pytest

from job_assistant.cache import (
    ENTRY_PREFIX,
    MATCHING_KEY,
    REJECTED_KEY,
    AnalysisCache,
    dedupe_entries,
    deserialize_collection,
    serialize_collection,
)
from job_assistant.errors import PersistenceError
from job_assistant.models import CacheEntry, Verdict
from job_assistant.storage import JsonStore


def entry(listing_id="1", verdict=Verdict.FIT, ts="2024-05-01T10:00:00+00:00", title="Engineer"):
    return CacheEntry(
        id=listing_id,
        title=title,
        company="Acme",
        location="Remote",
        verdict=verdict,
        rationale_markup="<strong>YES</strong><ul><li>Python</li></ul>",
        timestamp=ts,
    )


class TestDedupe:
    def test_newer_timestamp_wins(self):
        old = entry(ts="2024-05-01T10:00:00Z", title="old")
        new = entry(ts="2024-05-02T10:00:00Z", title="new")
        assert [e.title for e in dedupe_entries([old, new])] == ["new"]
        assert [e.title for e in dedupe_entries([new, old])] == ["new"]

    @pytest.mark.parametrize("order", [("a", "b"), ("b", "a")])
    def test_equal_timestamps_keep_first_seen(self, order):
        entries = [entry(title=t) for t in order]
        assert [e.title for e in dedupe_entries(entries)] == [order[0]]

    def test_keeps_first_occurrence_order(self):
        entries = [entry("1"), entry("2"), entry("1", ts="2025-01-01T00:00:00Z"), entry("3")]
        assert [e.id for e in dedupe_entries(entries)] == ["1", "2", "3"]

    def test_unparseable_timestamp_loses(self):
        bad = entry(ts="yesterday", title="bad")
        good = entry(ts="2024-01-01T00:00:00Z", title="good")
        assert [e.title for e in dedupe_entries([bad, good])] == ["good"]


class TestCollectionSerialization:
    def test_round_trip_preserves_fields(self):
        original = [entry("1"), entry("2", Verdict.NO_FIT)]
        restored = deserialize_collection(serialize_collection(original))
        assert restored == original

    def test_duplicates_collapse_on_load(self):
        text = serialize_collection([entry("1", title="a"), entry("1", title="b", ts="2030-01-01T00:00:00Z")])
        assert [e.title for e in deserialize_collection(text)] == ["b"]

    def test_invalid_ids_dropped(self):
        text = json.dumps([entry("undefined").to_dict(), entry("").to_dict(), entry("5").to_dict()])
        assert [e.id for e in deserialize_collection(text)] == ["5"]

    def test_legacy_boolean_verdict(self):
        raw = entry().to_dict()
        raw["verdict"] = False
        assert deserialize_collection(json.dumps([raw]))[0].verdict is Verdict.NO_FIT

    @pytest.mark.parametrize("text", ["{not json", '{"id": "1"}'])
    def test_unreadable_collection_raises(self, text):
        with pytest.raises(PersistenceError):
            deserialize_collection(text)

    def test_empty_is_empty(self):
        assert deserialize_collection(None) == []


class TestAnalysisCache:
    def test_put_then_get(self, cache):
        cache.put("1", entry("1"))
        assert cache.get("1").title == "Engineer"

    def test_get_falls_back_to_durable_store(self, stores):
        AnalysisCache(*stores).put("1", entry("1"))
        fresh = AnalysisCache(*stores)
        got = fresh.get("1")
        assert got is not None
        assert got.verdict is Verdict.FIT

    def test_definite_verdict_goes_to_collection(self, cache, stores):
        cache.put("1", entry("1", Verdict.FIT))
        cache.put("2", entry("2", Verdict.NO_FIT))
        assert [e.id for e in cache.matching()] == ["1"]
        assert [e.id for e in cache.rejected()] == ["2"]
        collections, _ = stores
        assert json.loads(collections.get(MATCHING_KEY))[0]["id"] == "1"
        assert json.loads(collections.get(REJECTED_KEY))[0]["verdict"] == "NoFit"

    def test_unknown_verdict_stays_out_of_collections(self, cache):
        cache.put("1", entry("1", Verdict.UNKNOWN))
        assert cache.get("1").verdict is Verdict.UNKNOWN
        assert cache.matching() == [] and cache.rejected() == []

    def test_verdict_change_moves_entry(self, cache, stores):
        cache.put("1", entry("1", Verdict.FIT))
        cache.put("1", entry("1", Verdict.NO_FIT, ts="2024-06-01T00:00:00Z"))
        assert cache.matching() == []
        assert [e.id for e in cache.rejected()] == ["1"]

        reloaded = AnalysisCache(*stores)
        assert reloaded.matching() == []
        assert [e.id for e in reloaded.rejected()] == ["1"]

    def test_put_same_id_upserts(self, cache):
        cache.put("1", entry("1", title="first"))
        cache.put("1", entry("1", title="second"))
        assert [e.title for e in cache.matching()] == ["second"]

    def test_invalid_keys_are_ignored(self, cache):
        cache.put("undefined", entry("undefined"))
        assert cache.get("undefined") is None
        assert cache.get("") is None
        assert cache.matching() == []

    def test_persistence_failure_is_swallowed(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        broken = JsonStore(blocker / "storage.json")
        cache = AnalysisCache(broken, JsonStore(blocker / "entries.json"))

        cache.put("1", entry("1"))

        assert cache.get("1").title == "Engineer"

    def test_corrupt_collection_loads_empty(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text(json.dumps({MATCHING_KEY: "[oops"}))
        cache = AnalysisCache(JsonStore(path), JsonStore(tmp_path / "entries.json"))
        assert cache.matching() == []

    def test_remove_clears_every_layer(self, cache, stores):
        cache.put("1", entry("1"))
        assert cache.remove("1") is True
        assert cache.get("1") is None
        assert cache.matching() == []
        _, entries = stores
        assert entries.get(ENTRY_PREFIX + "1") is None
        assert cache.remove("1") is False
