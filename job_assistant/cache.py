"""Analysis cache: in-memory map, per-id durable store and the two verdict collections."""
from __future__ import annotations

import json
from typing import Iterable

from job_assistant.errors import PersistenceError
from job_assistant.log import get_logger
from job_assistant.models import CacheEntry, Verdict, parse_timestamp
from job_assistant.storage import JsonStore

log = get_logger(__name__)

MATCHING_KEY = "matchingJobs"
REJECTED_KEY = "rejectedJobs"
ENTRY_PREFIX = "job_"


def is_valid_id(listing_id: str | None) -> bool:
    return bool(listing_id) and "undefined" not in str(listing_id)


def dedupe_entries(entries: Iterable[CacheEntry]) -> list[CacheEntry]:
    """Collapse duplicate ids, keeping the newer timestamp.

    On equal timestamps the entry seen first stays. Output keeps the position
    of each id's first occurrence.
    """
    kept: dict[str, CacheEntry] = {}
    for entry in entries:
        current = kept.get(entry.id)
        if current is None:
            kept[entry.id] = entry
        elif parse_timestamp(entry.timestamp) > parse_timestamp(current.timestamp):
            kept[entry.id] = entry
    return list(kept.values())


def serialize_collection(entries: Iterable[CacheEntry]) -> str:
    return json.dumps([e.to_dict() for e in entries], ensure_ascii=False)


def deserialize_collection(text: str | None) -> list[CacheEntry]:
    if not text:
        return []
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Unreadable collection: {exc}") from exc
    if not isinstance(raw, list):
        raise PersistenceError("Unreadable collection: not a list")
    entries = [CacheEntry.from_dict(item) for item in raw if isinstance(item, dict)]
    return dedupe_entries(e for e in entries if is_valid_id(e.id))


class AnalysisCache:
    def __init__(self, collections: JsonStore, entries: JsonStore) -> None:
        self._collections = collections
        self._entries = entries
        self._memory: dict[str, CacheEntry] = {}
        self._matching: list[CacheEntry] | None = None
        self._rejected: list[CacheEntry] | None = None

    # ── Collections ──────────────────────────────────────────────────────

    def _load_collection(self, key: str) -> list[CacheEntry]:
        try:
            text = self._collections.get(key)
            entries = deserialize_collection(text)
        except PersistenceError as exc:
            log.error("Could not load %s: %s", key, exc)
            return []
        log.debug("Loaded %d entries from %s", len(entries), key)
        return entries

    def load(self) -> None:
        """Load both collections from durable storage (runs the dedup pass)."""
        self._matching = self._load_collection(MATCHING_KEY)
        self._rejected = self._load_collection(REJECTED_KEY)

    def _ensure_loaded(self) -> None:
        if self._matching is None or self._rejected is None:
            self.load()

    def _save_collection(self, key: str, entries: list[CacheEntry]) -> None:
        try:
            self._collections.set(key, serialize_collection(entries))
        except PersistenceError as exc:
            log.error("Could not save %s: %s", key, exc)

    def matching(self) -> list[CacheEntry]:
        self._ensure_loaded()
        return list(self._matching or [])

    def rejected(self) -> list[CacheEntry]:
        self._ensure_loaded()
        return list(self._rejected or [])

    @staticmethod
    def _upsert(collection: list[CacheEntry], entry: CacheEntry) -> None:
        for i, existing in enumerate(collection):
            if existing.id == entry.id:
                collection[i] = entry
                return
        collection.append(entry)

    @staticmethod
    def _drop(collection: list[CacheEntry], listing_id: str) -> bool:
        before = len(collection)
        collection[:] = [e for e in collection if e.id != listing_id]
        return len(collection) != before

    # ── Lookup / store ───────────────────────────────────────────────────

    def get(self, listing_id: str) -> CacheEntry | None:
        if not is_valid_id(listing_id):
            log.warning("Invalid cache key: %r", listing_id)
            return None
        entry = self._memory.get(listing_id)
        if entry is not None:
            return entry
        try:
            raw = self._entries.get(ENTRY_PREFIX + listing_id)
        except PersistenceError as exc:
            log.error("Per-id lookup for %s failed: %s", listing_id, exc)
            return None
        if not raw:
            return None
        try:
            entry = CacheEntry.from_dict(json.loads(raw))
        except (json.JSONDecodeError, TypeError, AttributeError) as exc:
            log.warning("Discarding unreadable entry for %s: %s", listing_id, exc)
            return None
        self._memory[listing_id] = entry
        return entry

    def put(self, listing_id: str, entry: CacheEntry) -> None:
        if not is_valid_id(listing_id):
            log.warning("Not caching - invalid key: %r", listing_id)
            return
        entry.verdict = Verdict.coerce(entry.verdict)
        self._memory[listing_id] = entry

        try:
            self._entries.set(ENTRY_PREFIX + listing_id, json.dumps(entry.to_dict(), ensure_ascii=False))
        except PersistenceError as exc:
            log.error("Could not persist entry %s: %s", listing_id, exc)

        if not entry.verdict.definite:
            log.debug("Entry %s has no definite verdict, collections untouched", listing_id)
            return

        self._ensure_loaded()
        assert self._matching is not None and self._rejected is not None
        if entry.verdict is Verdict.FIT:
            target, target_key = self._matching, MATCHING_KEY
            other, other_key = self._rejected, REJECTED_KEY
        else:
            target, target_key = self._rejected, REJECTED_KEY
            other, other_key = self._matching, MATCHING_KEY

        self._upsert(target, entry)
        self._save_collection(target_key, target)
        if self._drop(other, listing_id):
            log.info("Moved %s from %s to %s", listing_id, other_key, target_key)
            self._save_collection(other_key, other)

    def remove(self, listing_id: str) -> bool:
        """User-initiated deletion from every layer."""
        removed = self._memory.pop(listing_id, None) is not None
        try:
            removed = self._entries.delete(ENTRY_PREFIX + listing_id) or removed
        except PersistenceError as exc:
            log.error("Could not delete entry %s: %s", listing_id, exc)

        self._ensure_loaded()
        assert self._matching is not None and self._rejected is not None
        if self._drop(self._matching, listing_id):
            self._save_collection(MATCHING_KEY, self._matching)
            removed = True
        if self._drop(self._rejected, listing_id):
            self._save_collection(REJECTED_KEY, self._rejected)
            removed = True
        if removed:
            log.info("Removed %s from cache", listing_id)
        return removed
