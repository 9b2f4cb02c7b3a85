"""Processing sessions: walk the listings in page order, evaluate what is new, page on.

Session states: Idle → Running → Completed | Failed. Per listing:
Pending → Extracting → (CacheHit → Rendered) | (Dispatched → Cached → Rendered)
| Skipped | Failed.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from job_assistant.cache import AnalysisCache
from job_assistant.channel import ChannelResponse, RequestCorrelationChannel
from job_assistant.config import Settings, load_settings
from job_assistant.errors import (
    AnalysisFailed,
    ExtractionIncomplete,
    ServiceConfigurationError,
    TransportFailure,
    TransportTimeout,
)
from job_assistant.log import get_logger
from job_assistant.models import AnalysisResult, CacheEntry, Listing, Verdict, utc_now
from job_assistant.retry import FailureStreak, RetryPolicy

log = get_logger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ListingState(str, Enum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    CACHE_HIT = "cache-hit"
    DISPATCHED = "dispatched"
    CACHED = "cached"
    RENDERED = "rendered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ProcessingSession:
    budget: int
    processed_ids: set[str]
    consumed_count: int = 0
    state: SessionState = SessionState.RUNNING
    pages_visited: int = 1
    cooldowns: int = 0
    dispatches: int = 0
    listing_states: dict[str, ListingState] = field(default_factory=dict)
    error: str | None = None

    def __post_init__(self) -> None:
        if self.budget <= 0:
            raise ValueError("budget must be positive")

    @property
    def remaining(self) -> int:
        return self.budget - self.consumed_count

    def consume(self, listing_id: str) -> None:
        if self.consumed_count >= self.budget:
            raise RuntimeError(f"Budget of {self.budget} already used")
        self.consumed_count += 1
        self.processed_ids.add(listing_id)

    def mark(self, listing_id: str, state: ListingState) -> None:
        self.listing_states[listing_id] = state

    def count(self, state: ListingState) -> int:
        return sum(1 for s in self.listing_states.values() if s is state)

    def summary(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "budget": self.budget,
            "consumed": self.consumed_count,
            "pages_visited": self.pages_visited,
            "dispatches": self.dispatches,
            "cooldowns": self.cooldowns,
            "listings": {s.value: self.count(s) for s in ListingState if self.count(s)},
            "error": self.error,
        }


@dataclass(frozen=True)
class Pacing:
    item_delay: float = 1.5
    failure_threshold: int = 3
    cooldown: float = 5.0


class ProcessingOrchestrator:
    def __init__(
        self,
        adapter: Any,
        cache: AnalysisCache,
        channel: RequestCorrelationChannel,
        *,
        settings_loader: Callable[[], Settings] = load_settings,
        pacing: Pacing = Pacing(),
        dispatch_policy: RetryPolicy = RetryPolicy(max_attempts=2, backoff_schedule=(2.0,)),
        listing_wait: tuple[int, float] = (10, 1.0),
    ) -> None:
        self.adapter = adapter
        self.cache = cache
        self.channel = channel
        self.settings_loader = settings_loader
        self.pacing = pacing
        self.dispatch_policy = dispatch_policy
        self.listing_wait = listing_wait
        self.state = SessionState.IDLE
        self.processed_ids: set[str] = set()
        self.session: ProcessingSession | None = None
        self._streak = FailureStreak(pacing.failure_threshold, pacing.cooldown)
        self._task: asyncio.Task | None = None

    # ── Command surface ──────────────────────────────────────────────────

    async def handle_start_command(self, reset_processed: bool = False, *, ack_timeout: float = 1.0) -> dict:
        """Always answers: the outcome, or a provisional success while work continues."""
        if self.state is SessionState.RUNNING:
            log.debug("Already processing, ignoring start command")
            return {"success": True, "message": "Already processing"}

        task = asyncio.ensure_future(self.start(reset_processed))
        self._task = task
        task.add_done_callback(self._session_done)
        done, _ = await asyncio.wait({task}, timeout=ack_timeout)
        if not done:
            log.warning("Sending provisional success response")
            return {"success": True, "message": "Processing started in background"}
        if task.cancelled():
            return {"success": False, "error": "Processing cancelled"}
        exc = task.exception()
        if exc is not None:
            return {"success": False, "error": str(exc)}
        return {"success": True}

    @staticmethod
    def _session_done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            log.error("Processing session failed: %s", task.exception())

    async def wait_for_session(self) -> ProcessingSession | None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        return self.session

    # ── Session ──────────────────────────────────────────────────────────

    async def start(self, reset_processed: bool = False) -> ProcessingSession | None:
        if self.state is SessionState.RUNNING:
            log.debug("Already processing, skipping")
            return None
        self.state = SessionState.RUNNING
        session: ProcessingSession | None = None
        try:
            settings = self.settings_loader()
            if reset_processed:
                log.debug("Resetting processed listings")
                self.processed_ids.clear()
            session = ProcessingSession(budget=settings.budget, processed_ids=self.processed_ids)
            self.session = session
            self._streak.record_success()

            attempts, delay = self.listing_wait
            listings = await self.adapter.wait_for_listings(attempts, delay)
            if not listings:
                log.warning("No job listings found")
            else:
                await self._process_page(session, settings)
        except Exception as exc:
            self.state = SessionState.FAILED
            if session is not None:
                session.state = SessionState.FAILED
                session.error = str(exc)
            log.error("Processing error: %s", exc)
            raise
        session.state = SessionState.COMPLETED
        self.state = SessionState.COMPLETED
        log.info(
            "Session complete — consumed=%d/%d, pages=%d, dispatches=%d",
            session.consumed_count, session.budget, session.pages_visited, session.dispatches,
        )
        return session

    async def render_cached(self, listings: list[Any] | None = None) -> int:
        """Badge every listing that already has a cache entry."""
        if listings is None:
            listings = await self.adapter.find_listings()
        rendered = 0
        for listing in listings:
            listing_id = await self.adapter.listing_id(listing)
            if not listing_id:
                continue
            entry = self.cache.get(listing_id)
            if entry is not None and await self.adapter.render(listing, entry):
                rendered += 1
        if rendered:
            log.debug("Rendered %d cached result(s)", rendered)
        return rendered

    async def _process_page(self, session: ProcessingSession, settings: Settings) -> None:
        listings = await self.adapter.find_listings()
        if not listings:
            log.warning("No job listings found on current page")
            return
        log.debug(
            "Page %d: %d listings, %d/%d of budget used",
            session.pages_visited, len(listings), session.consumed_count, session.budget,
        )
        await self.render_cached(listings)

        pacing: asyncio.Task | None = None
        for index, listing in enumerate(listings):
            listing_id = await self.adapter.listing_id(listing)
            if not listing_id:
                log.warning("Could not get ID for listing, skipping")
                continue
            if listing_id in session.processed_ids:
                log.debug("Skipping already processed listing %s", listing_id)
                continue
            session.mark(listing_id, ListingState.PENDING)
            if session.remaining <= 0:
                continue

            if pacing is not None:
                await pacing
                pacing = None
            pacing = await self._process_listing(session, settings, listing, listing_id)

        if pacing is not None:
            pacing.cancel()

        if session.remaining <= 0:
            log.info("Reached max job limit (%d), not checking for more pages", session.budget)
            return
        if await self.adapter.advance_page():
            session.pages_visited += 1
            await self._process_page(session, settings)
        else:
            log.debug("No next page, finished processing all available pages")

    async def _process_listing(
        self, session: ProcessingSession, settings: Settings, listing: Any, listing_id: str
    ) -> asyncio.Task | None:
        """Run one listing through its states; returns the pacing timer if a dispatch happened."""
        session.mark(listing_id, ListingState.EXTRACTING)
        try:
            content = await self.adapter.extract(listing)
        except ExtractionIncomplete as exc:
            log.warning("Skipping %s: %s", listing_id, exc)
            session.mark(listing_id, ListingState.SKIPPED)
            return None

        entry = self.cache.get(content.id)
        if entry is not None:
            session.mark(listing_id, ListingState.CACHE_HIT)
            log.debug("Using cached result for job %s", content.id)
            await self.adapter.render(listing, entry)
            session.consume(listing_id)
            session.mark(listing_id, ListingState.RENDERED)
            return None

        session.mark(listing_id, ListingState.DISPATCHED)
        pacing = asyncio.ensure_future(asyncio.sleep(self.pacing.item_delay))
        try:
            result = await self.dispatch_policy.run(
                self._dispatch, content, settings, session,
                retryable=(TransportTimeout,), label=f"dispatch {listing_id}",
            )
        except ServiceConfigurationError:
            pacing.cancel()
            raise
        except (TransportTimeout, TransportFailure, AnalysisFailed) as exc:
            log.error("Error processing listing %s: %s", listing_id, exc)
            session.mark(listing_id, ListingState.FAILED)
            if self._streak.record_failure():
                log.warning("Multiple failures detected, cooling down %.1fs", self._streak.cooldown)
                session.cooldowns += 1
                await asyncio.sleep(self._streak.cooldown)
            return pacing

        self._streak.record_success()
        entry = CacheEntry.merge(content, result)
        self.cache.put(content.id, entry)
        session.mark(listing_id, ListingState.CACHED)
        await self.adapter.render(listing, entry)
        session.consume(listing_id)
        session.mark(listing_id, ListingState.RENDERED)
        log.info(
            "Processed %s (%s) — %d/%d of budget",
            listing_id, entry.verdict.value, session.consumed_count, session.budget,
        )
        return pacing

    async def _dispatch(self, content: Listing, settings: Settings, session: ProcessingSession) -> AnalysisResult:
        session.dispatches += 1
        response = await self.channel.send(
            "analyzeListing",
            {"content": content.to_request(), "resume": settings.resume or None},
        )
        return self._to_result(content.id, response)

    @staticmethod
    def _to_result(listing_id: str, response: ChannelResponse) -> AnalysisResult:
        if response.timed_out:
            raise TransportTimeout(response.error or "timed out")
        if response.transport_error:
            raise TransportFailure(response.error or "channel unavailable")
        if not response.success:
            if response.data.get("errorKind") == "configuration":
                raise ServiceConfigurationError(response.error or "analysis service not configured")
            raise AnalysisFailed(response.error or "analysis failed")
        data = response.data
        return AnalysisResult(
            listing_id=listing_id,
            verdict=Verdict.coerce(data.get("verdict")),
            rationale_markup=data.get("rationaleMarkup", ""),
            completed_at=data.get("completedAt") or utc_now(),
        )
