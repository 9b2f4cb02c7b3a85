"""Turn a listing element into a Listing record.

Each field has a ranked list of strategies; the first non-empty value wins
and a field nobody can read stays empty. Title and company must come out
non-empty, otherwise the whole extraction is retried with a fresh
activation of the listing.
"""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from playwright.async_api import Error as PlaywrightError

from job_assistant.errors import ExtractionIncomplete
from job_assistant.log import get_logger
from job_assistant.models import Listing
from job_assistant.retry import RetryPolicy

log = get_logger(__name__)


def collapse_duplicate_text(text: str) -> str:
    """Undo the doubled labels produced by hidden + visible spans.

    "Senior EngineerSenior Engineer" and "Senior Engineer - Senior Engineer"
    both become "Senior Engineer"; so does any exact whole-string repeat.
    """
    text = (text or "").strip()
    if not text:
        return ""

    half = len(text) // 2
    first, second = text[:half].strip(), text[half:].strip()
    if first and first == second:
        text = first

    parts = [p.strip() for p in text.split(" - ")]
    if len(parts) == 2 and parts[0] and parts[0] == parts[1]:
        text = parts[0]

    n = len(text)
    for size in range(1, n // 2 + 1):
        if n % size == 0 and text[:size] * (n // size) == text:
            return text[:size]
    return text


class Strategy(Protocol):
    name: str

    async def resolve(self, handle: Any) -> str: ...


@dataclass(frozen=True)
class FieldStrategy:
    """Read text or an attribute from ``selector`` (or the handle itself).

    With ``pattern`` set, the first capture group of the match is the value.
    """

    name: str
    selector: str | None = None
    attribute: str | None = None
    pattern: str | None = None

    async def resolve(self, handle: Any) -> str:
        target = handle if self.selector is None else await handle.query_selector(self.selector)
        if target is None:
            return ""
        if self.attribute:
            value = await target.get_attribute(self.attribute)
        else:
            value = await target.inner_text()
        value = (value or "").strip()
        if value and self.pattern:
            m = re.search(self.pattern, value)
            value = m.group(1).strip() if m else ""
        return value


@dataclass(frozen=True)
class KeywordStrategy:
    """First element under ``selector`` whose text contains one of ``keywords``."""

    name: str
    selector: str
    keywords: tuple[str, ...]

    async def resolve(self, handle: Any) -> str:
        for item in await handle.query_selector_all(self.selector):
            text = ((await item.inner_text()) or "").strip()
            if any(k in text.lower() for k in self.keywords):
                return text
        return ""


async def first_value(strategies: Sequence[Strategy], handle: Any, *, label: str = "") -> str:
    """Value of the first strategy that yields something; "" if none do."""
    for strategy in strategies:
        try:
            value = await strategy.resolve(handle)
        except PlaywrightError as exc:
            # element detached or re-rendered under us; try the next strategy
            log.debug("%s strategy %s failed: %s", label, strategy.name, exc)
            continue
        if value:
            log.debug("%s from %s: %r", label, strategy.name, value[:80])
            return value
    return ""


@dataclass(frozen=True)
class ExtractionProfile:
    """Everything layout-specific the extractor needs."""

    id_strategies: tuple[Strategy, ...]
    title_strategies: tuple[Strategy, ...]
    company_strategies: tuple[Strategy, ...]
    location_strategies: tuple[Strategy, ...] = ()
    salary_strategies: tuple[Strategy, ...] = ()
    activate_selector: str | None = None
    description_selector: str = ".jobs-description"
    source_url_template: str = "{id}"
    active_markers: tuple[str, ...] = ("active", "selected")


@dataclass
class ListingExtractor:
    page: Any
    profile: ExtractionProfile
    retry_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy.linear(3, 1.0))
    description_timeout: float = 5.0
    poll_interval: float = 0.5
    settle_delay: float = 1.0

    async def listing_id(self, handle: Any) -> str | None:
        value = await first_value(self.profile.id_strategies, handle, label="id")
        return value or None

    async def _is_active(self, handle: Any) -> bool:
        try:
            classes = (await handle.get_attribute("class")) or ""
            selected = await handle.get_attribute("aria-selected")
        except PlaywrightError:
            return False
        if selected == "true":
            return True
        return any(marker in classes.split() for marker in self.profile.active_markers)

    async def activate(self, handle: Any) -> None:
        """Scroll the listing into view and click it so the detail panel loads."""
        try:
            await handle.scroll_into_view_if_needed()
            if not await self._is_active(handle):
                target = None
                if self.profile.activate_selector:
                    target = await handle.query_selector(self.profile.activate_selector)
                await (target or handle).click()
        except PlaywrightError as exc:
            log.debug("Activation failed: %s", exc)
        await asyncio.sleep(self.settle_delay)

    async def load_description(self, listing_id: str) -> tuple[str, str]:
        """Poll the detail panel until it has text; ("", "") after the timeout."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.description_timeout
        panel = self.page.locator(self.profile.description_selector).first
        while True:
            try:
                if await panel.count():
                    text = ((await panel.inner_text()) or "").strip()
                    if text:
                        return text, (await panel.inner_html()) or ""
            except PlaywrightError as exc:
                log.debug("Description panel not readable yet: %s", exc)
            if loop.time() + self.poll_interval > deadline:
                log.warning("Timed out waiting for description for job %s", listing_id)
                return "", ""
            await asyncio.sleep(self.poll_interval)

    async def extract_fields(self, handle: Any, listing_id: str) -> Listing:
        title = collapse_duplicate_text(
            await first_value(self.profile.title_strategies, handle, label="title")
        )
        company = collapse_duplicate_text(
            await first_value(self.profile.company_strategies, handle, label="company")
        )
        location = await first_value(self.profile.location_strategies, handle, label="location")
        salary = await first_value(self.profile.salary_strategies, handle, label="salary")
        return Listing(
            id=listing_id,
            title=title,
            company=company,
            location=location,
            salary=salary or None,
            description="",
            source_url=self.profile.source_url_template.format(id=listing_id),
        )

    async def _attempt(self, handle: Any, listing_id: str) -> Listing:
        await self.activate(handle)
        listing = await self.extract_fields(handle, listing_id)
        if not listing.is_complete():
            raise ExtractionIncomplete(listing_id, 1, "title or company missing")
        listing.description, rich = await self.load_description(listing_id)
        listing.rich_description = rich or None
        return listing

    async def extract(self, handle: Any) -> Listing:
        listing_id = await self.listing_id(handle)
        if not listing_id:
            raise ExtractionIncomplete(None, 0, "no listing id")
        log.info("Extracting content for job %s", listing_id)
        try:
            listing = await self.retry_policy.run(
                self._attempt,
                handle,
                listing_id,
                retryable=(ExtractionIncomplete, PlaywrightError),
                label=f"extract {listing_id}",
            )
        except (ExtractionIncomplete, PlaywrightError) as exc:
            raise ExtractionIncomplete(listing_id, self.retry_policy.max_attempts, str(exc)) from exc
        log.debug("Extracted %s: %s @ %s", listing_id, listing.title, listing.company)
        return listing
