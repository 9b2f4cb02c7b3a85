"""Locate and press the "next page" control."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Sequence

from playwright.async_api import Error as PlaywrightError

from job_assistant.log import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class NextPageStrategy:
    """Look for ``selector`` inside ``container``, or page-wide when container is None."""

    selector: str
    container: str | None = None


async def is_usable(control: Any) -> bool:
    """Present, visible and enabled."""
    if control is None:
        return False
    try:
        return await control.count() > 0 and await control.is_visible() and not await control.is_disabled()
    except PlaywrightError:
        return False


@dataclass
class PaginationCrawler:
    page: Any
    strategies: Sequence[NextPageStrategy]
    text_labels: tuple[str, ...] = ("next",)
    scroll_delay: float = 1.5
    settle_delay: float = 4.0

    async def _from_strategy(self, strategy: NextPageStrategy) -> Any | None:
        scope = self.page.locator(strategy.container) if strategy.container else self.page
        control = scope.locator(strategy.selector).first
        return control if await is_usable(control) else None

    async def _from_text(self) -> Any | None:
        buttons = self.page.locator("button")
        for i in range(await buttons.count()):
            button = buttons.nth(i)
            try:
                text = ((await button.inner_text()) or "").strip().lower()
            except PlaywrightError:
                continue
            if any(text == label or text.endswith(label) for label in self.text_labels):
                if await is_usable(button):
                    return button
        return None

    async def find_next(self) -> Any | None:
        """Locator for the first usable next-page control, or None on the last page."""
        for strategy in self.strategies:
            control = await self._from_strategy(strategy)
            if control is not None:
                log.debug("Next button found via %s (in %s)", strategy.selector, strategy.container or "page")
                return control
        control = await self._from_text()
        if control is not None:
            log.debug("Next button found by text content")
            return control
        log.debug("No next button found")
        return None

    async def advance(self) -> bool:
        """Click "next" and wait for the page to settle. False when there is no next page."""
        control = await self.find_next()
        if control is None:
            return False
        try:
            await control.scroll_into_view_if_needed()
            await asyncio.sleep(self.scroll_delay)
            await control.click()
        except PlaywrightError as exc:
            log.warning("Could not press next page control: %s", exc)
            return False
        log.info("Moved to next page, waiting %.1fs to settle", self.settle_delay)
        await asyncio.sleep(self.settle_delay)
        return True
