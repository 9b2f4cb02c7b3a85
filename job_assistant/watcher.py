"""Watch the page for new listings, description updates, pagination changes and scrolling.

A MutationObserver inside the page reports which kind of node appeared, and
a scroll listener reports lazy-loading scrolls; bursts are debounced here
into one signal per kind, fired after a quiet period.
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from playwright.async_api import Error as PlaywrightError

from job_assistant.log import get_logger

log = get_logger(__name__)

BINDING_NAME = "__jobAssistantNotify"

_OBSERVER_JS = """
({binding, root, markers}) => {
    const container = document.querySelector(root);
    if (!container) return false;
    if (window.__jobAssistantObserver) window.__jobAssistantObserver.disconnect();
    const hit = (node, selectors) => selectors.some(
        s => (node.matches && node.matches(s)) || (node.querySelector && node.querySelector(s)));
    const observer = new MutationObserver(mutations => {
        const kinds = new Set();
        for (const m of mutations) {
            for (const node of m.addedNodes) {
                if (node.nodeType !== Node.ELEMENT_NODE) continue;
                for (const [kind, selectors] of Object.entries(markers)) {
                    if (hit(node, selectors)) kinds.add(kind);
                }
            }
        }
        kinds.forEach(kind => window[binding](kind));
    });
    observer.observe(container, {childList: true, subtree: true});
    window.__jobAssistantObserver = observer;

    // capture phase: the results list scrolls inside its own pane
    if (window.__jobAssistantScroll) window.removeEventListener('scroll', window.__jobAssistantScroll, true);
    window.__jobAssistantScroll = () => window[binding]('scrolled');
    window.addEventListener('scroll', window.__jobAssistantScroll, {capture: true, passive: true});
    return true;
}
"""

_DISCONNECT_JS = """
() => {
    if (window.__jobAssistantObserver) window.__jobAssistantObserver.disconnect();
    if (window.__jobAssistantScroll) window.removeEventListener('scroll', window.__jobAssistantScroll, true);
    window.__jobAssistantScroll = null;
}
"""


class Signal(str, Enum):
    NEW_LISTINGS = "new-listings"
    DESCRIPTION_UPDATED = "description-updated"
    PAGINATION_CHANGED = "pagination-changed"
    SCROLLED = "scrolled"


@dataclass(frozen=True)
class WatchTargets:
    listing_markers: tuple[str, ...]
    description_markers: tuple[str, ...]
    pagination_markers: tuple[str, ...]
    root_selector: str = "body"

    def markers(self) -> dict[str, list[str]]:
        return {
            Signal.NEW_LISTINGS.value: list(self.listing_markers),
            Signal.DESCRIPTION_UPDATED.value: list(self.description_markers),
            Signal.PAGINATION_CHANGED.value: list(self.pagination_markers),
        }


Callback = Callable[[Signal], Any]


class ContentChangeWatcher:
    def __init__(
        self,
        page: Any,
        targets: WatchTargets,
        *,
        quiet_period: float = 1.5,
        scroll_quiet_period: float = 0.3,
        navigation_delays: tuple[float, ...] = (1.5, 3.0),
    ) -> None:
        self.page = page
        self.targets = targets
        self.quiet_period = quiet_period
        self.scroll_quiet_period = scroll_quiet_period
        self.navigation_delays = navigation_delays
        self._subscribers: dict[Signal, list[Callback]] = {s: [] for s in Signal}
        self._timers: dict[Signal, asyncio.TimerHandle] = {}
        self._nav_timers: set[asyncio.TimerHandle] = set()
        self._tasks: set[asyncio.Task] = set()
        self._last_url: str | None = None
        self._bound = False
        self.observing = False

    @property
    def pending_navigation_signals(self) -> int:
        return len(self._nav_timers)

    def subscribe(self, signal: Signal, callback: Callback) -> None:
        self._subscribers[signal].append(callback)

    async def start(self) -> None:
        self._last_url = self.page.url
        if not self._bound:
            await self.page.expose_binding(BINDING_NAME, lambda _source, kind: self.notify(kind))
            self.page.on("framenavigated", self._on_frame_navigated)
            self._bound = True
        await self._install()

    async def _install(self) -> None:
        try:
            self.observing = bool(
                await self.page.evaluate(
                    _OBSERVER_JS,
                    {"binding": BINDING_NAME, "root": self.targets.root_selector, "markers": self.targets.markers()},
                )
            )
        except PlaywrightError as exc:
            log.debug("Could not install observer: %s", exc)
            self.observing = False
        if not self.observing:
            log.debug("Watch root %s not present, observer idle", self.targets.root_selector)

    async def stop(self) -> None:
        for handle in list(self._timers.values()) + list(self._nav_timers):
            handle.cancel()
        self._timers.clear()
        self._nav_timers.clear()
        if self.observing:
            try:
                await self.page.evaluate(_DISCONNECT_JS)
            except PlaywrightError as exc:
                log.debug("Observer disconnect failed: %s", exc)
            self.observing = False

    def notify(self, kind: str | Signal) -> None:
        """Record a relevant change; (re)starts the quiet-period timer for its signal."""
        try:
            signal = Signal(kind)
        except ValueError:
            log.debug("Ignoring unknown mutation kind %r", kind)
            return
        loop = asyncio.get_running_loop()
        pending = self._timers.pop(signal, None)
        if pending is not None:
            pending.cancel()
        delay = self.scroll_quiet_period if signal is Signal.SCROLLED else self.quiet_period
        self._timers[signal] = loop.call_later(delay, self._fire_debounced, signal)

    def _fire_debounced(self, signal: Signal) -> None:
        self._timers.pop(signal, None)
        self._emit(signal)

    def _emit(self, signal: Signal) -> None:
        if signal is Signal.SCROLLED:
            log.debug("Page scrolled")
        else:
            log.info("Page change: %s", signal.value)
        for callback in self._subscribers[signal]:
            result = callback(signal)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Watcher callback failed: %s", task.exception())

    def _on_frame_navigated(self, frame: Any) -> None:
        if frame is not self.page.main_frame:
            return
        self.url_changed(frame.url)

    def _fire_navigation(self, handle_box: list[asyncio.TimerHandle]) -> None:
        self._nav_timers.discard(handle_box[0])
        self._emit(Signal.NEW_LISTINGS)

    def url_changed(self, url: str) -> None:
        """Same-document navigation: re-emit new-listings at each staggered delay."""
        if url == self._last_url:
            return
        log.info("URL changed, refreshing listings")
        self._last_url = url
        loop = asyncio.get_running_loop()
        for delay in self.navigation_delays:
            box: list[asyncio.TimerHandle] = []
            box.append(loop.call_later(delay, self._fire_navigation, box))
            self._nav_timers.add(box[0])
        # a soft navigation may replace the observed container
        task = asyncio.ensure_future(self._install())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
