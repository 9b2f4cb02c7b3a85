"""
Listing assistant.

Runs: open page → attach site adapter → startProcessing command → evaluate
listings through the analyzer → annotate page → next page while budget remains.
"""
from __future__ import annotations

import os
from typing import Any, Callable

from job_assistant.analyzer import AnalysisService, AnalyzerContext, OpenAIAnalysisService
from job_assistant.cache import AnalysisCache
from job_assistant.channel import MessageBus, RequestCorrelationChannel
from job_assistant.config import DATA_DIR, Settings, ensure_dirs, load_settings
from job_assistant.log import get_logger
from job_assistant.orchestrator import Pacing, ProcessingOrchestrator
from job_assistant.sites import AdapterRegistry
from job_assistant.storage import JsonStore
from job_assistant.watcher import Signal

log = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def open_cache(data_dir=DATA_DIR) -> AnalysisCache:
    return AnalysisCache(JsonStore(data_dir / "storage.json"), JsonStore(data_dir / "entries.json"))


class ScannerContext:
    """Page-side context: adapters, cache, orchestrators and the channel to the analyzer."""

    def __init__(
        self,
        bus: MessageBus,
        cache: AnalysisCache,
        *,
        settings_loader: Callable[[], Settings] = load_settings,
        pacing: Pacing = Pacing(),
        timeout: float = 15.0,
    ) -> None:
        self.cache = cache
        self.registry = AdapterRegistry()
        self.settings_loader = settings_loader
        self.pacing = pacing
        self.channel = RequestCorrelationChannel(bus, timeout=timeout, command_handler=self.handle_command)
        self._orchestrators: dict[Any, ProcessingOrchestrator] = {}
        self._active_page: Any = None

    async def attach(self, page: Any) -> ProcessingOrchestrator | None:
        """Idempotent: the same page always maps to the same adapter and orchestrator."""
        adapter = await self.registry.get_or_create(page)
        if adapter is None:
            return None
        orchestrator = self._orchestrators.get(page)
        if orchestrator is None:
            orchestrator = ProcessingOrchestrator(
                adapter, self.cache, self.channel,
                settings_loader=self.settings_loader, pacing=self.pacing,
            )
            self._orchestrators[page] = orchestrator
            if adapter.watcher is not None:
                rescan = lambda _signal: orchestrator.render_cached()
                adapter.watcher.subscribe(Signal.NEW_LISTINGS, rescan)
                adapter.watcher.subscribe(Signal.PAGINATION_CHANGED, rescan)
                adapter.watcher.subscribe(Signal.SCROLLED, rescan)
            await orchestrator.render_cached()
        self._active_page = page
        return orchestrator

    def orchestrator_for(self, page: Any = None) -> ProcessingOrchestrator | None:
        return self._orchestrators.get(page if page is not None else self._active_page)

    async def handle_command(self, message: dict) -> dict:
        action = message.get("action")
        if action == "startProcessing":
            orchestrator = self.orchestrator_for()
            if orchestrator is None:
                return {"success": False, "error": "No supported page attached"}
            log.info("Starting job processing")
            return await orchestrator.handle_start_command(message.get("resetProcessed") is True)
        return {"success": False, "error": "Unknown action"}

    async def close(self) -> None:
        self.channel.close()
        for page in list(self._orchestrators):
            await self.registry.release(page)
        self._orchestrators.clear()


async def run(
    url: str,
    *,
    headless: bool | None = None,
    reset_processed: bool = False,
    service: AnalysisService | None = None,
) -> dict[str, Any]:
    from playwright.async_api import async_playwright

    ensure_dirs()
    if headless is None:
        headless = os.environ.get("RUN_HEADLESS", "false").lower() in ("1", "true", "yes")

    bus = MessageBus()
    analyzer = AnalyzerContext(bus, service or OpenAIAnalysisService())
    scanner = ScannerContext(bus, open_cache())

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        context = await browser.new_context(viewport={"width": 1280, "height": 900}, user_agent=USER_AGENT)
        page = await context.new_page()
        page.set_default_timeout(20_000)
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=25_000)
            orchestrator = await scanner.attach(page)
            if orchestrator is None:
                return {"success": False, "error": f"No adapter for {url}"}

            # the control context asks the scanner to start, like a popup would
            ack = await bus.deliver(
                scanner.channel.context,
                {"action": "startProcessing", "resetProcessed": reset_processed},
            )
            log.info("startProcessing → %s", ack)
            session = await orchestrator.wait_for_session()
            await analyzer.drain()
        finally:
            await scanner.close()
            analyzer.close()
            await browser.close()

    summary = session.summary() if session else {}
    summary["success"] = bool(session and session.error is None) and bool((ack or {}).get("success"))
    if ack and ack.get("error"):
        summary["error"] = ack["error"]
    return summary
