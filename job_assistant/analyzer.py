"""Privileged analyzer context: holds the credential and evaluates listings.

It talks to the scanner only through the message bus. ``analyzeListing``
is answered later with a message tagged ``responseToId``; cheap actions
are acknowledged synchronously.
"""
from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from typing import Any, Callable

import openai
from openai import OpenAI

from job_assistant.channel import MessageBus
from job_assistant.config import Settings, load_settings, save_criteria
from job_assistant.errors import ServiceConfigurationError, TransportFailure
from job_assistant.log import get_logger
from job_assistant.models import Verdict, utc_now
from job_assistant.retry import retry

log = get_logger(__name__)

_STRONG_RE = re.compile(r"<strong[^>]*>(.*?)</strong>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def parse_verdict(markup: str) -> Verdict:
    """YES/NO from the first <strong> element, else from the leading word."""
    text = (markup or "").strip()
    m = _STRONG_RE.search(text)
    answer = _TAG_RE.sub("", m.group(1)) if m else _TAG_RE.sub("", text)
    answer = answer.strip().upper()
    if answer.startswith("YES"):
        return Verdict.FIT
    if answer.startswith("NO"):
        return Verdict.NO_FIT
    return Verdict.UNKNOWN


class AnalysisService(ABC):
    @abstractmethod
    async def analyze(self, request: dict[str, Any]) -> dict[str, Any]:
        """Return ``{"verdict": ..., "rationaleMarkup": ...}`` for one listing."""


class OpenAIAnalysisService(AnalysisService):
    """Evaluates a listing with an OpenAI-compatible chat-completions model."""

    def __init__(self, settings_loader: Callable[[], Settings] = load_settings) -> None:
        self._settings_loader = settings_loader

    @staticmethod
    def build_prompt(request: dict[str, Any], criteria: str) -> str:
        resume = request.get("resume") or ""
        resume_section = f"\nCandidate resume:\n{resume}\n" if resume else ""
        return f"""Decide whether this job listing matches the candidate.
Answer with <h2>Analysis</h2>, then <strong>YES</strong> or <strong>NO</strong>,
then a <ul> of reasons about experience, skills and project focus only.

Criteria:
{criteria}
{resume_section}
Job listing:
Title: {request.get("title", "")}
Company: {request.get("company", "")}
Location: {request.get("location", "")}
Description: {request.get("description", "")[:6000]}"""

    @staticmethod
    @retry(max_attempts=2, base_delay=2.0, retryable=_TRANSIENT_ERRORS)
    def _complete(settings: Settings, prompt: str) -> str:
        client = OpenAI(api_key=settings.api_key, base_url=settings.base_url or None)
        r = client.chat.completions.create(
            model=settings.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.3,
        )
        return (r.choices[0].message.content or "").strip()

    async def analyze(self, request: dict[str, Any]) -> dict[str, Any]:
        settings = self._settings_loader()
        if not settings.has_credential:
            raise ServiceConfigurationError("API key not configured")

        prompt = self.build_prompt(request, settings.criteria)
        try:
            markup = await asyncio.to_thread(self._complete, settings, prompt)
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise ServiceConfigurationError(f"Credential rejected: {exc}") from exc
        verdict = parse_verdict(markup)
        log.info("Analyzed %s @ %s → %s", request.get("title"), request.get("company"), verdict.value)
        return {"verdict": verdict.value, "rationaleMarkup": markup}


class AnalyzerContext:
    def __init__(
        self,
        bus: MessageBus,
        service: AnalysisService,
        *,
        name: str = "analyzer",
        peer: str = "scanner",
        criteria_saver: Callable[[str], None] = save_criteria,
    ) -> None:
        self._bus = bus
        self._service = service
        self.name = name
        self.peer = peer
        self._criteria_saver = criteria_saver
        self._tasks: set[asyncio.Task] = set()
        bus.attach(name, self.handle)

    def close(self) -> None:
        self._bus.detach(self.name)

    async def drain(self) -> None:
        """Wait for in-flight evaluations (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def handle(self, message: dict) -> dict | None:
        action = message.get("action")
        if action == "analyzeListing":
            content = message.get("content") or {}
            if not content.get("jobId"):
                return {"success": False, "error": "Invalid job content"}
            task = asyncio.get_running_loop().create_task(
                self._analyze_and_reply(message.get("requestId"), content, message.get("resume"))
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return None
        if action == "saveCriteria":
            criteria = message.get("criteria")
            if not criteria:
                return {"success": False, "error": "No criteria provided"}
            try:
                self._criteria_saver(criteria)
            except OSError as exc:
                log.error("Error saving criteria: %s", exc)
                return {"success": False, "error": str(exc)}
            return {"success": True}
        if action == "ping":
            return {"success": True}
        return {"success": False, "error": "Unknown action"}

    async def _analyze_and_reply(self, request_id: str | None, content: dict, resume: str | None) -> None:
        log.debug("Analyzing %s (request %s)", content.get("jobId"), request_id)
        request = {
            "listingId": content.get("jobId"),
            "title": content.get("title", ""),
            "company": content.get("company", ""),
            "location": content.get("location", ""),
            "description": content.get("description", ""),
            "resume": resume,
        }
        try:
            result = await self._service.analyze(request)
            data = {
                "success": True,
                "listingId": content.get("jobId"),
                "verdict": Verdict.coerce(result.get("verdict")).value,
                "rationaleMarkup": result.get("rationaleMarkup", ""),
                "completedAt": utc_now(),
            }
        except ServiceConfigurationError as exc:
            log.error("Analyzer not configured: %s", exc)
            data = {"success": False, "errorKind": "configuration", "error": str(exc)}
        except Exception as exc:
            log.error("Analysis error for %s: %s", content.get("jobId"), exc)
            data = {"success": False, "errorKind": "service", "error": f"Error: {exc}"}

        if request_id is None:
            return
        try:
            await self._bus.deliver(self.peer, {"responseToId": request_id, "data": data})
        except TransportFailure as exc:
            log.warning("Could not deliver response %s: %s", request_id, exc)
