"""Tests for the analyzer context and verdict parsing."""
import asyncio

import pytest

from job_assistant.analyzer import AnalysisService, AnalyzerContext, OpenAIAnalysisService, parse_verdict
from job_assistant.channel import MessageBus
from job_assistant.config import Settings
from job_assistant.errors import ServiceConfigurationError
from job_assistant.models import Verdict


@pytest.mark.parametrize(
    "markup, expected",
    [
        ("<h2>Analysis</h2><strong>YES</strong><ul><li>Strong Python</li></ul>", Verdict.FIT),
        ("<strong>No</strong> - needs 10 years of Go", Verdict.NO_FIT),
        ("YES, this is a good fit", Verdict.FIT),
        ("<p>Hard to say.</p>", Verdict.UNKNOWN),
        ("", Verdict.UNKNOWN),
    ],
)
def test_parse_verdict(markup, expected):
    assert parse_verdict(markup) is expected


class EchoService(AnalysisService):
    def __init__(self, error=None):
        self.error = error
        self.requests = []

    async def analyze(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return {"verdict": "NoFit", "rationaleMarkup": "<strong>NO</strong>"}


def wire(service, saver=None):
    bus = MessageBus()
    replies = []
    bus.attach("scanner", replies.append)
    kwargs = {"criteria_saver": saver} if saver else {}
    return bus, AnalyzerContext(bus, service, **kwargs), replies


@pytest.mark.asyncio
async def test_analyze_listing_replies_later():
    service = EchoService()
    bus, analyzer, replies = wire(service)

    ack = await bus.deliver("analyzer", {
        "action": "analyzeListing", "requestId": "req_1",
        "content": {"jobId": "9", "title": "Engineer", "company": "Acme"}, "resume": "cv",
    })
    await analyzer.drain()

    assert ack is None
    assert service.requests[0]["resume"] == "cv"
    assert replies[0]["responseToId"] == "req_1"
    data = replies[0]["data"]
    assert data["success"] is True
    assert data["listingId"] == "9"
    assert data["verdict"] == "NoFit"
    assert data["completedAt"]


@pytest.mark.asyncio
async def test_invalid_content_is_rejected_synchronously():
    bus, _, replies = wire(EchoService())
    ack = await bus.deliver("analyzer", {"action": "analyzeListing", "requestId": "r", "content": {}})
    assert ack == {"success": False, "error": "Invalid job content"}
    assert replies == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, kind",
    [(ServiceConfigurationError("API key not configured"), "configuration"), (RuntimeError("boom"), "service")],
)
async def test_errors_are_reported_with_kind(error, kind):
    bus, analyzer, replies = wire(EchoService(error))
    await bus.deliver("analyzer", {"action": "analyzeListing", "requestId": "r", "content": {"jobId": "1"}})
    await analyzer.drain()
    assert replies[0]["data"]["success"] is False
    assert replies[0]["data"]["errorKind"] == kind


@pytest.mark.asyncio
async def test_save_criteria_and_ping():
    saved = []
    bus, _, _ = wire(EchoService(), saver=saved.append)

    assert await bus.deliver("analyzer", {"action": "saveCriteria", "criteria": "Remote only"}) == {"success": True}
    assert await bus.deliver("analyzer", {"action": "saveCriteria"}) == {
        "success": False, "error": "No criteria provided",
    }
    assert await bus.deliver("analyzer", {"action": "ping"}) == {"success": True}
    assert await bus.deliver("analyzer", {"action": "dance"}) == {"success": False, "error": "Unknown action"}
    assert saved == ["Remote only"]


@pytest.mark.asyncio
async def test_reply_to_closed_peer_is_dropped():
    bus, analyzer, _ = wire(EchoService())
    bus.detach("scanner")
    await bus.deliver("analyzer", {"action": "analyzeListing", "requestId": "r", "content": {"jobId": "1"}})
    await asyncio.wait_for(analyzer.drain(), timeout=1.0)


@pytest.mark.asyncio
async def test_openai_service_requires_credential():
    service = OpenAIAnalysisService(settings_loader=lambda: Settings(api_key="0"))
    with pytest.raises(ServiceConfigurationError):
        await service.analyze({"listingId": "1", "title": "x"})


@pytest.mark.asyncio
async def test_openai_service_parses_completion(monkeypatch):
    prompts = []

    def fake_complete(settings, prompt):
        prompts.append(prompt)
        return "<h2>Analysis</h2><strong>YES</strong><ul><li>Matches the stack</li></ul>"

    monkeypatch.setattr(OpenAIAnalysisService, "_complete", staticmethod(fake_complete))
    service = OpenAIAnalysisService(settings_loader=lambda: Settings(api_key="k", criteria="Remote roles"))

    result = await service.analyze({"listingId": "1", "title": "Engineer", "company": "Acme", "resume": "cv text"})

    assert result["verdict"] == "Fit"
    assert "Remote roles" in prompts[0]
    assert "cv text" in prompts[0]
