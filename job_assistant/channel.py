"""Message bus between execution contexts and request/response correlation over it.

Contexts never share objects: every message is encoded to JSON and decoded
again on delivery, so each side only ever sees its own copy.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from job_assistant.errors import TransportFailure
from job_assistant.log import get_logger

log = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0

Handler = Callable[[dict], Union[Optional[dict], Awaitable[Optional[dict]]]]


def _copy(message: dict) -> dict:
    try:
        return json.loads(json.dumps(message))
    except (TypeError, ValueError) as exc:
        raise TransportFailure(f"Message is not serializable: {exc}") from exc


def new_request_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


class MessageBus:
    """Routes JSON messages to named contexts.

    ``deliver`` returns the handler's synchronous acknowledgment, if any.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def attach(self, context: str, handler: Handler) -> None:
        self._handlers[context] = handler
        log.debug("Context %r attached to bus", context)

    def detach(self, context: str) -> None:
        self._handlers.pop(context, None)

    def is_attached(self, context: str) -> bool:
        return context in self._handlers

    async def deliver(self, target: str, message: dict) -> dict | None:
        handler = self._handlers.get(target)
        if handler is None:
            raise TransportFailure(f"Context {target!r} is not available")
        ack = handler(_copy(message))
        if inspect.isawaitable(ack):
            ack = await ack
        return _copy(ack) if ack is not None else None


@dataclass
class ChannelResponse:
    success: bool
    data: dict = field(default_factory=dict)
    error: str | None = None
    timed_out: bool = False
    transport_error: bool = False

    @classmethod
    def from_data(cls, data: dict | None) -> "ChannelResponse":
        if not isinstance(data, dict):
            return cls(False, {}, "No data in response")
        return cls(bool(data.get("success")), data, data.get("error"))

    @classmethod
    def timeout(cls, seconds: float) -> "ChannelResponse":
        return cls(False, {}, f"Request timed out after {seconds:g} seconds", timed_out=True)

    @classmethod
    def unavailable(cls, reason: str) -> "ChannelResponse":
        return cls(False, {}, reason, transport_error=True)


class RequestCorrelationChannel:
    """Pairs each request with exactly one response, by request id.

    A request completes on whichever comes first: the synchronous
    acknowledgment from ``deliver``, a later message carrying
    ``responseToId``, the timeout, or a transport error.
    """

    def __init__(
        self,
        bus: MessageBus,
        *,
        context: str = "scanner",
        peer: str = "analyzer",
        timeout: float = DEFAULT_TIMEOUT,
        command_handler: Handler | None = None,
    ) -> None:
        self._bus = bus
        self.context = context
        self.peer = peer
        self.timeout = timeout
        self.command_handler = command_handler
        self._pending: dict[str, asyncio.Future] = {}
        self.discarded = 0
        bus.attach(context, self._on_message)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        self._bus.detach(self.context)
        for request_id in list(self._pending):
            self._resolve(request_id, ChannelResponse.unavailable("Channel closed"))

    def _resolve(self, request_id: str, response: ChannelResponse) -> bool:
        fut = self._pending.pop(request_id, None)
        if fut is None or fut.done():
            return False
        fut.set_result(response)
        return True

    async def _transmit(self, request_id: str, action: str, message: dict, fut: asyncio.Future) -> None:
        try:
            ack = await self._bus.deliver(self.peer, message)
        except TransportFailure as exc:
            log.error("Error sending %s: %s", action, exc)
            self._resolve(request_id, ChannelResponse.unavailable(str(exc)))
        else:
            if ack is not None and self._resolve(request_id, ChannelResponse.from_data(ack)):
                log.debug("Direct response for %s", request_id)
        await asyncio.shield(fut)

    async def send(self, action: str, payload: dict | None = None) -> ChannelResponse:
        """Deliver a request and wait for its response; delivery counts against the timeout."""
        request_id = new_request_id()
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = fut
        message = {"action": action, "requestId": request_id, **(payload or {})}
        log.debug("Sending %s with requestId %s", action, request_id)

        try:
            await asyncio.wait_for(self._transmit(request_id, action, message, fut), timeout=self.timeout)
        except asyncio.TimeoutError:
            if self._resolve(request_id, ChannelResponse.timeout(self.timeout)):
                log.error("Request %s (%s) timed out after %gs", request_id, action, self.timeout)
        finally:
            self._pending.pop(request_id, None)
        return fut.result()

    async def _on_message(self, message: dict) -> dict | None:
        request_id = message.get("responseToId")
        if request_id is not None:
            if self._resolve(request_id, ChannelResponse.from_data(message.get("data"))):
                log.debug("Match found for requestId %s", request_id)
            else:
                self.discarded += 1
                log.debug("Discarding response for unknown or settled request %s", request_id)
            return None

        if self.command_handler is None:
            return {"success": False, "error": "Unknown action"}
        ack = self.command_handler(message)
        if inspect.isawaitable(ack):
            ack = await ack
        return ack
