"""Error taxonomy for the scanning pipeline."""
from __future__ import annotations


class AssistantError(Exception):
    """Base class for every pipeline error."""


class ExtractionIncomplete(AssistantError):
    """Title or company stayed empty after every extraction attempt."""

    def __init__(self, listing_id: str | None, attempts: int, reason: str = "") -> None:
        self.listing_id = listing_id
        self.attempts = attempts
        msg = f"Incomplete extraction for listing {listing_id} after {attempts} attempt(s)"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class TransportTimeout(AssistantError):
    """No response arrived for a request before the channel timeout."""


class TransportFailure(AssistantError):
    """The other execution context could not be reached."""


class AnalysisFailed(AssistantError):
    """The analyzer answered, but the evaluation itself failed."""


class ServiceConfigurationError(AssistantError):
    """The analysis service cannot run at all (e.g. missing credential)."""


class PersistenceError(AssistantError):
    """A durable store could not be read or written."""
