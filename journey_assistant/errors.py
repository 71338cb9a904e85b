"""Exception types raised across Journey Assistant modules."""

from __future__ import annotations

from typing import Optional


class JourneyAssistantError(Exception):
    """Base class for errors raised by Journey Assistant."""


class BackendError(JourneyAssistantError):
    """Remote model call failed (auth, rate limit, network, timeout)."""

    def __init__(self, provider: str, detail: str, *, status: Optional[int] = None) -> None:
        self.provider = provider
        self.status = status
        self.detail = detail
        label = f"{provider} backend error"
        if status is not None:
            label += f" (status {status})"
        super().__init__(f"{label}: {detail}")


class PersistenceFailure(JourneyAssistantError):
    """Reading or writing the durable learning snapshot failed."""


class MalformedFeedback(JourneyAssistantError, ValueError):
    """A submitted feedback record is missing fields or carries invalid values."""
