"""Abstract transcription provider interface.

Each provider knows how to submit a job with a webhook URL and how to read
its own webhook payloads. Concrete implementations subclass
TranscriptionProvider and are selected by tag.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx


@dataclass
class SubmitParams:
    """Per-job parameters forwarded to providers."""

    language: str
    speaker_estimate: int | None = None


def speaker_bounds(estimate: int) -> tuple[int, int]:
    """Derive (min, max) speaker counts from a caller estimate."""
    return max(1, estimate - 1), estimate + 2


class TranscriptionProvider(ABC):
    """Abstract base class for asynchronous transcription providers.

    Subclasses set ``tag`` and implement submission and payload reading.
    """

    tag: str = ""

    @abstractmethod
    async def submit(
        self,
        client: httpx.AsyncClient,
        audio_url: str,
        webhook_url: str,
        params: SubmitParams,
    ) -> str:
        """Start a provider job that will report back to ``webhook_url``.

        Returns:
            The provider's external task identifier.

        Raises:
            ProviderError: If the provider rejects the job.
        """

    @abstractmethod
    def is_success(self, payload: dict[str, Any]) -> bool:
        """Whether a webhook payload reports a successful job."""

    @abstractmethod
    def extract_output(self, payload: dict[str, Any]) -> Any:
        """The part of a successful payload stored as the Partial Result."""

    def error_detail(self, payload: dict[str, Any]) -> str:
        """Human-readable failure detail from a webhook payload."""
        error = payload.get("error")
        if error:
            return str(error)
        return f"status={payload.get('status', 'unknown')}"
