"""pyannoteAI diarization provider.

Submits a diarization job to the pyannoteAI API. The webhook payload carries
``status`` ("succeeded", "failed", "canceled") and the diarization under
``output``.
"""

import logging
from typing import Any

import httpx

from transcription_relay.providers.interface import (
    SubmitParams,
    TranscriptionProvider,
    speaker_bounds,
)
from transcription_relay.utils.errors import ProviderError
from transcription_relay.utils.retry import request_with_retry

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.pyannote.ai/v1"
SUCCESS_STATUS = "succeeded"


class PyannoteProvider(TranscriptionProvider):
    """Speaker diarization via pyannoteAI.

    Args:
        api_key: pyannoteAI API key sent as a bearer token.
        api_url: API base URL (default production endpoint).
        max_attempts: Attempts per submission (see request_with_retry).
        base_delay: Linear backoff base in seconds.
    """

    tag = "diarization"

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._max_attempts = max_attempts
        self._base_delay = base_delay

    def build_body(
        self, audio_url: str, webhook_url: str, params: SubmitParams
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"url": audio_url, "webhook": webhook_url}
        if params.speaker_estimate is not None:
            min_speakers, max_speakers = speaker_bounds(params.speaker_estimate)
            body["minSpeakers"] = min_speakers
            body["maxSpeakers"] = max_speakers
        return body

    async def submit(
        self,
        client: httpx.AsyncClient,
        audio_url: str,
        webhook_url: str,
        params: SubmitParams,
    ) -> str:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await request_with_retry(
                client,
                "POST",
                f"{self._api_url}/diarize",
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
                headers=headers,
                json=self.build_body(audio_url, webhook_url, params),
            )
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"pyannoteAI request failed: {exc}", provider=self.tag
            ) from exc

        if not response.is_success:
            raise ProviderError(
                f"pyannoteAI error: {response.status_code}",
                provider=self.tag,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                "pyannoteAI returned a non-JSON response", provider=self.tag
            ) from exc
        if not isinstance(data, dict):
            raise ProviderError(
                "pyannoteAI returned an unexpected response body", provider=self.tag
            )
        task_id = data.get("jobId")
        if not task_id:
            raise ProviderError(
                "No jobId in pyannoteAI response", provider=self.tag
            )

        logger.info(
            "Submitted pyannoteAI job %s", task_id, extra={"provider": self.tag}
        )
        return str(task_id)

    def is_success(self, payload: dict[str, Any]) -> bool:
        return payload.get("status") == SUCCESS_STATUS

    def extract_output(self, payload: dict[str, Any]) -> Any:
        return payload.get("output")
