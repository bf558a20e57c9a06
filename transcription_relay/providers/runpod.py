"""RunPod serverless transcription provider.

Submits audio to a RunPod serverless endpoint running a Whisper worker.
RunPod posts the job object back to the webhook when the job finishes;
the transcription segments live under ``output``.
"""

import logging
from typing import Any

import httpx

from transcription_relay.providers.interface import SubmitParams, TranscriptionProvider
from transcription_relay.utils.errors import ProviderError
from transcription_relay.utils.retry import request_with_retry

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "COMPLETED"


class RunPodProvider(TranscriptionProvider):
    """Whisper transcription on RunPod serverless.

    Args:
        endpoint: Endpoint base URL, e.g. "https://api.runpod.ai/v2/<id>".
        api_key: RunPod API key sent as a bearer token.
        max_attempts: Attempts per submission (see request_with_retry).
        base_delay: Linear backoff base in seconds.
    """

    tag = "segments"

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        if not endpoint:
            raise ValueError("endpoint is required")
        if not api_key:
            raise ValueError("api_key is required")
        self._endpoint = endpoint.rstrip("/")
        self._api_key = api_key
        self._max_attempts = max_attempts
        self._base_delay = base_delay

    async def submit(
        self,
        client: httpx.AsyncClient,
        audio_url: str,
        webhook_url: str,
        params: SubmitParams,
    ) -> str:
        body = {
            "input": {
                "audio_url": audio_url,
                "lang": params.language,
            },
            "webhook": webhook_url,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await request_with_retry(
                client,
                "POST",
                f"{self._endpoint}/run",
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
                headers=headers,
                json=body,
            )
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"RunPod request failed: {exc}", provider=self.tag
            ) from exc

        if not response.is_success:
            raise ProviderError(
                f"RunPod error: {response.status_code}",
                provider=self.tag,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                "RunPod returned a non-JSON response", provider=self.tag
            ) from exc
        if not isinstance(data, dict):
            raise ProviderError(
                "RunPod returned an unexpected response body", provider=self.tag
            )
        task_id = data.get("id")
        if not task_id:
            raise ProviderError("No job id in RunPod response", provider=self.tag)

        logger.info("Submitted RunPod job %s", task_id, extra={"provider": self.tag})
        return str(task_id)

    def is_success(self, payload: dict[str, Any]) -> bool:
        return payload.get("status") == SUCCESS_STATUS

    def extract_output(self, payload: dict[str, Any]) -> Any:
        return payload.get("output")
