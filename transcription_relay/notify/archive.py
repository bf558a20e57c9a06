"""Archival handoff client.

Posts a completed job's primary result location to a downstream archival
integration exactly once (no retry). The integration answers with
``{"success": true, "<name>_url": ...}``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from transcription_relay.jobs.models import OwnerScope
from transcription_relay.utils.errors import ArchiveError

logger = logging.getLogger(__name__)


@dataclass
class ArchiveResult:
    """Structured success response from the archival endpoint."""

    urls: dict[str, str] = field(default_factory=dict)


class ArchiveClient:
    """Client for the archival handoff endpoint.

    Args:
        client: Shared httpx client.
        endpoint: Archival endpoint URL.
        token: Optional bearer token.
    """

    def __init__(
        self, client: httpx.AsyncClient, endpoint: str, token: str = ""
    ) -> None:
        if not endpoint:
            raise ValueError("endpoint is required")
        self._client = client
        self.endpoint = endpoint
        self._token = token

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def handoff(
        self,
        job_id: str,
        result_path: str,
        file_name: str,
        owner_scope: OwnerScope | None,
    ) -> ArchiveResult:
        """Hand a completed result to the archival integration.

        Args:
            job_id: Job being archived (for error context).
            result_path: Result bucket key of the primary result.
            file_name: Original upload file name.
            owner_scope: Tenancy scope, forwarded as namespace/item_id.

        Returns:
            ArchiveResult with every ``*_url`` field of the response.

        Raises:
            ArchiveError: On transport failure, non-2xx, non-JSON, or
                ``success`` not true.
        """
        payload = {
            "job_id": job_id,
            "result_path": result_path,
            "file_name": file_name,
            "namespace": owner_scope.namespace if owner_scope else None,
            "item_id": owner_scope.item_id if owner_scope else None,
        }

        try:
            response = await self._client.post(
                self.endpoint, headers=self._headers(), json=payload
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ArchiveError(
                f"Archive handoff failed: HTTP {exc.response.status_code}",
                job_id=job_id,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise ArchiveError(
                f"Archive handoff failed: {exc}", job_id=job_id
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ArchiveError(
                "Archive handoff returned a non-JSON response", job_id=job_id
            ) from exc

        if not isinstance(body, dict) or body.get("success") is not True:
            detail = body.get("error") if isinstance(body, dict) else None
            raise ArchiveError(
                f"Archive handoff reported failure: {detail or 'success=false'}",
                job_id=job_id,
            )

        urls = {
            key: str(value)
            for key, value in body.items()
            if key.endswith("_url") and value
        }
        logger.info(
            "Archive handoff accepted (%d links)", len(urls), extra={"job_id": job_id}
        )
        return ArchiveResult(urls=urls)
