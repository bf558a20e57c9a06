"""Dispatch orchestrator: upload -> media object -> provider fan-out -> job record.

Side effects are ordered so that input validation happens before anything is
written or sent. The sequence is not transactional: a provider failure after
an earlier provider accepted its job leaves that job running with no record,
and a crash between fan-out and the record write orphans every provider job.
Both cases are logged and left for manual cleanup.
"""

from __future__ import annotations

import logging
import os
import re
from urllib.parse import quote

from transcription_relay.context import RelayContext
from transcription_relay.jobs.models import (
    DEFAULT_AUDIO_CONTENT_TYPE,
    DEFAULT_AUDIO_EXTENSION,
    DispatchResult,
    JobRecord,
    OwnerScope,
    UploadRequest,
    media_key,
    new_job_id,
)
from transcription_relay.providers.interface import SubmitParams
from transcription_relay.utils.errors import ProviderError, UploadValidationError

logger = logging.getLogger(__name__)

_EXTENSION_PATTERN = re.compile(r"^\.[a-z0-9]{1,8}$")


def audio_extension(file_name: str) -> str:
    """Extension for the stored media key, falling back to ``.wav``."""
    extension = os.path.splitext(file_name or "")[1].lower()
    if _EXTENSION_PATTERN.match(extension):
        return extension
    return DEFAULT_AUDIO_EXTENSION


def download_url(base_url: str, key: str) -> str:
    return f"{base_url}/download/{quote(key, safe='/')}"


def result_download_url(base_url: str, key: str) -> str:
    return f"{base_url}/download-result/{quote(key, safe='/')}"


def webhook_url(base_url: str, job_id: str, provider_tag: str | None = None) -> str:
    url = f"{base_url}/webhook/{job_id}"
    if provider_tag:
        url += f"?type={provider_tag}"
    return url


class DispatchOrchestrator:
    """Validates uploads and fans them out to the configured providers."""

    def __init__(self, context: RelayContext) -> None:
        self._ctx = context

    def resolve_base_url(self, request_base_url: str) -> str:
        return (self._ctx.config.public_base_url or request_base_url).rstrip("/")

    def _owner_scope(self, upload: UploadRequest) -> OwnerScope | None:
        namespace = upload.namespace.strip()
        item_id = upload.item_id.strip()

        if not namespace and not item_id:
            if self._ctx.config.require_owner_scope:
                raise UploadValidationError(
                    "namespace and item_id are required", field="namespace"
                )
            return None
        if not namespace or not item_id:
            missing = "namespace" if not namespace else "item_id"
            raise UploadValidationError(f"{missing} is required", field=missing)

        try:
            return OwnerScope(namespace=namespace, item_id=item_id)
        except ValueError as exc:
            raise UploadValidationError(str(exc), field="namespace") from exc

    def _params(self, upload: UploadRequest) -> SubmitParams:
        if upload.speaker_estimate is not None and upload.speaker_estimate < 1:
            raise UploadValidationError(
                "speakers must be a positive integer", field="speakers"
            )
        return SubmitParams(
            language=upload.language or self._ctx.config.default_language,
            speaker_estimate=upload.speaker_estimate,
        )

    async def dispatch(
        self, upload: UploadRequest, request_base_url: str
    ) -> DispatchResult:
        """Store the upload, start every provider job, and write the record.

        Args:
            upload: Parsed upload request.
            request_base_url: Base URL the request arrived on, used when no
                public base URL is configured.

        Returns:
            DispatchResult with the job id and one task id per provider.

        Raises:
            UploadValidationError: If the audio or a required field is missing.
            ProviderError: If any provider rejects its job.
            StorageError: If the audio or the job record cannot be stored.
        """
        if not upload.audio:
            raise UploadValidationError("No audio file", field="audio")
        owner_scope = self._owner_scope(upload)
        params = self._params(upload)

        job_id = new_job_id()
        log_extra = {"job_id": job_id}
        logger.info("Upload started", extra=log_extra)

        audio_key = media_key(owner_scope, job_id, audio_extension(upload.file_name))
        await self._ctx.blob_store.put_media(
            audio_key,
            upload.audio,
            upload.content_type or DEFAULT_AUDIO_CONTENT_TYPE,
        )

        base_url = self.resolve_base_url(request_base_url)
        audio_url = download_url(base_url, audio_key)
        multi_provider = self._ctx.config.multi_provider

        task_ids: dict[str, str] = {}
        for tag, provider in self._ctx.providers.items():
            callback = webhook_url(base_url, job_id, tag if multi_provider else None)
            try:
                task_ids[tag] = await provider.submit(
                    self._ctx.http_client, audio_url, callback, params
                )
            except ProviderError as exc:
                exc.job_id = job_id
                if task_ids:
                    logger.error(
                        "Provider %s failed after %s accepted; "
                        "already-started tasks are left running: %s",
                        tag,
                        ",".join(task_ids),
                        task_ids,
                        extra={**log_extra, "provider": tag},
                    )
                raise
            logger.info(
                "Provider %s accepted task %s",
                tag,
                task_ids[tag],
                extra={**log_extra, "provider": tag},
            )

        record = JobRecord(
            job_id=job_id,
            providers_expected=task_ids,
            owner_scope=owner_scope,
            audio_key=audio_key,
            file_name=upload.file_name or os.path.basename(audio_key),
        )
        await self._ctx.job_store.save(record)

        logger.info("Job started", extra=log_extra)
        return DispatchResult(
            job_id=job_id, provider_task_ids=task_ids, audio_key=audio_key
        )
