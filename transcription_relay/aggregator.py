"""Completion aggregator: provider webhook -> partial result -> completion check.

Completion is derived on every callback by checking which result objects
exist for the job's expected providers; nothing about progress is stored in
the job record. Duplicate or reordered callbacks therefore converge on the
same stored data. A re-delivered final callback re-runs the completion side
effects (notification and archive handoff) unless DEDUPE_COMPLETION is set,
in which case a conditionally-created marker object gates them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from transcription_relay.context import RelayContext
from transcription_relay.dispatch import result_download_url
from transcription_relay.jobs.models import JobRecord
from transcription_relay.utils.errors import (
    ArchiveError,
    ObjectExistsError,
    UnknownProviderError,
)

logger = logging.getLogger(__name__)


@dataclass
class CallbackOutcome:
    """What a single callback did to its job."""

    status: Literal["failed", "waiting", "complete", "duplicate"]
    job_id: str
    provider: str
    completed_providers: list[str] = field(default_factory=list)


class CompletionAggregator:
    """Handles provider callbacks for dispatched jobs."""

    def __init__(self, context: RelayContext) -> None:
        self._ctx = context

    def _resolve_provider(self, record: JobRecord, provider_tag: str | None) -> str:
        if provider_tag:
            tag = provider_tag
        elif len(record.providers_expected) == 1:
            tag = next(iter(record.providers_expected))
        else:
            raise UnknownProviderError(
                "Callback is missing the provider type", job_id=record.job_id
            )
        if tag not in record.providers_expected or tag not in self._ctx.providers:
            raise UnknownProviderError(
                f"Provider '{tag}' is not expected for this job",
                job_id=record.job_id,
                provider=tag,
            )
        return tag

    async def on_callback(
        self,
        job_id: str,
        provider_tag: str | None,
        payload: Any,
        request_base_url: str = "",
    ) -> CallbackOutcome:
        """Apply one provider callback.

        Args:
            job_id: Job id from the webhook path.
            provider_tag: Discriminator from the webhook query, if any.
            payload: Decoded webhook JSON body.
            request_base_url: Base URL used for download links when no
                public base URL is configured.

        Returns:
            CallbackOutcome describing the resulting job state.

        Raises:
            JobNotFoundError: If no record exists (nothing is written).
            UnknownProviderError: If the provider is not part of the job.
            StorageError: If the partial result cannot be stored.
        """
        record = await self._ctx.job_store.load(job_id)
        tag = self._resolve_provider(record, provider_tag)
        provider = self._ctx.providers[tag]
        log_extra = {"job_id": job_id, "provider": tag}

        if not isinstance(payload, dict):
            payload = {"status": "INVALID", "error": "Malformed callback payload"}

        if not provider.is_success(payload):
            detail = provider.error_detail(payload)
            logger.warning("Provider reported failure: %s", detail, extra=log_extra)
            await self._ctx.notifier.failed(job_id, tag, detail)
            return CallbackOutcome(status="failed", job_id=job_id, provider=tag)

        await self._ctx.blob_store.put_result(
            record.result_key(tag), provider.extract_output(payload)
        )

        completed = await self._ctx.job_store.completed_providers(record)
        ordered = [t for t in record.providers_expected if t in completed]
        if len(completed) < len(record.providers_expected):
            logger.info(
                "Waiting for providers: %s",
                ",".join(t for t in record.providers_expected if t not in completed),
                extra=log_extra,
            )
            return CallbackOutcome(
                status="waiting",
                job_id=job_id,
                provider=tag,
                completed_providers=ordered,
            )

        if self._ctx.config.dedupe_completion and not await self._claim_completion(
            record
        ):
            logger.info("Completion already handled, skipping", extra=log_extra)
            return CallbackOutcome(
                status="duplicate",
                job_id=job_id,
                provider=tag,
                completed_providers=ordered,
            )

        logger.info("Job complete", extra=log_extra)
        base_url = (self._ctx.config.public_base_url or request_base_url).rstrip("/")
        await self._run_completion_effects(record, base_url)
        return CallbackOutcome(
            status="complete",
            job_id=job_id,
            provider=tag,
            completed_providers=ordered,
        )

    async def _claim_completion(self, record: JobRecord) -> bool:
        """Create the completion marker; False if another callback already did."""
        marker = {
            "job_id": record.job_id,
            "completed_at": datetime.now(UTC).isoformat(),
        }
        try:
            await self._ctx.blob_store.put_result_if_absent(
                record.completion_marker_key, marker
            )
        except ObjectExistsError:
            return False
        return True

    async def _run_completion_effects(self, record: JobRecord, base_url: str) -> None:
        """Notify and hand off. Never raises."""
        result_paths = record.result_keys
        links = (
            {tag: result_download_url(base_url, key) for tag, key in result_paths.items()}
            if base_url
            else {}
        )
        try:
            await self._ctx.notifier.completed(record.job_id, result_paths, links)
        except Exception:
            logger.error(
                "Completion notification failed",
                extra={"job_id": record.job_id},
                exc_info=True,
            )

        if self._ctx.archive is None:
            return

        primary_key = next(iter(result_paths.values()))
        try:
            archived = await self._ctx.archive.handoff(
                record.job_id, primary_key, record.file_name, record.owner_scope
            )
        except ArchiveError as exc:
            logger.error(
                "Archive handoff failed: %s", exc, extra={"job_id": record.job_id}
            )
            await self._notify_archive_failed(record.job_id, str(exc))
            return
        except Exception as exc:
            logger.error(
                "Archive handoff raised unexpectedly",
                extra={"job_id": record.job_id},
                exc_info=True,
            )
            await self._notify_archive_failed(record.job_id, str(exc))
            return

        try:
            await self._ctx.notifier.archived(record.job_id, archived.urls)
        except Exception:
            logger.error(
                "Archived notification failed",
                extra={"job_id": record.job_id},
                exc_info=True,
            )

    async def _notify_archive_failed(self, job_id: str, detail: str) -> None:
        try:
            await self._ctx.notifier.archive_failed(job_id, detail)
        except Exception:
            logger.error(
                "Archive-failed notification failed",
                extra={"job_id": job_id},
                exc_info=True,
            )
