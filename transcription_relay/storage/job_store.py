"""Job Record persistence on top of the result bucket.

One JSON record per job at jobs/{job_id}.json, written once by the dispatch
orchestrator and read by every subsequent callback.
"""

from __future__ import annotations

import asyncio
import json
import logging

from transcription_relay.jobs.models import JobRecord, job_record_key
from transcription_relay.storage.blob_store import BlobStore
from transcription_relay.utils.errors import (
    JobNotFoundError,
    ObjectNotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)


class JobRecordStore:
    """Reads and writes JobRecords and answers completion queries."""

    def __init__(self, blob_store: BlobStore) -> None:
        self._blobs = blob_store

    async def save(self, record: JobRecord) -> None:
        await self._blobs.put_result(job_record_key(record.job_id), record.to_dict())
        logger.info(
            "Job record written for providers %s",
            ",".join(record.providers_expected),
            extra={"job_id": record.job_id},
        )

    async def load(self, job_id: str) -> JobRecord:
        """Fetch the record for ``job_id``.

        Raises:
            JobNotFoundError: If no record exists for the job.
            StorageError: If the record exists but cannot be read or parsed.
        """
        try:
            stored = await self._blobs.get_result(job_record_key(job_id))
        except ObjectNotFoundError as exc:
            raise JobNotFoundError("Job record not found", job_id=job_id) from exc

        try:
            return JobRecord.from_dict(json.loads(stored.data))
        except (ValueError, TypeError, AttributeError) as exc:
            raise StorageError(
                f"Corrupt job record: {exc}", job_id=job_id, operation="load"
            ) from exc

    async def completed_providers(self, record: JobRecord) -> set[str]:
        """Return the provider tags whose Partial Result object exists."""
        tags = list(record.providers_expected)
        exists = await asyncio.gather(
            *(self._blobs.result_exists(record.result_key(tag)) for tag in tags)
        )
        return {tag for tag, present in zip(tags, exists) if present}
