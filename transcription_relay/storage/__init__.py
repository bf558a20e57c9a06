"""Object storage adapters (R2) and the job record store."""

from transcription_relay.storage.blob_store import BlobStore
from transcription_relay.storage.job_store import JobRecordStore
from transcription_relay.storage.r2_client import R2Client, StoredObject

__all__ = ["BlobStore", "JobRecordStore", "R2Client", "StoredObject"]
