"""Process-wide dependencies, constructed once and passed explicitly."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from transcription_relay.config import RelayConfig
from transcription_relay.notify.archive import ArchiveClient
from transcription_relay.notify.slack import SlackNotifier
from transcription_relay.providers.interface import TranscriptionProvider
from transcription_relay.providers.registry import build_providers
from transcription_relay.storage.blob_store import BlobStore
from transcription_relay.storage.job_store import JobRecordStore
from transcription_relay.storage.r2_client import R2Client


@dataclass
class RelayContext:
    """Everything a request handler needs, with no hidden globals."""

    config: RelayConfig
    http_client: httpx.AsyncClient
    blob_store: BlobStore
    job_store: JobRecordStore
    providers: dict[str, TranscriptionProvider]
    notifier: SlackNotifier
    archive: ArchiveClient | None = None

    async def aclose(self) -> None:
        """Close the shared HTTP client and release its connection pool."""
        await self.http_client.aclose()


def build_context(config: RelayConfig) -> RelayContext:
    """Wire storage, providers, and notification adapters from config."""
    http_client = httpx.AsyncClient(timeout=config.provider_timeout_seconds)

    def _bucket(name: str) -> R2Client:
        return R2Client(
            endpoint_url=config.r2_endpoint,
            bucket=name,
            access_key_id=config.r2_access_key_id,
            secret_access_key=config.r2_secret_access_key,
        )

    blob_store = BlobStore(
        media=_bucket(config.media_bucket), results=_bucket(config.result_bucket)
    )
    archive = None
    if config.archive_enabled:
        archive = ArchiveClient(
            http_client, config.archive_endpoint, config.archive_token
        )

    return RelayContext(
        config=config,
        http_client=http_client,
        blob_store=blob_store,
        job_store=JobRecordStore(blob_store),
        providers=build_providers(config),
        notifier=SlackNotifier(http_client, config.slack_webhook_url),
        archive=archive,
    )
