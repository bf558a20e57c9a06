"""Shared fixtures: in-memory R2 buckets, stub providers, wired contexts."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from transcription_relay.config import RelayConfig
from transcription_relay.context import RelayContext
from transcription_relay.notify.archive import ArchiveClient
from transcription_relay.notify.slack import SlackNotifier
from transcription_relay.providers.interface import SubmitParams, TranscriptionProvider
from transcription_relay.storage.blob_store import BlobStore
from transcription_relay.storage.job_store import JobRecordStore
from transcription_relay.storage.r2_client import StoredObject
from transcription_relay.utils.errors import ObjectExistsError, ObjectNotFoundError


class InMemoryR2Client:
    """Drop-in for R2Client backed by a dict, recording every write."""

    def __init__(self, bucket: str = "test-bucket") -> None:
        self.bucket = bucket
        self.objects: dict[str, StoredObject] = {}
        self.put_calls: list[str] = []

    def get_object(self, key: str) -> StoredObject:
        if key not in self.objects:
            raise ObjectNotFoundError(f"R2 object '{key}' not found", key=key)
        return self.objects[key]

    def head_object(self, key: str) -> bool:
        return key in self.objects

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "",
        if_none_match: bool = False,
    ) -> None:
        if if_none_match and key in self.objects:
            raise ObjectExistsError(f"R2 object '{key}' already exists", key=key)
        self.put_calls.append(key)
        self.objects[key] = StoredObject(data=data, content_type=content_type)


class StubProvider(TranscriptionProvider):
    """Provider that records submissions and returns canned task ids."""

    def __init__(
        self,
        tag: str,
        success_status: str = "COMPLETED",
        fail_with: Exception | None = None,
    ) -> None:
        self.tag = tag
        self.success_status = success_status
        self.fail_with = fail_with
        self.submissions: list[dict[str, Any]] = []

    async def submit(
        self,
        client: httpx.AsyncClient,
        audio_url: str,
        webhook_url: str,
        params: SubmitParams,
    ) -> str:
        self.submissions.append(
            {"audio_url": audio_url, "webhook_url": webhook_url, "params": params}
        )
        if self.fail_with is not None:
            raise self.fail_with
        return f"{self.tag}-task-{len(self.submissions)}"

    def is_success(self, payload: dict[str, Any]) -> bool:
        return payload.get("status") == self.success_status

    def extract_output(self, payload: dict[str, Any]) -> Any:
        return payload.get("output")


def make_config(**overrides: Any) -> RelayConfig:
    values: dict[str, Any] = {
        "r2_endpoint": "https://r2.example.com",
        "providers": ("segments",),
        "runpod_endpoint": "https://api.runpod.ai/v2/endpoint-1",
        "runpod_api_key": "runpod-key",
        "pyannote_api_key": "pyannote-key",
        "public_base_url": "https://relay.example.com",
        "http_retry_base_delay": 0.0,
    }
    values.update(overrides)
    return RelayConfig(**values)


def make_context(
    providers: dict[str, TranscriptionProvider] | None = None,
    notifier: Any = None,
    archive: Any = None,
    http_client: httpx.AsyncClient | None = None,
    **config_overrides: Any,
) -> RelayContext:
    if providers is None:
        providers = {"segments": StubProvider("segments")}
    config_overrides.setdefault("providers", tuple(providers))
    config = make_config(**config_overrides)
    blob_store = BlobStore(
        media=InMemoryR2Client("audio-uploads"),
        results=InMemoryR2Client("audio-transcription"),
    )
    return RelayContext(
        config=config,
        http_client=http_client or httpx.AsyncClient(),
        blob_store=blob_store,
        job_store=JobRecordStore(blob_store),
        providers=providers,
        notifier=notifier or AsyncMock(spec=SlackNotifier),
        archive=archive,
    )


@pytest.fixture
def media_bucket() -> InMemoryR2Client:
    return InMemoryR2Client("audio-uploads")


@pytest.fixture
def result_bucket() -> InMemoryR2Client:
    return InMemoryR2Client("audio-transcription")


@pytest.fixture
def blob_store(media_bucket, result_bucket) -> BlobStore:
    return BlobStore(media=media_bucket, results=result_bucket)


@pytest.fixture
def single_context() -> RelayContext:
    """Single-provider context with a mocked notifier and no archive."""
    return make_context()


@pytest.fixture
def dual_context() -> RelayContext:
    """Transcription + diarization context with distinct success sentinels."""
    return make_context(
        providers={
            "segments": StubProvider("segments", success_status="COMPLETED"),
            "diarization": StubProvider("diarization", success_status="succeeded"),
        }
    )


@pytest.fixture
def archive_client() -> AsyncMock:
    return AsyncMock(spec=ArchiveClient)
