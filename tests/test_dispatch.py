"""Tests for the dispatch orchestrator."""

import json
from unittest.mock import patch

import httpx
import pytest

from conftest import StubProvider, make_context
from transcription_relay.dispatch import (
    DispatchOrchestrator,
    audio_extension,
    download_url,
    webhook_url,
)
from transcription_relay.jobs.models import UploadRequest
from transcription_relay.providers.runpod import RunPodProvider
from transcription_relay.utils.errors import ProviderError, UploadValidationError

BASE = "https://relay.example.com"


def _upload(**overrides) -> UploadRequest:
    values = {"audio": b"RIFF....WAVEfmt ", "file_name": "meeting.wav", "content_type": "audio/wav"}
    values.update(overrides)
    return UploadRequest(**values)


def _buckets(ctx):
    return ctx.blob_store.media, ctx.blob_store.results


class TestUrlHelpers:
    def test_audio_extension(self) -> None:
        assert audio_extension("talk.MP3") == ".mp3"
        assert audio_extension("") == ".wav"
        assert audio_extension("no-extension") == ".wav"
        assert audio_extension("weird.ext with space") == ".wav"

    def test_download_url_quotes_but_keeps_slashes(self) -> None:
        assert download_url(BASE, "acme/item 1/job.wav") == (
            f"{BASE}/download/acme/item%201/job.wav"
        )

    def test_webhook_url_discriminator(self) -> None:
        assert webhook_url(BASE, "job-1") == f"{BASE}/webhook/job-1"
        assert webhook_url(BASE, "job-1", "diarization") == (
            f"{BASE}/webhook/job-1?type=diarization"
        )


class TestDispatchSingleProvider:
    async def test_returns_job_and_writes_record(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        result = await orchestrator.dispatch(_upload(), "http://internal/")

        media, results = _buckets(single_context)
        assert result.provider_task_ids == {"segments": "segments-task-1"}
        assert media.objects[f"{result.job_id}.wav"].data == b"RIFF....WAVEfmt "
        record = json.loads(results.objects[f"jobs/{result.job_id}.json"].data)
        assert record["providers_expected"] == result.provider_task_ids
        assert record["owner_scope"] is None
        assert record["file_name"] == "meeting.wav"

    async def test_single_provider_webhook_has_no_discriminator(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        result = await orchestrator.dispatch(_upload(), "http://internal/")

        submission = single_context.providers["segments"].submissions[0]
        assert submission["webhook_url"] == f"{BASE}/webhook/{result.job_id}"
        assert submission["audio_url"] == f"{BASE}/download/{result.job_id}.wav"
        assert submission["params"].language == "ja"

    async def test_request_base_url_used_without_public_base(self) -> None:
        ctx = make_context(public_base_url="")
        orchestrator = DispatchOrchestrator(ctx)

        result = await orchestrator.dispatch(_upload(), "http://testserver/")

        submission = ctx.providers["segments"].submissions[0]
        assert submission["audio_url"] == f"http://testserver/download/{result.job_id}.wav"

    async def test_default_content_type(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        result = await orchestrator.dispatch(
            _upload(content_type="", file_name=""), BASE
        )

        media, _ = _buckets(single_context)
        assert media.objects[f"{result.job_id}.wav"].content_type == "audio/wav"

    async def test_job_ids_are_unique(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        first = await orchestrator.dispatch(_upload(), BASE)
        second = await orchestrator.dispatch(_upload(), BASE)

        assert first.job_id != second.job_id


class TestDispatchMultiProvider:
    async def test_fans_out_with_discriminators(self, dual_context) -> None:
        orchestrator = DispatchOrchestrator(dual_context)

        result = await orchestrator.dispatch(
            _upload(namespace="acme", item_id="item-7", speaker_estimate=3), BASE
        )

        assert result.provider_task_ids == {
            "segments": "segments-task-1",
            "diarization": "diarization-task-1",
        }
        for tag, provider in dual_context.providers.items():
            submission = provider.submissions[0]
            assert submission["webhook_url"] == (
                f"{BASE}/webhook/{result.job_id}?type={tag}"
            )
            assert submission["audio_url"] == (
                f"{BASE}/download/acme/item-7/{result.job_id}.wav"
            )
            assert submission["params"].speaker_estimate == 3

        _, results = _buckets(dual_context)
        record = json.loads(results.objects[f"jobs/{result.job_id}.json"].data)
        assert record["providers_expected"] == result.provider_task_ids
        assert record["owner_scope"] == {"namespace": "acme", "item_id": "item-7"}

    async def test_second_provider_failure_fails_whole_dispatch(self) -> None:
        failing = StubProvider(
            "diarization", fail_with=ProviderError("pyannoteAI error: 500", provider="diarization")
        )
        ctx = make_context(
            providers={"segments": StubProvider("segments"), "diarization": failing}
        )
        orchestrator = DispatchOrchestrator(ctx)

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.dispatch(_upload(), BASE)

        assert exc_info.value.job_id is not None
        assert len(ctx.providers["segments"].submissions) == 1
        _, results = _buckets(ctx)
        assert not any(key.startswith("jobs/") for key in results.objects)


class TestDispatchValidation:
    async def test_missing_audio_is_side_effect_free(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        with pytest.raises(UploadValidationError, match="No audio file"):
            await orchestrator.dispatch(_upload(audio=b""), BASE)

        media, results = _buckets(single_context)
        assert media.objects == {}
        assert results.objects == {}
        assert single_context.providers["segments"].submissions == []

    async def test_owner_scope_required_in_multi_tenant_mode(self) -> None:
        ctx = make_context(require_owner_scope=True)
        orchestrator = DispatchOrchestrator(ctx)

        with pytest.raises(UploadValidationError, match="required"):
            await orchestrator.dispatch(_upload(), BASE)

        media, results = _buckets(ctx)
        assert media.objects == {}
        assert results.objects == {}
        assert ctx.providers["segments"].submissions == []

    async def test_partial_owner_scope_rejected(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        with pytest.raises(UploadValidationError) as exc_info:
            await orchestrator.dispatch(_upload(namespace="acme"), BASE)

        assert exc_info.value.field == "item_id"

    async def test_unsafe_owner_scope_rejected(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        with pytest.raises(UploadValidationError):
            await orchestrator.dispatch(_upload(namespace="a/b", item_id="x"), BASE)

    async def test_non_positive_speaker_estimate_rejected(self, single_context) -> None:
        orchestrator = DispatchOrchestrator(single_context)

        with pytest.raises(UploadValidationError, match="speakers"):
            await orchestrator.dispatch(_upload(speaker_estimate=0), BASE)


class TestDispatchWithRunPod:
    """Full fan-out through the real RunPod integration and retry policy."""

    async def test_runpod_5xx_exhaustion_fails_without_record(self, httpx_mock) -> None:
        for _ in range(3):
            httpx_mock.add_response(
                url="https://api.runpod.ai/v2/endpoint-1/run", status_code=503
            )

        async def fake_sleep(delay: float) -> None:
            return None

        async with httpx.AsyncClient() as client:
            ctx = make_context(
                providers={
                    "segments": RunPodProvider(
                        endpoint="https://api.runpod.ai/v2/endpoint-1",
                        api_key="runpod-key",
                    )
                },
                http_client=client,
            )
            orchestrator = DispatchOrchestrator(ctx)
            with patch(
                "transcription_relay.utils.retry.asyncio.sleep", side_effect=fake_sleep
            ):
                with pytest.raises(ProviderError, match="503"):
                    await orchestrator.dispatch(_upload(), BASE)

        _, results = _buckets(ctx)
        assert results.objects == {}
        assert len(httpx_mock.get_requests()) == 3
