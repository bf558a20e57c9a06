"""FastAPI application: upload, download, and provider webhook routes."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.datastructures import UploadFile

from transcription_relay.aggregator import CompletionAggregator
from transcription_relay.context import RelayContext
from transcription_relay.dispatch import DispatchOrchestrator
from transcription_relay.jobs.models import (
    DEFAULT_AUDIO_CONTENT_TYPE,
    JOB_RECORD_PREFIX,
    UploadRequest,
)
from transcription_relay.storage.blob_store import JSON_CONTENT_TYPE
from transcription_relay.utils.errors import (
    JobNotFoundError,
    ObjectNotFoundError,
    UnknownProviderError,
    UploadValidationError,
)

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=3600"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _form_text(form: Any, name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


async def _parse_upload(request: Request) -> UploadRequest:
    """Read the multipart upload into an UploadRequest.

    Raises:
        UploadValidationError: If the audio part is missing or a field is malformed.
    """
    form = await request.form()
    audio = form.get("audio")
    if not isinstance(audio, UploadFile):
        raise UploadValidationError("No audio file", field="audio")

    speakers_raw = _form_text(form, "speakers")
    speaker_estimate = None
    if speakers_raw:
        try:
            speaker_estimate = int(speakers_raw)
        except ValueError as exc:
            raise UploadValidationError(
                "speakers must be a positive integer", field="speakers"
            ) from exc

    return UploadRequest(
        audio=await audio.read(),
        file_name=audio.filename or "",
        content_type=audio.content_type or "",
        namespace=_form_text(form, "namespace"),
        item_id=_form_text(form, "item_id"),
        language=_form_text(form, "language"),
        speaker_estimate=speaker_estimate,
    )


def create_app(context: RelayContext) -> FastAPI:
    """Build the relay application around an already-wired context.

    The context's HTTP client is closed when the application shuts down.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await context.aclose()

    app = FastAPI(title="Transcription Relay", version="0.1.0", lifespan=lifespan)
    app.state.context = context
    orchestrator = DispatchOrchestrator(context)
    aggregator = CompletionAggregator(context)

    @app.middleware("http")
    async def add_cors_origin(request: Request, call_next):
        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    @app.options("/{path:path}")
    async def preflight(path: str) -> Response:
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/")
    async def upload(request: Request) -> JSONResponse:
        logger.info("Upload request received")
        try:
            upload_request = await _parse_upload(request)
            result = await orchestrator.dispatch(
                upload_request, str(request.base_url)
            )
        except UploadValidationError as exc:
            logger.warning("Upload rejected: %s", exc, extra={"error": str(exc)})
            return JSONResponse({"error": str(exc)}, status_code=400)
        except Exception as exc:
            logger.error(
                "Upload failed: %s",
                exc,
                extra={"job_id": getattr(exc, "job_id", None)},
                exc_info=True,
            )
            return JSONResponse({"error": str(exc)}, status_code=500)

        return JSONResponse(
            {
                "jobId": result.job_id,
                "providerTaskIds": result.provider_task_ids,
                "message": "Job started",
            }
        )

    @app.get("/download/{path:path}")
    async def download(path: str) -> Response:
        logger.info("Download request", extra={"key": path})
        try:
            stored = await context.blob_store.get_media(path)
        except ObjectNotFoundError:
            logger.error("File not found", extra={"key": path})
            return PlainTextResponse("File not found", status_code=404)
        except Exception:
            logger.error("Download failed", extra={"key": path}, exc_info=True)
            return PlainTextResponse("Error", status_code=500)

        return Response(
            content=stored.data,
            media_type=stored.content_type or DEFAULT_AUDIO_CONTENT_TYPE,
            headers={"Cache-Control": CACHE_CONTROL},
        )

    @app.get("/download-result/{path:path}")
    async def download_result(path: str) -> Response:
        logger.info("Result download request", extra={"key": path})
        if path.startswith(f"{JOB_RECORD_PREFIX}/"):
            return PlainTextResponse("File not found", status_code=404)
        try:
            stored = await context.blob_store.get_result(path)
        except ObjectNotFoundError:
            logger.error("Result not found", extra={"key": path})
            return PlainTextResponse("File not found", status_code=404)
        except Exception:
            logger.error("Result download failed", extra={"key": path}, exc_info=True)
            return PlainTextResponse("Error", status_code=500)

        return Response(
            content=stored.data,
            media_type=stored.content_type or JSON_CONTENT_TYPE,
            headers={"Cache-Control": CACHE_CONTROL},
        )

    @app.post("/webhook/{job_id}")
    async def webhook(
        job_id: str,
        request: Request,
        provider_tag: str | None = Query(None, alias="type"),
    ) -> PlainTextResponse:
        log_extra = {"job_id": job_id, "provider": provider_tag}
        logger.info("Webhook received", extra=log_extra)
        try:
            payload = await request.json()
            outcome = await aggregator.on_callback(
                job_id, provider_tag, payload, str(request.base_url)
            )
        except JobNotFoundError:
            logger.error("Webhook for unknown job", extra=log_extra)
            return PlainTextResponse("Job not found", status_code=404)
        except UnknownProviderError as exc:
            logger.error("Webhook for unexpected provider: %s", exc, extra=log_extra)
            return PlainTextResponse("Unknown provider", status_code=400)
        except Exception as exc:
            logger.error(
                "Webhook handling failed: %s", exc, extra=log_extra, exc_info=True
            )
            await context.notifier.error(job_id, str(exc))
            return PlainTextResponse("Error", status_code=500)

        if outcome.status == "failed":
            return PlainTextResponse("Job failed")
        return PlainTextResponse("OK")

    return app
