"""Slack incoming-webhook notifications for job outcomes.

Every send is best-effort: delivery failures are logged and swallowed so a
broken chat channel never fails the request that triggered it.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


def _header(text: str) -> dict[str, Any]:
    return {"type": "header", "text": {"type": "plain_text", "text": text}}


def _fields(*pairs: tuple[str, str]) -> dict[str, Any]:
    return {
        "type": "section",
        "fields": [
            {"type": "mrkdwn", "text": f"*{label}:*\n{value}"} for label, value in pairs
        ],
    }


def _text(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _link_lines(links: dict[str, str]) -> str:
    return "\n".join(f"• <{url}|{name}>" for name, url in links.items())


def completed_message(
    job_id: str, result_paths: dict[str, str], links: dict[str, str]
) -> dict[str, Any]:
    files = "\n".join(f"`{path}`" for path in result_paths.values())
    blocks = [
        _header("✅ Transcription complete"),
        _fields(("Job ID", f"`{job_id}`"), ("Files", files)),
    ]
    if links:
        blocks.append(_text(f"Download:\n{_link_lines(links)}"))
    return {"text": f"Transcription complete: {job_id}", "blocks": blocks}


def failed_message(job_id: str, provider: str, detail: str) -> dict[str, Any]:
    return {
        "text": f"Transcription failed: {job_id}",
        "blocks": [
            _header("❌ Transcription failed"),
            _fields(
                ("Job ID", f"`{job_id}`"),
                ("Provider", f"`{provider}`"),
                ("Error", detail or "unknown"),
            ),
        ],
    }


def error_message(job_id: str, detail: str) -> dict[str, Any]:
    return {
        "text": f"Webhook error: {job_id}",
        "blocks": [
            _header("⚠️ Webhook error"),
            _fields(("Job ID", f"`{job_id}`"), ("Error", detail or "unknown")),
        ],
    }


def archived_message(job_id: str, urls: dict[str, str]) -> dict[str, Any]:
    blocks = [_header("📦 Archived"), _fields(("Job ID", f"`{job_id}`"))]
    if urls:
        blocks.append(_text(_link_lines(urls)))
    return {"text": f"Archived: {job_id}", "blocks": blocks}


def archive_failed_message(job_id: str, detail: str) -> dict[str, Any]:
    return {
        "text": f"Archive failed: {job_id}",
        "blocks": [
            _header("❌ Archive failed"),
            _fields(("Job ID", f"`{job_id}`"), ("Error", detail or "unknown")),
        ],
    }


class SlackNotifier:
    """Posts job notifications to a Slack incoming webhook.

    Args:
        client: Shared httpx client.
        webhook_url: Incoming webhook URL; when empty, messages are only logged.
    """

    def __init__(self, client: httpx.AsyncClient, webhook_url: str = "") -> None:
        self._client = client
        self.webhook_url = webhook_url

    async def send(self, message: dict[str, Any], job_id: str = "") -> bool:
        """Post a message. Returns whether Slack accepted it."""
        if not self.webhook_url:
            logger.info(
                "Slack disabled, skipping notification: %s",
                message.get("text", ""),
                extra={"job_id": job_id or None},
            )
            return False

        try:
            response = await self._client.post(self.webhook_url, json=message)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Slack notification rejected: HTTP %d",
                exc.response.status_code,
                extra={"job_id": job_id or None, "status_code": exc.response.status_code},
            )
            return False
        except httpx.RequestError as exc:
            logger.error(
                "Slack notification failed: %s",
                exc,
                extra={"job_id": job_id or None},
            )
            return False
        return True

    async def completed(
        self, job_id: str, result_paths: dict[str, str], links: dict[str, str]
    ) -> bool:
        return await self.send(completed_message(job_id, result_paths, links), job_id)

    async def failed(self, job_id: str, provider: str, detail: str) -> bool:
        return await self.send(failed_message(job_id, provider, detail), job_id)

    async def error(self, job_id: str, detail: str) -> bool:
        return await self.send(error_message(job_id, detail), job_id)

    async def archived(self, job_id: str, urls: dict[str, str]) -> bool:
        return await self.send(archived_message(job_id, urls), job_id)

    async def archive_failed(self, job_id: str, detail: str) -> bool:
        return await self.send(archive_failed_message(job_id, detail), job_id)
