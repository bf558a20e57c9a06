"""Async facade over the media and result buckets.

boto3 is blocking, so every call is pushed to a worker thread with
asyncio.to_thread(); request handlers only ever await.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from transcription_relay.storage.r2_client import R2Client, StoredObject

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


def encode_json(payload: Any) -> bytes:
    """Pretty-print a payload the way result objects are stored."""
    return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


class BlobStore:
    """Uniform put/get/head over the two logical buckets.

    Args:
        media: Client for the bucket holding uploaded audio.
        results: Client for the bucket holding job records and results.
    """

    def __init__(self, media: R2Client, results: R2Client) -> None:
        self.media = media
        self.results = results

    async def put_media(self, key: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(self.media.put_object, key, data, content_type)
        logger.info(
            "Stored media object (%d bytes)", len(data), extra={"key": key}
        )

    async def get_media(self, key: str) -> StoredObject:
        return await asyncio.to_thread(self.media.get_object, key)

    async def put_result(self, key: str, payload: Any) -> None:
        await asyncio.to_thread(
            self.results.put_object, key, encode_json(payload), JSON_CONTENT_TYPE
        )
        logger.info("Stored result object", extra={"key": key})

    async def put_result_if_absent(self, key: str, payload: Any) -> None:
        """Create a result-bucket object only if the key does not exist.

        Raises:
            ObjectExistsError: If the key is already present.
        """
        await asyncio.to_thread(
            self.results.put_object,
            key,
            encode_json(payload),
            JSON_CONTENT_TYPE,
            True,
        )

    async def get_result(self, key: str) -> StoredObject:
        return await asyncio.to_thread(self.results.get_object, key)

    async def result_exists(self, key: str) -> bool:
        return await asyncio.to_thread(self.results.head_object, key)
