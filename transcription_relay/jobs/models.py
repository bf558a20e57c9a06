"""Job data models and deterministic object-key layout.

A JobRecord is written once at dispatch time and never updated. Completion
is derived from which result objects exist, not stored in the record.

Key layout:
    media:   {prefix}{job_id}{extension}
    record:  jobs/{job_id}.json
    result:  {prefix}{provider_tag}_{job_id}.json
    marker:  {prefix}completed_{job_id}.json
where prefix is "{namespace}/{item_id}/" for scoped jobs and "" otherwise.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

JOB_RECORD_PREFIX = "jobs"
DEFAULT_AUDIO_EXTENSION = ".wav"
DEFAULT_AUDIO_CONTENT_TYPE = "audio/wav"


def new_job_id() -> str:
    """Allocate a random, collision-resistant job identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class OwnerScope:
    """Tenancy namespace that prefixes every stored object of a job."""

    namespace: str
    item_id: str

    def __post_init__(self) -> None:
        for name in ("namespace", "item_id"):
            value = getattr(self, name)
            if not value or "/" in value or value in (".", ".."):
                raise ValueError(f"Invalid owner scope {name}: '{value}'")

    @property
    def prefix(self) -> str:
        return f"{self.namespace}/{self.item_id}/"

    def to_dict(self) -> dict[str, str]:
        return {"namespace": self.namespace, "item_id": self.item_id}


def scope_prefix(owner_scope: OwnerScope | None) -> str:
    return owner_scope.prefix if owner_scope is not None else ""


def media_key(
    owner_scope: OwnerScope | None,
    job_id: str,
    extension: str = DEFAULT_AUDIO_EXTENSION,
) -> str:
    return f"{scope_prefix(owner_scope)}{job_id}{extension}"


def job_record_key(job_id: str) -> str:
    return f"{JOB_RECORD_PREFIX}/{job_id}.json"


def result_key(owner_scope: OwnerScope | None, provider_tag: str, job_id: str) -> str:
    return f"{scope_prefix(owner_scope)}{provider_tag}_{job_id}.json"


def completion_marker_key(owner_scope: OwnerScope | None, job_id: str) -> str:
    return f"{scope_prefix(owner_scope)}completed_{job_id}.json"


@dataclass(frozen=True)
class JobRecord:
    """Durable correlation record for one dispatched job.

    Attributes:
        job_id: Correlation key carried in every webhook URL.
        owner_scope: Tenancy scope, or None for single-tenant jobs.
        providers_expected: Provider tag -> external task id, in dispatch order.
        created_at: ISO 8601 UTC dispatch timestamp.
        audio_key: Media bucket key of the uploaded audio.
        file_name: Original upload file name, forwarded to the archive.
    """

    job_id: str
    providers_expected: dict[str, str]
    owner_scope: OwnerScope | None = None
    created_at: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat()
    )
    audio_key: str = ""
    file_name: str = ""

    def result_key(self, provider_tag: str) -> str:
        return result_key(self.owner_scope, provider_tag, self.job_id)

    @property
    def result_keys(self) -> dict[str, str]:
        """Result key per expected provider, in dispatch order."""
        return {tag: self.result_key(tag) for tag in self.providers_expected}

    @property
    def completion_marker_key(self) -> str:
        return completion_marker_key(self.owner_scope, self.job_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "owner_scope": (
                self.owner_scope.to_dict() if self.owner_scope is not None else None
            ),
            "providers_expected": dict(self.providers_expected),
            "created_at": self.created_at,
            "audio_key": self.audio_key,
            "file_name": self.file_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobRecord:
        """Deserialize and validate a stored record.

        Raises:
            ValueError: If required fields are missing or malformed.
        """
        job_id = data.get("job_id")
        if not job_id or not isinstance(job_id, str):
            raise ValueError("Missing or invalid 'job_id' in job record")

        providers = data.get("providers_expected")
        if not providers or not isinstance(providers, dict):
            raise ValueError("Missing or invalid 'providers_expected' in job record")

        scope_data = data.get("owner_scope")
        owner_scope = None
        if scope_data:
            owner_scope = OwnerScope(
                namespace=scope_data.get("namespace", ""),
                item_id=scope_data.get("item_id", ""),
            )

        return cls(
            job_id=job_id,
            providers_expected={str(k): str(v) for k, v in providers.items()},
            owner_scope=owner_scope,
            created_at=data.get("created_at", ""),
            audio_key=data.get("audio_key", ""),
            file_name=data.get("file_name", ""),
        )


@dataclass
class UploadRequest:
    """A validated-at-dispatch upload as received from the HTTP layer."""

    audio: bytes
    file_name: str = ""
    content_type: str = ""
    namespace: str = ""
    item_id: str = ""
    language: str = ""
    speaker_estimate: int | None = None


@dataclass
class DispatchResult:
    """Outcome of a successful fan-out."""

    job_id: str
    provider_task_ids: dict[str, str]
    audio_key: str = ""
