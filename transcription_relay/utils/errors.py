"""Custom exception hierarchy for the transcription relay.

All exceptions inherit from RelayError, enabling targeted handling at the
HTTP boundary while preserving specific failure context.
"""


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(self, message: str, job_id: str | None = None) -> None:
        self.job_id = job_id
        super().__init__(message)

    def __str__(self) -> str:
        if self.job_id:
            return f"[job={self.job_id}] {super().__str__()}"
        return super().__str__()


class ConfigError(RelayError):
    """Raised when the relay configuration is missing or inconsistent."""


class UploadValidationError(RelayError):
    """Raised when an upload request is missing required input."""

    def __init__(
        self, message: str, job_id: str | None = None, field: str | None = None
    ) -> None:
        self.field = field
        super().__init__(message, job_id)


class StorageError(RelayError):
    """Raised when object storage operations fail."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.operation = operation
        super().__init__(message, job_id)


class ObjectNotFoundError(StorageError):
    """Raised when a requested object key does not exist."""

    def __init__(
        self, message: str, job_id: str | None = None, key: str | None = None
    ) -> None:
        self.key = key
        super().__init__(message, job_id, operation="get_object")


class ObjectExistsError(StorageError):
    """Raised when a conditional create finds the key already present."""

    def __init__(
        self, message: str, job_id: str | None = None, key: str | None = None
    ) -> None:
        self.key = key
        super().__init__(message, job_id, operation="put_object")


class JobNotFoundError(RelayError):
    """Raised when a callback references a job with no stored record."""


class ProviderError(RelayError):
    """Raised when a transcription provider rejects or fails a dispatch."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message, job_id)


class UnknownProviderError(RelayError):
    """Raised when a callback names a provider the job did not fan out to."""

    def __init__(
        self, message: str, job_id: str | None = None, provider: str | None = None
    ) -> None:
        self.provider = provider
        super().__init__(message, job_id)


class ArchiveError(RelayError):
    """Raised when the archival handoff fails or reports failure."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, job_id)
