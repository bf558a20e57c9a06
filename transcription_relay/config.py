"""Relay configuration loaded once from environment variables.

The resulting RelayConfig is passed explicitly to build_context(); no other
module reads the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from transcription_relay.utils.errors import ConfigError

SUPPORTED_PROVIDERS: tuple[str, ...] = ("segments", "diarization")

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


def _parse_providers(value: str | None) -> tuple[str, ...]:
    tags = tuple(
        tag.strip() for tag in (value or "segments").split(",") if tag.strip()
    )
    if not tags:
        raise ConfigError("PROVIDERS must name at least one provider")
    unknown = [tag for tag in tags if tag not in SUPPORTED_PROVIDERS]
    if unknown:
        available = ", ".join(SUPPORTED_PROVIDERS)
        raise ConfigError(
            f"Unknown provider(s) in PROVIDERS: {', '.join(unknown)}. "
            f"Available: {available}"
        )
    if len(set(tags)) != len(tags):
        raise ConfigError("PROVIDERS must not repeat a provider")
    return tags


@dataclass(frozen=True)
class RelayConfig:
    """Root configuration for the relay process."""

    r2_endpoint: str
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    media_bucket: str = "audio-uploads"
    result_bucket: str = "audio-transcription"
    public_base_url: str = ""
    providers: tuple[str, ...] = ("segments",)
    runpod_endpoint: str = ""
    runpod_api_key: str = ""
    pyannote_api_url: str = "https://api.pyannote.ai/v1"
    pyannote_api_key: str = ""
    default_language: str = "ja"
    require_owner_scope: bool = False
    slack_webhook_url: str = ""
    archive_endpoint: str = ""
    archive_token: str = ""
    http_max_attempts: int = 3
    http_retry_base_delay: float = 1.0
    provider_timeout_seconds: float = 30.0
    dedupe_completion: bool = False
    log_level: str = "INFO"
    port: int = 8080

    def __post_init__(self) -> None:
        if not self.r2_endpoint:
            raise ConfigError("R2_ENDPOINT is required")
        if self.http_max_attempts < 1:
            raise ConfigError("HTTP_MAX_ATTEMPTS must be at least 1")
        if "segments" in self.providers and not (
            self.runpod_endpoint and self.runpod_api_key
        ):
            raise ConfigError(
                "RUNPOD_ENDPOINT and RUNPOD_API_KEY are required "
                "for the 'segments' provider"
            )
        if "diarization" in self.providers and not self.pyannote_api_key:
            raise ConfigError(
                "PYANNOTE_API_KEY is required for the 'diarization' provider"
            )

    @property
    def multi_provider(self) -> bool:
        """Whether webhook URLs need a provider discriminator."""
        return len(self.providers) > 1

    @property
    def archive_enabled(self) -> bool:
        return bool(self.archive_endpoint)


def load_config(environ: Mapping[str, str] | None = None) -> RelayConfig:
    """Load configuration from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``).

    Returns:
        Validated RelayConfig.

    Raises:
        ConfigError: If a required variable is missing or a value is invalid.
    """
    env = os.environ if environ is None else environ

    try:
        http_max_attempts = int(env.get("HTTP_MAX_ATTEMPTS", "3"))
        http_retry_base_delay = float(env.get("HTTP_RETRY_BASE_DELAY", "1.0"))
        provider_timeout = float(env.get("PROVIDER_TIMEOUT_SECONDS", "30"))
        port = int(env.get("PORT", "8080"))
    except ValueError as exc:
        raise ConfigError(f"Invalid numeric setting: {exc}") from exc

    return RelayConfig(
        r2_endpoint=env.get("R2_ENDPOINT", ""),
        r2_access_key_id=env.get("R2_ACCESS_KEY_ID", ""),
        r2_secret_access_key=env.get("R2_SECRET_ACCESS_KEY", ""),
        media_bucket=env.get("R2_MEDIA_BUCKET", "audio-uploads"),
        result_bucket=env.get("R2_RESULT_BUCKET", "audio-transcription"),
        public_base_url=env.get("PUBLIC_BASE_URL", "").rstrip("/"),
        providers=_parse_providers(env.get("PROVIDERS")),
        runpod_endpoint=env.get("RUNPOD_ENDPOINT", "").rstrip("/"),
        runpod_api_key=env.get("RUNPOD_API_KEY", ""),
        pyannote_api_url=env.get(
            "PYANNOTE_API_URL", "https://api.pyannote.ai/v1"
        ).rstrip("/"),
        pyannote_api_key=env.get("PYANNOTE_API_KEY", ""),
        default_language=env.get("DEFAULT_LANGUAGE", "ja"),
        require_owner_scope=_parse_bool(env.get("REQUIRE_OWNER_SCOPE")),
        slack_webhook_url=env.get("SLACK_WEBHOOK_URL", ""),
        archive_endpoint=env.get("ARCHIVE_ENDPOINT", ""),
        archive_token=env.get("ARCHIVE_TOKEN", ""),
        http_max_attempts=http_max_attempts,
        http_retry_base_delay=http_retry_base_delay,
        provider_timeout_seconds=provider_timeout,
        dedupe_completion=_parse_bool(env.get("DEDUPE_COMPLETION")),
        log_level=env.get("LOG_LEVEL", "INFO"),
        port=port,
    )
