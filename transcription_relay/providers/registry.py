"""Provider registry with configuration-driven selection.

Maps provider tags to provider classes. Use build_providers() to instantiate
the configured fan-out set, in order.
"""

from transcription_relay.config import RelayConfig
from transcription_relay.providers.interface import TranscriptionProvider
from transcription_relay.providers.pyannote import PyannoteProvider
from transcription_relay.providers.runpod import RunPodProvider
from transcription_relay.utils.errors import ConfigError

PROVIDERS: dict[str, type[TranscriptionProvider]] = {
    RunPodProvider.tag: RunPodProvider,
    PyannoteProvider.tag: PyannoteProvider,
}


def get_provider(tag: str, config: RelayConfig) -> TranscriptionProvider:
    """Create a provider instance by tag.

    Args:
        tag: Provider tag (e.g., "segments").
        config: Relay configuration supplying credentials and retry policy.

    Returns:
        An initialized TranscriptionProvider.

    Raises:
        ConfigError: If the tag is not registered.
    """
    if tag not in PROVIDERS:
        available = ", ".join(sorted(PROVIDERS))
        raise ConfigError(f"Unknown provider: '{tag}'. Available: {available}")

    retry = {
        "max_attempts": config.http_max_attempts,
        "base_delay": config.http_retry_base_delay,
    }
    if tag == RunPodProvider.tag:
        return RunPodProvider(
            endpoint=config.runpod_endpoint, api_key=config.runpod_api_key, **retry
        )
    return PyannoteProvider(
        api_key=config.pyannote_api_key, api_url=config.pyannote_api_url, **retry
    )


def build_providers(config: RelayConfig) -> dict[str, TranscriptionProvider]:
    """Instantiate every configured provider, keyed by tag in fan-out order."""
    return {tag: get_provider(tag, config) for tag in config.providers}
