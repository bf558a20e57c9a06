"""Asynchronous transcription and diarization providers."""

from transcription_relay.providers.interface import SubmitParams, TranscriptionProvider
from transcription_relay.providers.pyannote import PyannoteProvider
from transcription_relay.providers.registry import build_providers, get_provider
from transcription_relay.providers.runpod import RunPodProvider

__all__ = [
    "TranscriptionProvider",
    "SubmitParams",
    "RunPodProvider",
    "PyannoteProvider",
    "build_providers",
    "get_provider",
]
