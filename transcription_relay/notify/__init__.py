"""Best-effort side channels: Slack notifications and archival handoff."""

from transcription_relay.notify.archive import ArchiveClient, ArchiveResult
from transcription_relay.notify.slack import SlackNotifier

__all__ = ["ArchiveClient", "ArchiveResult", "SlackNotifier"]
