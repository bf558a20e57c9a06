"""Upload relay that fans audio out to transcription providers."""
