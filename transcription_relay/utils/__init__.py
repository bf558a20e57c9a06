"""Error types and outbound retry helpers."""
