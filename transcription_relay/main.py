"""HTTP entry point for the transcription relay.

Configures structured logging, loads configuration from the environment,
wires the shared context, and serves the FastAPI app with uvicorn.
"""

import logging

import uvicorn

from transcription_relay.api.app import create_app
from transcription_relay.config import load_config
from transcription_relay.context import build_context
from transcription_relay.observability.logger import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the relay HTTP server."""
    config = load_config()
    setup_logging(config.log_level)
    logger.info(
        "Transcription relay starting with providers %s",
        ",".join(config.providers),
    )

    app = create_app(build_context(config))
    uvicorn.run(app, host="0.0.0.0", port=config.port, log_config=None)


if __name__ == "__main__":
    main()
