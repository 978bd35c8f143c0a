"""Main application entry point.

Runs the paper chat API with uvicorn.
Environment variables are loaded from .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Application entry point.

    HOST and PORT select the bind address; RELOAD=1 restarts the server on
    code changes.
    """
    import uvicorn

    from paperchat.agent.config import get_settings

    config = get_settings().provider_config()
    if not config.credential:
        logger.warning(f"No API key configured for {config.service_kind.value}")

    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Starting Paper Chat on http://localhost:{port}")
    logger.info(f"Provider: {config.service_kind.value} ({config.model}) at {config.endpoint}")

    uvicorn.run(
        "paperchat.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        reload=os.getenv("RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
