"""Entry point for running the assistant bridge."""

import logging

import uvicorn

from .config import get_settings

logger = logging.getLogger(__name__)


def main():
    """Run the assistant bridge."""
    settings = get_settings()

    logger.info("Starting assistant bridge on %s:%s", settings.app_host, settings.app_port)

    uvicorn.run(
        "assistant_bridge.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
