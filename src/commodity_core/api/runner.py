"""Serve the read-only status API with uvicorn."""

import structlog
import uvicorn

from commodity_core.api.app import app, config
from commodity_core.logging.setup import setup_logging

logger = structlog.get_logger("api")


def main():
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    logger.info("api_starting", host=config.api.host, port=config.api.port)
    # log_config=None keeps uvicorn on the structlog handlers
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_config=None)


if __name__ == "__main__":
    main()
