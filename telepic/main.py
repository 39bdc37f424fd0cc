"""Startup script for the telepic game server."""

import logging

import uvicorn

from .config import Config

logger = logging.getLogger(__name__)


def main():
    logger.info("Starting telepic on %s:%d, websocket endpoint /ws", Config.HOST, Config.PORT)
    # uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which saves every open room
    uvicorn.run(
        "telepic.app:app",
        host=Config.HOST,
        port=Config.PORT,
        log_level=Config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
