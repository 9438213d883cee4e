"""Simple server runner that keeps uvicorn alive."""
import logging
import signal
import sys

import uvicorn

from strukbot.core.config import settings

logger = logging.getLogger(__name__)


def handle_signal(sig, frame):
    logger.info(f"Received signal {sig}, shutting down gracefully...")
    sys.exit(0)


signal.signal(signal.SIGINT, handle_signal)
signal.signal(signal.SIGTERM, handle_signal)

if __name__ == "__main__":
    print("=" * 50)
    print("  Starting Struk Bot Backend")
    print("=" * 50)
    uvicorn.run(
        "strukbot.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
