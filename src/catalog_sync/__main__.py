import asyncio
import logging
import sys

from .config import get_settings
from .sync.driver import SyncDriver
from .sync.scheduler import run_forever
from .telemetry import setup_logging

logger = logging.getLogger("catalog_sync")


def main() -> int:
    """Run one sync; exit status 0 when it finishes, 1 when it aborts."""
    settings = get_settings()
    setup_logging(settings)
    logger.info({"event": "boot", "service": settings.APP_NAME, "version": settings.VERSION})
    report = asyncio.run(SyncDriver(settings).run())
    return 0 if report.succeeded else 1


def serve() -> int:
    """Sync now and then every ``sync_interval_minutes`` until interrupted."""
    settings = get_settings()
    setup_logging(settings)
    logger.info({"event": "boot", "service": settings.APP_NAME, "version": settings.VERSION, "mode": "scheduled"})
    try:
        asyncio.run(run_forever(settings))
    except KeyboardInterrupt:
        logger.info({"event": "shutdown", "service": settings.APP_NAME})
    return 0


if __name__ == "__main__":
    sys.exit(main())
