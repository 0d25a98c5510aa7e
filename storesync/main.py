"""
StoreSync service entry point

Initializes the database, starts the sync scheduler and runs until
interrupted.
"""
from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import signal

from sqlalchemy.engine import Engine

from storesync import __version__
from storesync.config import get_settings
from storesync.models.base import init_db
from storesync.scheduler import start_scheduler, stop_scheduler
from storesync.utils.logger import log

settings = get_settings()


@asynccontextmanager
async def lifespan(bind: Optional[Engine] = None):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        init_db(bind)
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    # Start the scheduler for automated store syncs
    try:
        start_scheduler()
        log.info("Scheduler started successfully")
    except Exception as e:
        log.error(f"Scheduler startup error: {str(e)}")

    try:
        yield
    finally:
        # Shutdown
        try:
            stop_scheduler()
        except Exception as e:
            log.warning(f"Scheduler shutdown error: {str(e)}")
        log.info(f"Shutting down {settings.app_name}")


async def serve(stop: Optional[asyncio.Event] = None, bind: Optional[Engine] = None):
    """Run until `stop` is set, or until SIGINT/SIGTERM when no event is given"""
    if stop is None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows event loops; Ctrl+C still raises KeyboardInterrupt
                log.debug(f"Signal handler for {sig.name} not supported on this platform")

    async with lifespan(bind):
        await stop.wait()


def main():
    asyncio.run(serve())


if __name__ == "__main__":
    main()
