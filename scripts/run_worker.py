"""
Script to import every pending job once and exit
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import engine
from core.logging import setup_logging
from ingestion.events import BroadcasterRegistry
from ingestion.scheduler import ImportScheduler

logger = logging.getLogger(__name__)


async def run_worker():
    """Drain the pending queue in FIFO order"""
    # No live observers in a standalone process; events are dropped
    registry = BroadcasterRegistry(throttle_ms=settings.PROGRESS_THROTTLE_MS)
    worker = ImportScheduler(registry)

    try:
        processed = await worker.run_pending_jobs()
        logger.info(f"Processed {processed} job(s)")
    except Exception as e:
        logger.error(f"Import worker error: {str(e)}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(run_worker())
