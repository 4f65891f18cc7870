"""Registry of the background workers started with the application."""

import asyncio
import logging
from typing import Dict, Iterable

from ..core.config import settings
from .base import BaseWorker
from .booking_expiry_worker import BookingExpiryWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """Start, stop and report on a fixed set of named workers."""

    def __init__(self, workers: Iterable[tuple[str, BaseWorker]]):
        self.workers: Dict[str, BaseWorker] = dict(workers)

    async def start_all(self) -> None:
        for worker in self.workers.values():
            await worker.start()

    async def stop_all(self) -> None:
        """Stop every worker; one failing to stop does not keep the others running."""
        results = await asyncio.gather(
            *(worker.stop() for worker in self.workers.values()), return_exceptions=True
        )
        for name, result in zip(self.workers, results):
            if isinstance(result, Exception):
                logger.error("Worker %s failed to stop", name, exc_info=result)

    def get_worker_status(self) -> Dict[str, bool]:
        return {name: worker.is_running for name, worker in self.workers.items()}


worker_manager = WorkerManager([
    ("booking_expiry", BookingExpiryWorker(interval_seconds=settings.booking_expiry_interval_seconds)),
])
