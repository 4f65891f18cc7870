"""Periodic background job runner."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Run :meth:`process` on a fixed cadence inside the API's event loop.

    A failed iteration is logged and the next one runs on schedule. ``stop``
    lets the current iteration finish, cancelling it only after
    ``stop_timeout`` seconds.
    """

    stop_timeout: float = 10.0

    def __init__(self, name: str, interval_seconds: int = 60):
        self.name = name
        self.interval_seconds = interval_seconds
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    async def process(self) -> None:
        """Run one iteration of the job."""

    async def start(self) -> None:
        if self.is_running:
            logger.warning("%s worker already running", self.name)
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name=f"worker:{self.name}")
        logger.info("%s worker started", self.name, extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if not self.is_running:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning("%s worker did not finish in %ss, cancelled", self.name, self.stop_timeout)
        self._task = None
        logger.info("%s worker stopped", self.name)

    async def _tick(self) -> None:
        try:
            await self.process()
        except Exception:
            logger.exception("%s worker iteration failed", self.name, extra={"worker": self.name})

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            await self._tick()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
