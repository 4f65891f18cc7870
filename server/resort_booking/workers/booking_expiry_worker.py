"""Background worker that expires unconfirmed bookings."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..core.database import async_session_factory
from ..services.booking_status_service import BookingStatusService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class BookingExpiryWorker(BaseWorker):
    """
    Moves ``pending`` bookings older than the pending TTL to ``expired``.

    Expired bookings release their rooms and get a system audit entry.
    """

    def __init__(
        self,
        interval_seconds: Optional[int] = None,
        ttl_hours: Optional[int] = None,
        batch_size: int = 100,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    ):
        super().__init__(
            name="BookingExpiry",
            interval_seconds=interval_seconds or settings.booking_expiry_interval_seconds,
        )
        self.ttl_hours = ttl_hours if ttl_hours is not None else settings.pending_booking_ttl_hours
        self.batch_size = batch_size
        self.session_factory = session_factory
        self.last_expired_count = 0

    async def process(self) -> None:
        """Expire stale pending bookings in batches until none are left."""
        total = 0
        async with self.session_factory() as db:
            try:
                status_service = BookingStatusService(db)
                while True:
                    expired = await status_service.expire_stale_pending(
                        ttl_hours=self.ttl_hours,
                        batch_size=self.batch_size,
                    )
                    total += expired
                    if expired < self.batch_size:
                        break
            except Exception:
                await db.rollback()
                raise

        self.last_expired_count = total
        if total:
            logger.info(
                f"Expired {total} pending bookings",
                extra={"expired_count": total, "ttl_hours": self.ttl_hours, "worker": self.name}
            )
