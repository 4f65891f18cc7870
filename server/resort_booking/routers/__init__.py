"""FastAPI routers package."""

from .admin_booking import router as admin_booking_router
from .availability import router as availability_router
from .booking import router as booking_router
from .health import ops as ops_router
from .health import router as health_router
from .pricing import router as pricing_router
from .voucher import router as voucher_router

API_ROUTERS = (
    ops_router,
    health_router,
    pricing_router,
    availability_router,
    voucher_router,
    booking_router,
    admin_booking_router,
)

__all__ = [
    "API_ROUTERS",
    "admin_booking_router",
    "availability_router",
    "booking_router",
    "health_router",
    "ops_router",
    "pricing_router",
    "voucher_router",
]
