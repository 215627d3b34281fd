from .clients import router as clients_router
from .orders import router as orders_router
from .promotion import router as promotion_router
from .reference import router as reference_router
from .schedule import router as schedule_router
from .vendors import router as vendors_router

__all__ = [
    "clients_router",
    "orders_router",
    "promotion_router",
    "reference_router",
    "schedule_router",
    "vendors_router",
]
