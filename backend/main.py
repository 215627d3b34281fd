import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import (
    clients_router,
    orders_router,
    promotion_router,
    reference_router,
    schedule_router,
    vendors_router,
)
from config import settings
from constants import LOGGER_NAME
from services.promotion_service import promotion_worker

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(LOGGER_NAME)

app = FastAPI(title="Meal Delivery Scheduling API")

if settings.allowed_origins == ["*"]:
    allow_origins = ["*"]
else:
    allow_origins = settings.allowed_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reference_router)
app.include_router(schedule_router)
app.include_router(clients_router)
app.include_router(orders_router)
app.include_router(vendors_router)
app.include_router(promotion_router)


@app.on_event("startup")
async def _on_startup() -> None:
    if settings.promotion_autostart:
        await promotion_worker.start()
        logger.info(
            "Promotion worker started (every %ss)", promotion_worker.interval_seconds
        )
    if allow_origins == ["*"]:
        logger.warning(
            "CORS is set to allow all origins with credentials; set ALLOWED_ORIGINS to explicit values for local dev."
        )


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    await promotion_worker.stop()


@app.get("/api/health")
async def health():
    return {"status": "ok", "timezone": settings.app_timezone}
