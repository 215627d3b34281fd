from dataclasses import asdict

from fastapi import APIRouter

from schemas import PromotionRunResponse, PromotionStatusResponse
from services.promotion_service import promotion_worker

router = APIRouter(prefix="/api/promotion", tags=["promotion"])


@router.get("/status", response_model=PromotionStatusResponse)
async def get_promotion_status() -> PromotionStatusResponse:
    return PromotionStatusResponse(**promotion_worker.get_status())


@router.post("/start", response_model=PromotionStatusResponse)
async def start_promotion() -> PromotionStatusResponse:
    await promotion_worker.start()
    return PromotionStatusResponse(**promotion_worker.get_status())


@router.post("/stop", response_model=PromotionStatusResponse)
async def stop_promotion() -> PromotionStatusResponse:
    await promotion_worker.stop()
    return PromotionStatusResponse(**promotion_worker.get_status())


@router.post("/run", response_model=PromotionRunResponse)
async def run_promotion() -> PromotionRunResponse:
    result = await promotion_worker.run_once()
    return PromotionRunResponse(**asdict(result))
