from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from schemas import SchedulePreviewResponse
from services.date_policy import get_next_delivery_date_for_day, get_take_effect_date, normalize_day_name
from services.reference_service import load_reference_data

router = APIRouter(prefix="/api/schedule", tags=["schedule"])


@router.get("/preview", response_model=SchedulePreviewResponse)
async def preview_schedule(
    day: str = Query(..., description="Delivery weekday, e.g. Monday"),
    vendor_id: Optional[str] = Query(default=None),
) -> SchedulePreviewResponse:
    reference = await load_reference_data()
    try:
        day_name = normalize_day_name(day)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return SchedulePreviewResponse(
        day=day_name,
        vendor_id=vendor_id,
        delivery_date=get_next_delivery_date_for_day(day_name, reference.vendors, vendor_id),
        take_effect_date=get_take_effect_date(reference.settings),
    )
