import asyncio
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, status

from catalog import AppSettings
from schemas import AppSettingsPayload, ReferenceResponse
from services.order_sync_service import resync_all_clients
from services.reference_service import load_app_settings, load_reference_data, update_app_settings

router = APIRouter(prefix="/api", tags=["reference"])


@router.get("/reference", response_model=ReferenceResponse)
async def read_reference() -> ReferenceResponse:
    reference = await load_reference_data()
    return ReferenceResponse(
        vendors=[asdict(vendor) for vendor in reference.vendors],
        menu_items=[asdict(item) for item in reference.menu_items],
        box_types=[asdict(box_type) for box_type in reference.box_types],
        settings=asdict(reference.settings),
    )


@router.get("/settings", response_model=AppSettingsPayload)
async def read_settings() -> AppSettingsPayload:
    settings = await asyncio.to_thread(load_app_settings)
    return AppSettingsPayload(**asdict(settings))


@router.put("/settings", response_model=AppSettingsPayload)
async def write_settings(payload: AppSettingsPayload, resync: bool = False) -> AppSettingsPayload:
    try:
        saved = await update_app_settings(AppSettings(**payload.model_dump()))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    if resync:
        # Only rows not yet due move to the new cutoff.
        await resync_all_clients()
    return AppSettingsPayload(**asdict(saved))
