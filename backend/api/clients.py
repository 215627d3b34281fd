from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, status

from schemas import ActiveOrderRequest, ClientUpcomingOrdersResponse, SyncResponse
from services.order_sync_service import OrderValidationError, sync_current_order_to_upcoming
from services.orders_service import list_client_upcoming_orders

router = APIRouter(prefix="/api/clients", tags=["clients"])


async def _sync(
    client_id: str,
    active_order: Optional[Dict[str, Any]],
    updated_by: Optional[str] = None,
) -> SyncResponse:
    try:
        result = await sync_current_order_to_upcoming(
            client_id,
            active_order,
            updated_by=updated_by,
        )
    except OrderValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return SyncResponse(**asdict(result))


@router.put("/{client_id}/active-order", response_model=SyncResponse)
async def save_active_order(client_id: str, payload: ActiveOrderRequest) -> SyncResponse:
    active_order = (
        payload.active_order.model_dump(exclude_none=True) if payload.active_order else None
    )
    return await _sync(client_id, active_order, payload.updated_by)


@router.delete("/{client_id}/active-order", response_model=SyncResponse)
async def clear_active_order(client_id: str) -> SyncResponse:
    return await _sync(client_id, None)


@router.get("/{client_id}/upcoming-orders", response_model=ClientUpcomingOrdersResponse)
async def read_upcoming_orders(client_id: str) -> ClientUpcomingOrdersResponse:
    try:
        return await list_client_upcoming_orders(client_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
