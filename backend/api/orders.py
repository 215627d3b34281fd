from fastapi import APIRouter, HTTPException, status

from schemas import BillingStatusRequest, BillingStatusResponse, DeliveryProofRequest, OrderView
from services.billing_service import record_delivery_proof, update_billing_status
from services.orders_service import get_order

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("/billing-status", response_model=BillingStatusResponse)
async def set_billing_status(payload: BillingStatusRequest) -> BillingStatusResponse:
    try:
        rows = await update_billing_status(payload.order_ids, payload.status)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return BillingStatusResponse(
        status=payload.status,
        updated=len(rows),
        order_ids=[str(row["id"]) for row in rows],
    )


@router.get("/{order_ref}", response_model=OrderView)
async def read_order(order_ref: str) -> OrderView:
    try:
        return await get_order(order_ref)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.post("/{order_id}/delivery-proof", response_model=OrderView)
async def upload_delivery_proof(order_id: str, payload: DeliveryProofRequest) -> OrderView:
    try:
        await record_delivery_proof(order_id, payload.proof_url)
        return await get_order(order_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
