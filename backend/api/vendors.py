from datetime import date

from fastapi import APIRouter, Query

from schemas import VendorOrdersResponse
from services.orders_service import list_vendor_orders

router = APIRouter(prefix="/api/vendors", tags=["vendors"])


@router.get("/{vendor_id}/orders", response_model=VendorOrdersResponse)
async def read_vendor_orders(
    vendor_id: str,
    delivery_date: date = Query(..., description="Scheduled delivery date (YYYY-MM-DD)"),
) -> VendorOrdersResponse:
    return await list_vendor_orders(vendor_id, delivery_date)
