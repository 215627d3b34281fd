from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VendorOut(BaseModel):
    id: str
    name: str
    is_active: bool
    delivery_days: List[str]
    service_types: List[str]
    cutoff_hours: int
    minimum_meals: int


class MenuItemOut(BaseModel):
    id: str
    vendor_id: Optional[str]
    name: str
    value: float
    price_each: Optional[float]
    is_active: bool
    minimum_order: int


class BoxTypeOut(BaseModel):
    id: str
    name: str
    vendor_id: Optional[str]
    is_active: bool
    price_each: Optional[float]


class AppSettingsPayload(BaseModel):
    weekly_cutoff_day: str = Field(..., description="Weekday name, e.g. Friday")
    weekly_cutoff_time: str = Field(..., description="Local time as HH:MM")


class ReferenceResponse(BaseModel):
    vendors: List[VendorOut]
    menu_items: List[MenuItemOut]
    box_types: List[BoxTypeOut]
    settings: AppSettingsPayload


class SchedulePreviewResponse(BaseModel):
    day: str
    vendor_id: Optional[str] = None
    delivery_date: Optional[date]
    take_effect_date: date


class VendorSelectionIn(BaseModel):
    vendorId: Optional[str] = None
    items: Dict[str, float] = Field(default_factory=dict)
    itemNotes: Optional[Dict[str, str]] = None


class DeliveryDayOrderIn(BaseModel):
    vendorSelections: List[VendorSelectionIn] = Field(default_factory=list)


class BoxOrderIn(BaseModel):
    boxNumber: Optional[int] = None
    boxTypeId: Optional[str] = None
    vendorId: Optional[str] = None
    quantity: Optional[int] = None
    items: Dict[str, float] = Field(default_factory=dict)
    itemPrices: Optional[Dict[str, float]] = None
    itemNotes: Optional[Dict[str, str]] = None
    notes: Optional[str] = None


class CustomItemIn(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None
    quantity: Optional[int] = 1


class OrderConfiguration(BaseModel):
    """Draft order as edited by the client screens (camelCase on the wire)."""

    model_config = ConfigDict(extra="allow")

    serviceType: Optional[str] = None
    caseId: Optional[str] = None
    vendorSelections: Optional[List[VendorSelectionIn]] = None
    deliveryDayOrders: Optional[Dict[str, DeliveryDayOrderIn]] = None
    mealSelections: Optional[Dict[str, VendorSelectionIn]] = None
    boxOrders: Optional[List[BoxOrderIn]] = None
    boxes: Optional[List[BoxOrderIn]] = None
    vendorId: Optional[str] = None
    boxTypeId: Optional[str] = None
    boxQuantity: Optional[int] = None
    items: Optional[Dict[str, float]] = None
    itemPrices: Optional[Dict[str, float]] = None
    customItems: Optional[List[CustomItemIn]] = None
    custom_name: Optional[str] = None
    custom_price: Optional[float] = None
    deliveryDay: Optional[str] = None
    billAmount: Optional[float] = None
    notes: Optional[str] = None
    lastUpdated: Optional[str] = None
    updatedBy: Optional[str] = None


class ActiveOrderRequest(BaseModel):
    active_order: Optional[OrderConfiguration] = None
    updated_by: Optional[str] = None


class SyncResponse(BaseModel):
    client_id: str
    synced_days: List[Optional[str]]
    removed_days: List[Optional[str]]
    skipped_days: List[Optional[str]]
    due_days: List[Optional[str]]
    upcoming_order_ids: List[str]


class OrderItemView(BaseModel):
    id: str
    menu_item_id: Optional[str]
    name: str
    quantity: int
    unit_value: float
    total_value: float
    notes: Optional[str] = None


class VendorSelectionView(BaseModel):
    id: str
    vendor_id: Optional[str]
    vendor_name: Optional[str]
    items: List[OrderItemView]


class BoxSelectionView(BaseModel):
    id: str
    box_number: int
    vendor_id: Optional[str]
    box_type_id: Optional[str]
    box_type_name: Optional[str]
    quantity: int
    unit_value: float
    total_value: float
    items: Dict[str, Any] = Field(default_factory=dict)


class OrderView(BaseModel):
    id: str
    client_id: str
    client_name: Optional[str] = None
    order_number: Optional[int]
    service_type: Optional[str]
    status: Optional[str]
    delivery_day: Optional[str]
    take_effect_date: Optional[date]
    scheduled_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[date] = None
    delivery_proof_url: Optional[str] = None
    assigned_driver_id: Optional[str] = None
    total_value: float
    total_items: int
    notes: Optional[str] = None
    updated_by: Optional[str] = None
    vendor_selections: List[VendorSelectionView]
    boxes: List[BoxSelectionView]


class ClientUpcomingOrdersResponse(BaseModel):
    client_id: str
    active_order: Optional[Dict[str, Any]]
    items: List[OrderView]


class VendorOrdersResponse(BaseModel):
    vendor_id: str
    delivery_date: date
    items: List[OrderView]


class DeliveryProofRequest(BaseModel):
    proof_url: str = Field(..., description="Public URL of the uploaded proof image")


class BillingStatusRequest(BaseModel):
    order_ids: List[str]
    status: str = Field(..., description="billing_successful, billing_failed or billing_pending")


class BillingStatusResponse(BaseModel):
    status: str
    updated: int
    order_ids: List[str]


class PromotionStatusResponse(BaseModel):
    running: bool
    interval_seconds: int
    last_run_at: Optional[datetime]
    last_success_at: Optional[datetime]
    last_error: Optional[str]
    last_processed: int
    last_order_ids: List[str]


class PromotionRunResponse(BaseModel):
    processed: int
    errors: List[str]
    order_ids: List[str]
