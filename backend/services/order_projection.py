import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from catalog import ReferenceData
from constants import (
    FALLBACK_TAKE_EFFECT_DATE,
    LOGGER_NAME,
    SERVICE_BOXES,
    SERVICE_CUSTOM,
    SERVICE_FOOD,
    SERVICE_MEAL,
    SERVICE_PRODUCE,
)
from services.date_policy import (
    get_next_delivery_date_for_day,
    get_take_effect_date,
    weekday_index,
)
from services.order_normalizer import DayOrder

logger = logging.getLogger(LOGGER_NAME)

PRODUCE_LINE_NAME = "Produce"


@dataclass
class ProjectedItem:
    menu_item_id: Optional[str]
    quantity: int
    unit_value: float
    custom_name: Optional[str] = None
    notes: Optional[str] = None

    @property
    def key(self) -> str:
        return self.menu_item_id or f"custom:{self.custom_name}"

    @property
    def total_value(self) -> float:
        return round(self.unit_value * self.quantity, 2)


@dataclass
class ProjectedVendorSelection:
    vendor_id: Optional[str]
    items: List[ProjectedItem] = field(default_factory=list)


@dataclass
class ProjectedBox:
    box_number: int
    vendor_id: Optional[str]
    box_type_id: Optional[str]
    quantity: int
    unit_value: float
    items: Dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None

    @property
    def total_value(self) -> float:
        return round(self.unit_value * self.quantity, 2)


@dataclass
class DayProjection:
    service_type: str
    delivery_day: Optional[str]
    take_effect_date: date
    scheduled_delivery_date: Optional[date]
    vendor_selections: List[ProjectedVendorSelection] = field(default_factory=list)
    boxes: List[ProjectedBox] = field(default_factory=list)
    case_id: Optional[str] = None
    notes: Optional[str] = None
    last_updated: Optional[str] = None
    updated_by: Optional[str] = None

    @property
    def total_value(self) -> float:
        items_total = sum(
            item.total_value for selection in self.vendor_selections for item in selection.items
        )
        boxes_total = sum(box.total_value for box in self.boxes)
        return round(items_total + boxes_total, 2)

    @property
    def total_items(self) -> int:
        item_count = sum(
            item.quantity for selection in self.vendor_selections for item in selection.items
        )
        return item_count + sum(box.quantity for box in self.boxes)


def _quantity(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _price(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _project_selection(selection: Dict[str, Any], reference: ReferenceData) -> ProjectedVendorSelection:
    notes = selection.get("itemNotes") or {}
    projected = ProjectedVendorSelection(vendor_id=selection["vendorId"])
    for item_id, raw_qty in (selection.get("items") or {}).items():
        quantity = _quantity(raw_qty)
        if quantity <= 0:
            continue
        price = reference.item_price(item_id)
        if price is None:
            logger.warning("Skipping unknown menu item %s for vendor %s", item_id, selection["vendorId"])
            continue
        projected.items.append(
            ProjectedItem(
                menu_item_id=str(item_id),
                quantity=quantity,
                unit_value=price,
                notes=notes.get(item_id),
            )
        )
    return projected


def box_unit_value(box: Dict[str, Any], reference: ReferenceData) -> float:
    prices = box.get("itemPrices") or {}
    priced_total = 0.0
    for item_id, raw_qty in (box.get("items") or {}).items():
        price = _price(prices.get(item_id))
        quantity = _quantity(raw_qty)
        if price is not None and quantity > 0:
            priced_total += price * quantity
    if priced_total > 0:
        return round(priced_total, 2)
    box_type = reference.box_type(box.get("boxTypeId"))
    if box_type and box_type.price_each:
        return box_type.price_each
    return 0.0


def _project_boxes(day_order: DayOrder, reference: ReferenceData) -> List[ProjectedBox]:
    projected = []
    for box in day_order.boxes:
        vendor_id = reference.resolve_box_vendor_id(box.get("vendorId"), box.get("boxTypeId"))
        projected.append(
            ProjectedBox(
                box_number=box["boxNumber"],
                vendor_id=vendor_id or day_order.vendor_id,
                box_type_id=box.get("boxTypeId"),
                quantity=box["quantity"],
                unit_value=box_unit_value(box, reference),
                items={k: v for k, v in (box.get("items") or {}).items() if _quantity(v) > 0},
                notes=box.get("notes"),
            )
        )
    return projected


def _custom_selection(day_order: DayOrder) -> ProjectedVendorSelection:
    return ProjectedVendorSelection(
        vendor_id=day_order.vendor_id,
        items=[
            ProjectedItem(
                menu_item_id=None,
                quantity=line["quantity"],
                unit_value=line["price"],
                custom_name=line["name"],
            )
            for line in day_order.custom_items
        ],
    )


def _week_delivery_date(take_effect: date, delivery_day: Optional[str]) -> Optional[date]:
    if not delivery_day:
        return None
    return take_effect + timedelta(days=weekday_index(delivery_day))


def _food_is_deliverable(day_order: DayOrder, reference: ReferenceData, now: Optional[datetime]) -> bool:
    if not day_order.delivery_day:
        return False
    return any(
        get_next_delivery_date_for_day(
            day_order.delivery_day, reference.vendors, selection["vendorId"], now
        )
        for selection in day_order.vendor_selections
    )


def project_day_order(
    day_order: DayOrder,
    reference: ReferenceData,
    now: Optional[datetime] = None,
) -> Optional[DayProjection]:
    """Price a DayOrder and pin its dates; None when it cannot be scheduled."""
    service_type = day_order.service_type
    if service_type in (SERVICE_FOOD, SERVICE_MEAL) and not _food_is_deliverable(
        day_order, reference, now
    ):
        logger.warning(
            "No delivery date for %s order on %s; skipping",
            service_type,
            day_order.delivery_day,
        )
        return None

    take_effect = get_take_effect_date(reference.settings, now)
    projection = DayProjection(
        service_type=service_type,
        delivery_day=day_order.delivery_day,
        take_effect_date=take_effect,
        scheduled_delivery_date=_week_delivery_date(take_effect, day_order.delivery_day),
        case_id=day_order.case_id,
        notes=day_order.notes,
        last_updated=day_order.last_updated,
        updated_by=day_order.updated_by,
    )

    if service_type == SERVICE_BOXES:
        projection.boxes = _project_boxes(day_order, reference)
        if not day_order.vendor_id:
            projection.take_effect_date = FALLBACK_TAKE_EFFECT_DATE
            projection.scheduled_delivery_date = None
    elif service_type == SERVICE_CUSTOM:
        projection.vendor_selections = [_custom_selection(day_order)]
    elif service_type == SERVICE_PRODUCE:
        projection.vendor_selections = [
            ProjectedVendorSelection(
                vendor_id=None,
                items=[
                    ProjectedItem(
                        menu_item_id=None,
                        quantity=1,
                        unit_value=day_order.bill_amount or 0.0,
                        custom_name=PRODUCE_LINE_NAME,
                    )
                ],
            )
        ]
    else:
        selections = [_project_selection(s, reference) for s in day_order.vendor_selections]
        projection.vendor_selections = [s for s in selections if s.items]
    return projection
