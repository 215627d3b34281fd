"""
Reconciles the shapes a client's active order can arrive in.

Drafts written by older screens carry a single ``vendorSelections`` list
(Food) or top-level ``vendorId/boxTypeId/boxQuantity/items`` (Boxes).
Newer screens send ``deliveryDayOrders`` keyed by weekday and ``boxes`` /
``boxOrders`` lists. Everything downstream works on ``DayOrder`` values,
one per delivery day.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from catalog import ReferenceData
from constants import (
    LOGGER_NAME,
    SERVICE_BOXES,
    SERVICE_CUSTOM,
    SERVICE_EQUIPMENT,
    SERVICE_FOOD,
    SERVICE_MEAL,
    SERVICE_PRODUCE,
    WEEKDAY_NAMES,
)
from services.date_policy import normalize_day_name, vendor_delivers_on

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class DayOrder:
    service_type: str
    delivery_day: Optional[str]
    case_id: Optional[str] = None
    vendor_selections: List[Dict[str, Any]] = field(default_factory=list)
    boxes: List[Dict[str, Any]] = field(default_factory=list)
    custom_items: List[Dict[str, Any]] = field(default_factory=list)
    vendor_id: Optional[str] = None
    bill_amount: Optional[float] = None
    notes: Optional[str] = None
    last_updated: Optional[str] = None
    updated_by: Optional[str] = None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_quantity(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def _service_type(config: Dict[str, Any], fallback: Optional[str] = None) -> str:
    raw = config.get("serviceType") or config.get("service_type") or fallback or SERVICE_FOOD
    if raw == "Vendor":
        return SERVICE_CUSTOM
    return str(raw)


def _canonical_day(day: Any) -> Optional[str]:
    try:
        return normalize_day_name(day)
    except ValueError:
        logger.warning("Ignoring unknown delivery day %r", day)
        return None


def has_items(selection: Dict[str, Any]) -> bool:
    items = _as_dict(selection.get("items"))
    return any(_to_quantity(qty) > 0 for qty in items.values())


def sanitize_vendor_selection(selection: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(selection, dict):
        return None
    vendor_id = _clean_str(selection.get("vendorId"))
    if not vendor_id:
        return None
    clean: Dict[str, Any] = {
        "vendorId": vendor_id,
        "items": _as_dict(selection.get("items")),
    }
    notes = _as_dict(selection.get("itemNotes"))
    if notes:
        clean["itemNotes"] = notes
    return clean


def _merge_selections(selections: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    merged: Dict[str, Dict[str, Any]] = {}
    for selection in selections:
        target = merged.setdefault(
            selection["vendorId"], {"vendorId": selection["vendorId"], "items": {}}
        )
        for item_id, qty in _as_dict(selection.get("items")).items():
            target["items"][item_id] = _to_quantity(target["items"].get(item_id)) + _to_quantity(qty)
        notes = _as_dict(selection.get("itemNotes"))
        if notes:
            target.setdefault("itemNotes", {}).update(notes)
    return list(merged.values())


# --- Boxes ---


def migrate_legacy_box_order(config: Dict[str, Any]) -> Dict[str, Any]:
    """Convert legacy single-box fields into a ``boxes`` list."""
    if _service_type(config) != SERVICE_BOXES:
        return config
    if config.get("boxes"):
        return config

    migrated = copy.deepcopy(config)
    quantity = _to_quantity(config.get("boxQuantity"))
    box_type_id = _clean_str(config.get("boxTypeId"))
    if quantity > 0 and box_type_id:
        items = _as_dict(config.get("items"))
        prices = _as_dict(config.get("itemPrices"))
        migrated["boxes"] = [
            {
                "boxNumber": number,
                "boxTypeId": box_type_id,
                "vendorId": _clean_str(config.get("vendorId")),
                "items": dict(items),
                "itemPrices": dict(prices),
                "itemNotes": {},
            }
            for number in range(1, quantity + 1)
        ]
        return migrated

    migrated["boxes"] = []
    return migrated


def _sanitize_box(entry: Any, number: int) -> Dict[str, Any]:
    entry = entry if isinstance(entry, dict) else {}
    quantity = _to_quantity(entry.get("quantity", 1))
    return {
        "boxNumber": _to_quantity(entry.get("boxNumber")) or number,
        "boxTypeId": _clean_str(entry.get("boxTypeId")),
        "vendorId": _clean_str(entry.get("vendorId")),
        "quantity": quantity if quantity >= 1 else 1,
        "items": _as_dict(entry.get("items")),
        "itemPrices": _as_dict(entry.get("itemPrices")),
        "itemNotes": _as_dict(entry.get("itemNotes")),
        "notes": _clean_str(entry.get("notes")),
    }


def box_entries(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    raw = config.get("boxOrders") or config.get("boxes")
    if not raw:
        raw = migrate_legacy_box_order(config).get("boxes") or []
    if not raw and (
        _clean_str(config.get("vendorId"))
        or _clean_str(config.get("boxTypeId"))
        or _as_dict(config.get("items"))
    ):
        # Legacy draft without a box type: keep it as a single box.
        raw = [
            {
                "boxTypeId": config.get("boxTypeId"),
                "vendorId": config.get("vendorId"),
                "quantity": config.get("boxQuantity") or 1,
                "items": config.get("items"),
                "itemPrices": config.get("itemPrices"),
            }
        ]
    return [_sanitize_box(entry, index) for index, entry in enumerate(raw, start=1)]


def get_total_box_count(config: Dict[str, Any]) -> int:
    if _service_type(config) != SERVICE_BOXES:
        return 0
    if config.get("boxes"):
        return len(config["boxes"])
    if config.get("boxOrders"):
        return sum(_sanitize_box(entry, 1)["quantity"] for entry in config["boxOrders"])
    return _to_quantity(config.get("boxQuantity"))


def validate_box_count_against_authorization(
    box_count: int,
    authorized_amount: Optional[float],
    box_type_price: Optional[float] = None,
) -> Tuple[bool, Optional[str]]:
    if not authorized_amount or authorized_amount <= 0:
        return True, None
    if not box_type_price or box_type_price <= 0:
        return True, None
    total_cost = box_count * box_type_price
    if total_cost > authorized_amount:
        max_boxes = get_max_boxes_allowed(authorized_amount, box_type_price)
        return False, (
            f"Total cost (${total_cost:.2f}) exceeds authorized amount "
            f"(${authorized_amount:.2f}). Maximum {max_boxes} boxes allowed."
        )
    return True, None


def get_max_boxes_allowed(
    authorized_amount: Optional[float],
    box_type_price: Optional[float] = None,
) -> Optional[int]:
    if not authorized_amount or authorized_amount <= 0:
        return None
    if not box_type_price or box_type_price <= 0:
        return None
    return int(authorized_amount // box_type_price)


# --- Stored draft payload ---


def _common_fields(config: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in ("caseId", "notes", "lastUpdated", "updatedBy"):
        value = _clean_str(config.get(key))
        if value:
            out[key] = value
    return out


def _custom_items(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = []
    for entry in config.get("customItems") or []:
        if not isinstance(entry, dict):
            continue
        price = _to_float(entry.get("price"))
        if price is None:
            continue
        items.append(
            {
                "name": _clean_str(entry.get("name")) or "Custom",
                "price": price,
                "quantity": _to_quantity(entry.get("quantity", 1)) or 1,
            }
        )
    if not items:
        price = _to_float(config.get("custom_price"))
        if price is not None:
            items.append(
                {
                    "name": _clean_str(config.get("custom_name")) or "Custom",
                    "price": price,
                    "quantity": 1,
                }
            )
    return items


def to_stored_order(config: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Keep only the fields that belong to the draft's service type."""
    if not isinstance(config, dict):
        return None
    service_type = _service_type(config)
    if service_type == SERVICE_EQUIPMENT:
        return None

    out: Dict[str, Any] = {"serviceType": service_type, **_common_fields(config)}

    if service_type == SERVICE_BOXES:
        out["boxOrders"] = box_entries(config)
        return out

    if service_type == SERVICE_CUSTOM:
        items = _custom_items(config)
        if items:
            out["customItems"] = items
        for key in ("vendorId", "deliveryDay"):
            value = _clean_str(config.get(key))
            if value:
                out[key] = value
        return out

    if service_type == SERVICE_PRODUCE:
        amount = _to_float(config.get("billAmount"))
        if amount is not None:
            out["billAmount"] = amount
        return out

    if service_type not in (SERVICE_FOOD, SERVICE_MEAL):
        out["serviceType"] = SERVICE_FOOD

    selections = [
        clean
        for clean in (sanitize_vendor_selection(s) for s in config.get("vendorSelections") or [])
        if clean
    ]
    if selections:
        out["vendorSelections"] = selections

    day_orders: Dict[str, Any] = {}
    for day, day_value in _as_dict(config.get("deliveryDayOrders")).items():
        day_selections = [
            clean
            for clean in (
                sanitize_vendor_selection(s)
                for s in _as_dict(day_value).get("vendorSelections") or []
            )
            if clean
        ]
        if day_selections:
            day_orders[day] = {"vendorSelections": day_selections}
    if day_orders:
        out["deliveryDayOrders"] = day_orders

    meals: Dict[str, Any] = {}
    for meal_type, meal_value in _as_dict(config.get("mealSelections")).items():
        meal_value = _as_dict(meal_value)
        meal: Dict[str, Any] = {"items": _as_dict(meal_value.get("items"))}
        vendor_id = _clean_str(meal_value.get("vendorId"))
        if vendor_id:
            meal["vendorId"] = vendor_id
        meals[meal_type] = meal
    if meals:
        out["mealSelections"] = meals
    return out


def from_stored_order(
    stored: Optional[Dict[str, Any]],
    service_type: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Hydrate a stored draft (or a legacy one) into the shape the screens edit."""
    if not isinstance(stored, dict):
        return None
    config = to_stored_order({**stored, "serviceType": _service_type(stored, service_type)})
    if config is None:
        return None

    if config["serviceType"] == SERVICE_BOXES and config["boxOrders"]:
        # Older screens still read the first box from the top level.
        first = config["boxOrders"][0]
        config["vendorId"] = first["vendorId"]
        config["boxTypeId"] = first["boxTypeId"]
        config["items"] = first["items"]
        config["boxQuantity"] = sum(box["quantity"] for box in config["boxOrders"])
    return config


# --- Per-day projection ---


def _selected_vendor_days(
    selections: List[Dict[str, Any]],
    reference: ReferenceData,
) -> List[str]:
    days = set()
    for selection in selections:
        vendor = reference.vendor(selection["vendorId"])
        if not vendor:
            continue
        for day in vendor.delivery_days:
            canonical = _canonical_day(day)
            if canonical:
                days.add(canonical)
    return sorted(days, key=WEEKDAY_NAMES.index)


def _selections_for_day(
    selections: List[Dict[str, Any]],
    day: str,
    reference: ReferenceData,
) -> List[Dict[str, Any]]:
    picked = []
    for selection in selections:
        vendor = reference.vendor(selection["vendorId"])
        if vendor is None or vendor_delivers_on(vendor, day):
            picked.append(selection)
    return picked


def _food_day_orders(config: Dict[str, Any], reference: ReferenceData, base: Dict[str, Any]) -> List[DayOrder]:
    by_day: Dict[str, List[Dict[str, Any]]] = {}
    for raw_day, day_value in _as_dict(config.get("deliveryDayOrders")).items():
        day = _canonical_day(raw_day)
        if not day:
            continue
        for raw in _as_dict(day_value).get("vendorSelections") or []:
            selection = sanitize_vendor_selection(raw)
            if selection and has_items(selection):
                by_day.setdefault(day, []).append(selection)
    if by_day:
        return [
            DayOrder(delivery_day=day, vendor_selections=_merge_selections(by_day[day]), **base)
            for day in sorted(by_day, key=WEEKDAY_NAMES.index)
        ]

    selections = [
        s
        for s in (sanitize_vendor_selection(raw) for raw in config.get("vendorSelections") or [])
        if s and has_items(s)
    ]
    for meal in _as_dict(config.get("mealSelections")).values():
        meal = _as_dict(meal)
        selection = sanitize_vendor_selection(meal)
        if selection and has_items(selection):
            selections.append(selection)
    selections = _merge_selections(selections)
    if not selections:
        return []

    days = _selected_vendor_days(selections, reference)
    if len(days) > 1:
        orders = []
        for day in days:
            day_selections = _selections_for_day(selections, day, reference)
            if day_selections:
                orders.append(DayOrder(delivery_day=day, vendor_selections=day_selections, **base))
        return orders
    return [
        DayOrder(delivery_day=days[0] if days else None, vendor_selections=selections, **base)
    ]


def _boxes_day_orders(config: Dict[str, Any], reference: ReferenceData, base: Dict[str, Any]) -> List[DayOrder]:
    boxes = box_entries(config)
    if not boxes:
        return []
    first = boxes[0]
    vendor_id = reference.resolve_box_vendor_id(first["vendorId"], first["boxTypeId"])
    vendor = reference.vendor(vendor_id)
    delivery_day = None
    if vendor and vendor.delivery_days:
        delivery_day = _canonical_day(vendor.delivery_days[0])
    # One recurring box order per week, never split across days.
    return [DayOrder(delivery_day=delivery_day, boxes=boxes, vendor_id=vendor_id, **base)]


def _custom_day_orders(config: Dict[str, Any], reference: ReferenceData, base: Dict[str, Any]) -> List[DayOrder]:
    items = _custom_items(config)
    if not items:
        return []
    vendor_id = _clean_str(config.get("vendorId"))
    delivery_day = None
    if _clean_str(config.get("deliveryDay")):
        delivery_day = _canonical_day(config["deliveryDay"])
    if not delivery_day:
        vendor = reference.vendor(vendor_id)
        if vendor and vendor.delivery_days:
            delivery_day = _canonical_day(vendor.delivery_days[0])
    return [DayOrder(delivery_day=delivery_day, custom_items=items, vendor_id=vendor_id, **base)]


def _produce_day_orders(config: Dict[str, Any], base: Dict[str, Any]) -> List[DayOrder]:
    amount = _to_float(config.get("billAmount"))
    if amount is None:
        return []
    return [DayOrder(delivery_day=None, bill_amount=amount, **base)]


def normalize_order(config: Optional[Dict[str, Any]], reference: ReferenceData) -> List[DayOrder]:
    """Split a draft into one DayOrder per delivery day it targets."""
    if not isinstance(config, dict):
        return []
    service_type = _service_type(config)
    base = {
        "service_type": service_type,
        "case_id": _clean_str(config.get("caseId")),
        "notes": _clean_str(config.get("notes")),
        "last_updated": _clean_str(config.get("lastUpdated")),
        "updated_by": _clean_str(config.get("updatedBy")),
    }

    if service_type == SERVICE_BOXES:
        return _boxes_day_orders(config, reference, base)
    if service_type == SERVICE_CUSTOM:
        return _custom_day_orders(config, reference, base)
    if service_type == SERVICE_PRODUCE:
        return _produce_day_orders(config, base)
    if service_type == SERVICE_EQUIPMENT:
        logger.info("Equipment orders are not scheduled through upcoming orders")
        return []
    if service_type not in (SERVICE_FOOD, SERVICE_MEAL):
        base["service_type"] = SERVICE_FOOD
    return _food_day_orders(config, reference, base)
