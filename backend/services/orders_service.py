import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from catalog import ReferenceData
from constants import LOGGER_NAME
from repositories import orders_repository, upcoming_orders_repository
from repositories.clients_repository import fetch_client, fetch_clients
from repositories.order_children_repository import (
    PLACED_TABLES,
    UPCOMING_TABLES,
    OrderTables,
    fetch_box_selections,
    fetch_items,
    fetch_vendor_selections,
)
from schemas import (
    BoxSelectionView,
    ClientUpcomingOrdersResponse,
    OrderItemView,
    OrderView,
    VendorOrdersResponse,
    VendorSelectionView,
)
from services.order_normalizer import from_stored_order
from services.order_sync_service import children_total, stored_unit_value
from services.reference_service import load_reference_data_sync

logger = logging.getLogger(LOGGER_NAME)


def _item_view(row: Dict[str, Any], reference: ReferenceData) -> OrderItemView:
    quantity = int(row.get("quantity") or 0)
    menu_item = reference.menu_item(row.get("menu_item_id"))
    name = menu_item.name if menu_item else row.get("custom_name") or "Unknown item"
    unit_value = stored_unit_value(row, reference)
    return OrderItemView(
        id=str(row["id"]),
        menu_item_id=row.get("menu_item_id"),
        name=name,
        quantity=quantity,
        unit_value=unit_value,
        total_value=round(unit_value * quantity, 2),
        notes=row.get("notes"),
    )


def _box_view(row: Dict[str, Any], reference: ReferenceData) -> BoxSelectionView:
    box_type = reference.box_type(row.get("box_type_id"))
    return BoxSelectionView(
        id=str(row["id"]),
        box_number=int(row.get("box_number") or 0),
        vendor_id=row.get("vendor_id"),
        box_type_id=row.get("box_type_id"),
        box_type_name=box_type.name if box_type else None,
        quantity=int(row.get("quantity") or 0),
        unit_value=float(row.get("unit_value") or 0),
        total_value=float(row.get("total_value") or 0),
        items=row.get("items") or {},
    )


def _check_totals(
    row: Dict[str, Any],
    tables: OrderTables,
    total_value: float,
    total_items: int,
) -> None:
    """Log parents whose stored totals disagree with their line items. Never writes."""
    stored = float(row.get("total_value") or 0)
    if abs(stored - total_value) < 0.005 and int(row.get("total_items") or 0) == total_items:
        return
    logger.warning(
        "%s %s total %.2f does not match line items %.2f",
        tables.parent,
        row["id"],
        stored,
        total_value,
    )


def build_order_view(
    row: Dict[str, Any],
    tables: OrderTables,
    reference: ReferenceData,
    client: Optional[Dict[str, Any]] = None,
) -> OrderView:
    selections = fetch_vendor_selections(tables, row["id"])
    items = fetch_items(tables, row["id"])
    boxes = fetch_box_selections(tables, row["id"])

    total_value, total_items = children_total(items, boxes, reference)
    _check_totals(row, tables, total_value, total_items)

    selection_views = []
    for selection in selections:
        vendor = reference.vendor(selection.get("vendor_id"))
        selection_views.append(
            VendorSelectionView(
                id=str(selection["id"]),
                vendor_id=selection.get("vendor_id"),
                vendor_name=vendor.name if vendor else None,
                items=[
                    _item_view(item, reference)
                    for item in items
                    if item.get("vendor_selection_id") == selection["id"]
                ],
            )
        )

    client = client or {}
    return OrderView(
        id=str(row["id"]),
        client_id=str(row["client_id"]),
        client_name=client.get("full_name"),
        order_number=row.get("order_number"),
        service_type=row.get("service_type"),
        status=row.get("status"),
        delivery_day=row.get("delivery_day"),
        take_effect_date=row.get("take_effect_date"),
        scheduled_delivery_date=row.get("scheduled_delivery_date"),
        actual_delivery_date=row.get("actual_delivery_date"),
        delivery_proof_url=row.get("delivery_proof_url"),
        assigned_driver_id=client.get("assigned_driver_id"),
        total_value=total_value,
        total_items=total_items,
        notes=row.get("notes"),
        updated_by=row.get("updated_by"),
        vendor_selections=selection_views,
        boxes=[_box_view(box, reference) for box in boxes],
    )


def _client_upcoming_orders(client_id: str) -> ClientUpcomingOrdersResponse:
    client = fetch_client(client_id)
    if not client:
        raise ValueError("Client not found")
    reference = load_reference_data_sync()
    rows = upcoming_orders_repository.fetch_client_upcoming_orders(client_id)
    return ClientUpcomingOrdersResponse(
        client_id=client_id,
        active_order=from_stored_order(client.get("active_order"), client.get("service_type")),
        items=[build_order_view(row, UPCOMING_TABLES, reference, client) for row in rows],
    )


async def list_client_upcoming_orders(client_id: str) -> ClientUpcomingOrdersResponse:
    return await asyncio.to_thread(_client_upcoming_orders, client_id)


def _find_order(order_ref: str) -> Optional[Dict[str, Any]]:
    if order_ref.isdigit() and len(order_ref) == 6:
        row = orders_repository.fetch_order_by_number(int(order_ref))
        if row:
            return row
    return orders_repository.fetch_order(order_ref)


def _order_detail(order_ref: str) -> OrderView:
    row = _find_order(order_ref)
    if not row:
        raise ValueError("Order not found")
    return build_order_view(
        row,
        PLACED_TABLES,
        load_reference_data_sync(),
        fetch_client(row["client_id"]),
    )


async def get_order(order_ref: str) -> OrderView:
    return await asyncio.to_thread(_order_detail, order_ref)


def _restrict_to_vendor(view: OrderView, vendor_id: str) -> Optional[OrderView]:
    selections = [s for s in view.vendor_selections if s.vendor_id == vendor_id]
    boxes = [b for b in view.boxes if b.vendor_id == vendor_id]
    if not selections and not boxes:
        return None
    return view.model_copy(update={"vendor_selections": selections, "boxes": boxes})


def vendor_orders_sync(vendor_id: str, delivery_date: date) -> VendorOrdersResponse:
    rows = orders_repository.fetch_orders_for_delivery_date(delivery_date)
    reference = load_reference_data_sync()
    clients = {
        str(client["id"]): client
        for client in fetch_clients(sorted({str(row["client_id"]) for row in rows}))
    }
    views = []
    for row in rows:
        view = build_order_view(row, PLACED_TABLES, reference, clients.get(str(row["client_id"])))
        restricted = _restrict_to_vendor(view, vendor_id)
        if restricted:
            views.append(restricted)
    return VendorOrdersResponse(vendor_id=vendor_id, delivery_date=delivery_date, items=views)


async def list_vendor_orders(vendor_id: str, delivery_date: date) -> VendorOrdersResponse:
    return await asyncio.to_thread(vendor_orders_sync, vendor_id, delivery_date)
