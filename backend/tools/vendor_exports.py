from __future__ import annotations

import re
from pathlib import Path
from typing import Any, List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from tqdm import tqdm

from config import settings
from schemas import OrderView
from services.date_policy import to_calendar_date
from services.orders_service import vendor_orders_sync

_DRIVER_PATTERN = re.compile(r"driver\s*(\d+)", re.IGNORECASE)

HEADERS = [
    "Order No.",
    "Client",
    "Driver",
    "Delivery Date",
    "Service",
    "Item",
    "Quantity",
    "Unit Value",
    "Line Total",
    "Notes",
]


def driver_sort_key(driver: Optional[str]) -> Tuple[int, int, str]:
    """"Driver 2" before "Driver 10", named drivers next, unassigned last."""
    if not driver or not str(driver).strip():
        return (2, 0, "")
    match = _DRIVER_PATTERN.search(str(driver))
    if match:
        return (0, int(match.group(1)), "")
    return (1, 0, str(driver).strip().lower())


def sort_orders_by_driver(orders: List[OrderView]) -> List[OrderView]:
    return sorted(
        orders,
        key=lambda order: (
            driver_sort_key(order.assigned_driver_id),
            (order.client_name or "").lower(),
            order.order_number or 0,
        ),
    )


def _order_rows(order: OrderView) -> List[List[Any]]:
    base = [
        order.order_number,
        order.client_name or order.client_id,
        order.assigned_driver_id or "Unassigned",
        order.scheduled_delivery_date.isoformat() if order.scheduled_delivery_date else "",
        order.service_type or "",
    ]
    rows: List[List[Any]] = []
    for selection in order.vendor_selections:
        for item in selection.items:
            rows.append(
                base + [item.name, item.quantity, item.unit_value, item.total_value, item.notes or ""]
            )
    for box in order.boxes:
        label = f"Box {box.box_number}: {box.box_type_name or 'Box'}"
        rows.append(base + [label, box.quantity, box.unit_value, box.total_value, ""])
    return rows


def export_vendor_orders_excel(
    vendor_id: str,
    delivery_date: Any,
    *,
    output_path: str | None = None,
) -> Path:
    target_date = to_calendar_date(delivery_date)
    if target_date is None:
        raise ValueError(f"Invalid delivery date: {delivery_date!r}")

    response = vendor_orders_sync(vendor_id, target_date)
    orders = sort_orders_by_driver(response.items)

    rows: List[List[Any]] = []
    with tqdm(total=len(orders), unit="order") as progress:
        for order in orders:
            rows.extend(_order_rows(order))
            progress.update(1)

    wb = Workbook()
    ws = wb.active
    ws.title = f"Orders {target_date:%m-%d}"
    header_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = header_fill
    for row in rows:
        ws.append(row)

    target = Path(output_path) if output_path else Path(settings.export_dir)
    if target.suffix.lower() != ".xlsx":
        target.mkdir(parents=True, exist_ok=True)
        path = target / f"vendor_{vendor_id}_{target_date:%Y%m%d}.xlsx"
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
        path = target
    wb.save(path)
    return path
