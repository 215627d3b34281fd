"""
Projects a client's draft order onto the ``upcoming_orders`` tables.

One upcoming order exists per (client, delivery day) while it is
``scheduled``. Children are diffed against what is already stored so a
re-sync never duplicates vendor selections, line items or boxes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from catalog import ReferenceData
from constants import (
    DEFAULT_UPDATED_BY,
    LOGGER_NAME,
    ORDER_NUMBER_FLOOR,
    SERVICE_BOXES,
    UPCOMING_STATUS_SCHEDULED,
)
from repositories import orders_repository, upcoming_orders_repository
from repositories.clients_repository import (
    fetch_client,
    fetch_clients_with_active_order,
    update_active_order,
)
from repositories.order_children_repository import (
    UPCOMING_TABLES,
    OrderTables,
    delete_box_selections,
    delete_items,
    delete_vendor_selections,
    fetch_box_selections,
    fetch_items,
    fetch_vendor_selections,
    insert_box_selection,
    insert_item,
    insert_vendor_selection,
    update_box_selection,
    update_item,
)
from services.date_policy import current_time, to_calendar_date, today_in_app_tz
from services.order_normalizer import (
    from_stored_order,
    get_total_box_count,
    normalize_order,
    to_stored_order,
    validate_box_count_against_authorization,
)
from services.order_projection import DayProjection, ProjectedBox, project_day_order
from services.reference_service import load_reference_data_sync

logger = logging.getLogger(LOGGER_NAME)


class OrderValidationError(ValueError):
    """Draft rejected before anything is written."""


def check_box_authorization(
    client: Dict[str, Any],
    active_order: Optional[Dict[str, Any]],
    reference: ReferenceData,
) -> None:
    stored = to_stored_order(active_order)
    if not stored or stored["serviceType"] != SERVICE_BOXES or not stored["boxOrders"]:
        return
    box_type = reference.box_type(stored["boxOrders"][0]["boxTypeId"])
    ok, message = validate_box_count_against_authorization(
        get_total_box_count(stored),
        client.get("authorized_amount"),
        box_type.price_each if box_type else None,
    )
    if not ok:
        raise OrderValidationError(message)


@dataclass
class SyncResult:
    client_id: str
    synced_days: List[Optional[str]] = field(default_factory=list)
    removed_days: List[Optional[str]] = field(default_factory=list)
    skipped_days: List[Optional[str]] = field(default_factory=list)
    due_days: List[Optional[str]] = field(default_factory=list)
    upcoming_order_ids: List[str] = field(default_factory=list)


def next_order_number() -> int:
    highest = max(
        upcoming_orders_repository.fetch_max_order_number(),
        orders_repository.fetch_max_order_number(),
        ORDER_NUMBER_FLOOR - 1,
    )
    return highest + 1


def stored_unit_value(item: Dict[str, Any], reference: ReferenceData) -> float:
    """Price saved on the line; older rows without one are priced from the menu."""
    if item.get("unit_value") is not None:
        return float(item["unit_value"])
    if item.get("menu_item_id"):
        return reference.item_price(item["menu_item_id"]) or 0.0
    return float(item.get("custom_price") or 0)


def children_total(
    items: List[Dict[str, Any]],
    box_selections: List[Dict[str, Any]],
    reference: ReferenceData,
) -> Tuple[float, int]:
    """Value and item count of stored child rows."""
    total = 0.0
    count = 0
    for item in items:
        quantity = int(item.get("quantity") or 0)
        total += stored_unit_value(item, reference) * quantity
        count += quantity
    for box in box_selections:
        total += float(box.get("total_value") or 0)
        count += int(box.get("quantity") or 0)
    return round(total, 2), count


def _item_key(row: Dict[str, Any]) -> Tuple[Optional[str], str]:
    menu_item_id = row.get("menu_item_id")
    name = str(menu_item_id) if menu_item_id else f"custom:{row.get('custom_name')}"
    return row.get("vendor_selection_id"), name


def _occurrence(seen: Dict[Any, int], key: Any) -> int:
    # Custom lines may repeat a name; the n-th one matches the n-th stored row.
    count = seen.get(key, 0)
    seen[key] = count + 1
    return count


def _sync_vendor_selections(
    tables: OrderTables,
    parent_id: str,
    projection: DayProjection,
) -> None:
    existing_selections = fetch_vendor_selections(tables, parent_id)
    existing_items = fetch_items(tables, parent_id)

    selection_ids: Dict[Optional[str], str] = {}
    stale_selection_ids = []
    for row in existing_selections:
        vendor_id = row.get("vendor_id")
        if vendor_id in selection_ids:
            stale_selection_ids.append(row["id"])
        else:
            selection_ids[vendor_id] = row["id"]

    wanted_vendors = {selection.vendor_id for selection in projection.vendor_selections}
    for vendor_id, selection_id in list(selection_ids.items()):
        if vendor_id not in wanted_vendors:
            stale_selection_ids.append(selection_id)
            del selection_ids[vendor_id]

    items_by_key: Dict[Tuple[Optional[str], str, int], Dict[str, Any]] = {}
    stale_item_ids = []
    stored_seen: Dict[Tuple[Optional[str], str], int] = {}
    for row in existing_items:
        if row.get("vendor_selection_id") in stale_selection_ids:
            stale_item_ids.append(row["id"])
            continue
        key = _item_key(row)
        items_by_key[(*key, _occurrence(stored_seen, key))] = row

    for selection in projection.vendor_selections:
        selection_id = selection_ids.get(selection.vendor_id)
        if selection_id is None:
            selection_id = insert_vendor_selection(tables, parent_id, selection.vendor_id)["id"]
            selection_ids[selection.vendor_id] = selection_id
        wanted_seen: Dict[str, int] = {}
        for item in selection.items:
            payload = {
                "vendor_selection_id": selection_id,
                "menu_item_id": item.menu_item_id,
                "custom_name": item.custom_name,
                "custom_price": None if item.menu_item_id else item.unit_value,
                "quantity": item.quantity,
                "unit_value": item.unit_value,
                "total_value": item.total_value,
                "notes": item.notes,
            }
            occurrence = _occurrence(wanted_seen, item.key)
            current = items_by_key.pop((selection_id, item.key, occurrence), None)
            if current is None:
                insert_item(tables, {tables.parent_key: parent_id, **payload})
                continue
            changes = {k: v for k, v in payload.items() if current.get(k) != v}
            if changes:
                update_item(tables, current["id"], changes)

    stale_item_ids.extend(row["id"] for row in items_by_key.values())
    delete_items(tables, stale_item_ids)
    delete_vendor_selections(tables, stale_selection_ids)


def _box_payload(box: ProjectedBox) -> Dict[str, Any]:
    return {
        "vendor_id": box.vendor_id,
        "box_type_id": box.box_type_id,
        "box_number": box.box_number,
        "quantity": box.quantity,
        "unit_value": box.unit_value,
        "total_value": box.total_value,
        "items": box.items,
    }


def _sync_box_selections(
    tables: OrderTables,
    parent_id: str,
    projection: DayProjection,
) -> None:
    existing: Dict[int, Dict[str, Any]] = {}
    stale_ids = []
    for row in fetch_box_selections(tables, parent_id):
        number = int(row.get("box_number") or 0)
        if number in existing:
            stale_ids.append(row["id"])
        else:
            existing[number] = row

    for box in projection.boxes:
        payload = _box_payload(box)
        current = existing.pop(box.box_number, None)
        if current is None:
            insert_box_selection(tables, {tables.parent_key: parent_id, **payload})
            continue
        changes = {k: v for k, v in payload.items() if current.get(k) != v}
        if changes:
            update_box_selection(tables, current["id"], changes)

    stale_ids.extend(row["id"] for row in existing.values())
    delete_box_selections(tables, stale_ids)


def _parent_payload(
    projection: DayProjection,
    updated_by: Optional[str],
    now: datetime,
) -> Dict[str, Any]:
    return {
        "service_type": projection.service_type,
        "case_id": projection.case_id,
        "delivery_day": projection.delivery_day,
        "take_effect_date": projection.take_effect_date.isoformat(),
        "notes": projection.notes,
        "last_updated": now.isoformat(),
        "updated_by": updated_by or projection.updated_by or DEFAULT_UPDATED_BY,
    }


def _write_projection(
    client_id: str,
    projection: DayProjection,
    current: Optional[Dict[str, Any]],
    reference: ReferenceData,
    updated_by: Optional[str],
    now: datetime,
) -> str:
    payload = _parent_payload(projection, updated_by, now)
    if current is None:
        row = upcoming_orders_repository.insert_upcoming_order(
            {
                "client_id": client_id,
                "status": UPCOMING_STATUS_SCHEDULED,
                "order_number": next_order_number(),
                "total_value": 0,
                "total_items": 0,
                **payload,
            }
        )
        upcoming_id = row["id"]
    else:
        upcoming_id = current["id"]
        upcoming_orders_repository.update_upcoming_order(upcoming_id, payload)

    _sync_vendor_selections(UPCOMING_TABLES, upcoming_id, projection)
    _sync_box_selections(UPCOMING_TABLES, upcoming_id, projection)

    total_value, total_items = children_total(
        fetch_items(UPCOMING_TABLES, upcoming_id),
        fetch_box_selections(UPCOMING_TABLES, upcoming_id),
        reference,
    )
    if total_value != projection.total_value:
        logger.warning(
            "Upcoming order %s children total %.2f differs from projected %.2f",
            upcoming_id,
            total_value,
            projection.total_value,
        )
    upcoming_orders_repository.update_upcoming_order(
        upcoming_id,
        {"total_value": total_value, "total_items": total_items},
    )
    return upcoming_id


def sync_client_order(
    client_id: str,
    active_order: Optional[Dict[str, Any]],
    reference: ReferenceData,
    *,
    skip_client_update: bool = False,
    updated_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SyncResult:
    now = now or current_time()
    result = SyncResult(client_id=client_id)
    stored = to_stored_order(active_order)
    if not skip_client_update:
        update_active_order(client_id, stored, updated_at=now)

    # Rows already due belong to the promotion job and are left untouched.
    today = today_in_app_tz(now)
    existing = []
    for row in upcoming_orders_repository.fetch_client_upcoming_orders(client_id):
        take_effect = to_calendar_date(row.get("take_effect_date"))
        if take_effect is not None and take_effect <= today:
            result.due_days.append(row.get("delivery_day"))
        else:
            existing.append(row)
    if result.due_days:
        logger.info(
            "Client %s has %s due upcoming order(s) awaiting promotion",
            client_id,
            len(result.due_days),
        )

    if stored is None:
        upcoming_orders_repository.delete_upcoming_orders([row["id"] for row in existing])
        result.removed_days = [row.get("delivery_day") for row in existing]
        logger.info("Cleared %s upcoming orders for client %s", len(existing), client_id)
        return result

    projections: Dict[Optional[str], DayProjection] = {}
    for day_order in normalize_order(stored, reference):
        projection = project_day_order(day_order, reference, now)
        if projection is None:
            result.skipped_days.append(day_order.delivery_day)
            continue
        projections[projection.delivery_day] = projection

    current_by_day: Dict[Optional[str], Dict[str, Any]] = {}
    stale = []
    for row in existing:
        day = row.get("delivery_day")
        projection = projections.get(day)
        if (
            projection is None
            or row.get("service_type") != projection.service_type
            or day in current_by_day
        ):
            stale.append(row)
        else:
            current_by_day[day] = row
    upcoming_orders_repository.delete_upcoming_orders([row["id"] for row in stale])
    result.removed_days = [row.get("delivery_day") for row in stale]

    for day, projection in projections.items():
        upcoming_id = _write_projection(
            client_id,
            projection,
            current_by_day.get(day),
            reference,
            updated_by,
            now,
        )
        result.synced_days.append(day)
        result.upcoming_order_ids.append(upcoming_id)

    logger.info(
        "Synced client %s: %s day(s) written, %s removed, %s skipped",
        client_id,
        len(result.synced_days),
        len(result.removed_days),
        len(result.skipped_days),
    )
    return result


async def sync_current_order_to_upcoming(
    client_id: str,
    active_order: Optional[Dict[str, Any]],
    skip_client_update: bool = False,
    updated_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SyncResult:
    client = await asyncio.to_thread(fetch_client, client_id)
    if not client:
        raise ValueError("Client not found")
    reference = await asyncio.to_thread(load_reference_data_sync)
    check_box_authorization(client, active_order, reference)
    return await asyncio.to_thread(
        sync_client_order,
        client_id,
        active_order,
        reference,
        skip_client_update=skip_client_update,
        updated_by=updated_by,
        now=now,
    )


def resync_all_clients_sync(
    reference: Optional[ReferenceData] = None,
    now: Optional[datetime] = None,
) -> List[SyncResult]:
    reference = reference or load_reference_data_sync()
    results = []
    for client in fetch_clients_with_active_order():
        try:
            results.append(
                sync_client_order(
                    client["id"],
                    from_stored_order(client.get("active_order"), client.get("service_type")),
                    reference,
                    skip_client_update=True,
                    now=now,
                )
            )
        except Exception as exc:
            logger.exception("Resync failed for client %s: %s", client.get("id"), exc)
    return results


async def resync_all_clients(now: Optional[datetime] = None) -> List[SyncResult]:
    return await asyncio.to_thread(resync_all_clients_sync, None, now)
