from dataclasses import dataclass
from typing import Any, Dict, List

from supabase_client import supabase


@dataclass(frozen=True)
class OrderTables:
    parent: str
    parent_key: str
    vendor_selections: str
    items: str
    box_selections: str


UPCOMING_TABLES = OrderTables(
    parent="upcoming_orders",
    parent_key="upcoming_order_id",
    vendor_selections="upcoming_order_vendor_selections",
    items="upcoming_order_items",
    box_selections="upcoming_order_box_selections",
)

PLACED_TABLES = OrderTables(
    parent="orders",
    parent_key="order_id",
    vendor_selections="order_vendor_selections",
    items="order_items",
    box_selections="order_box_selections",
)


def _insert(table: str, record: Dict[str, Any]) -> Dict[str, Any]:
    response = supabase.table(table).insert(record).execute()
    if not response.data:
        raise RuntimeError(f"Failed to insert into {table}")
    return response.data[0]


def _delete_ids(table: str, ids: List[str]) -> None:
    if not ids:
        return
    supabase.table(table).delete().in_("id", ids).execute()


def fetch_vendor_selections(tables: OrderTables, parent_id: str) -> List[Dict[str, Any]]:
    response = (
        supabase.table(tables.vendor_selections)
        .select("*")
        .eq(tables.parent_key, parent_id)
        .execute()
    )
    return response.data or []


def insert_vendor_selection(tables: OrderTables, parent_id: str, vendor_id: str) -> Dict[str, Any]:
    return _insert(
        tables.vendor_selections,
        {tables.parent_key: parent_id, "vendor_id": vendor_id},
    )


def delete_vendor_selections(tables: OrderTables, ids: List[str]) -> None:
    _delete_ids(tables.vendor_selections, ids)


def fetch_items(tables: OrderTables, parent_id: str) -> List[Dict[str, Any]]:
    response = (
        supabase.table(tables.items)
        .select("*")
        .eq(tables.parent_key, parent_id)
        .execute()
    )
    return response.data or []


def insert_item(tables: OrderTables, record: Dict[str, Any]) -> Dict[str, Any]:
    return _insert(tables.items, record)


def update_item(tables: OrderTables, item_id: str, payload: Dict[str, Any]) -> None:
    supabase.table(tables.items).update(payload).eq("id", item_id).execute()


def delete_items(tables: OrderTables, ids: List[str]) -> None:
    _delete_ids(tables.items, ids)


def fetch_box_selections(tables: OrderTables, parent_id: str) -> List[Dict[str, Any]]:
    response = (
        supabase.table(tables.box_selections)
        .select("*")
        .eq(tables.parent_key, parent_id)
        .order("box_number")
        .execute()
    )
    return response.data or []


def insert_box_selection(tables: OrderTables, record: Dict[str, Any]) -> Dict[str, Any]:
    return _insert(tables.box_selections, record)


def update_box_selection(tables: OrderTables, box_id: str, payload: Dict[str, Any]) -> None:
    supabase.table(tables.box_selections).update(payload).eq("id", box_id).execute()


def delete_box_selections(tables: OrderTables, ids: List[str]) -> None:
    _delete_ids(tables.box_selections, ids)


def delete_children(tables: OrderTables, parent_ids: List[str]) -> None:
    if not parent_ids:
        return
    for table in (tables.items, tables.vendor_selections, tables.box_selections):
        supabase.table(table).delete().in_(tables.parent_key, parent_ids).execute()
