from datetime import date
from typing import Any, Dict, List, Optional

from repositories.order_children_repository import PLACED_TABLES
from supabase_client import supabase

TABLE_NAME = PLACED_TABLES.parent


def fetch_order(order_id: str) -> Optional[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("*")
        .eq("id", order_id)
        .limit(1)
        .execute()
    )
    items = response.data or []
    return items[0] if items else None


def fetch_order_by_number(order_number: int) -> Optional[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("*")
        .eq("order_number", order_number)
        .limit(1)
        .execute()
    )
    items = response.data or []
    return items[0] if items else None


def fetch_order_for_upcoming(upcoming_order_id: str) -> Optional[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("*")
        .eq("upcoming_order_id", upcoming_order_id)
        .limit(1)
        .execute()
    )
    items = response.data or []
    return items[0] if items else None


def fetch_orders(order_ids: List[str]) -> List[Dict[str, Any]]:
    if not order_ids:
        return []
    response = supabase.table(TABLE_NAME).select("*").in_("id", order_ids).execute()
    return response.data or []


def fetch_orders_for_delivery_date(delivery_date: date) -> List[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("*")
        .eq("scheduled_delivery_date", delivery_date.isoformat())
        .execute()
    )
    return response.data or []


def fetch_max_order_number() -> int:
    response = (
        supabase.table(TABLE_NAME)
        .select("order_number")
        .order("order_number", desc=True)
        .limit(1)
        .execute()
    )
    items = response.data or []
    if not items or items[0].get("order_number") is None:
        return 0
    return int(items[0]["order_number"])


def insert_order(record: Dict[str, Any]) -> Dict[str, Any]:
    response = supabase.table(TABLE_NAME).insert(record).execute()
    if not response.data:
        raise RuntimeError(f"Failed to create order for client {record.get('client_id')}")
    return response.data[0]


def update_order(order_id: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    response = supabase.table(TABLE_NAME).update(payload).eq("id", order_id).execute()
    data = response.data or []
    return data[0] if data else None


def update_orders_status(order_ids: List[str], status_value: str) -> List[Dict[str, Any]]:
    if not order_ids:
        return []
    response = (
        supabase.table(TABLE_NAME)
        .update({"status": status_value})
        .in_("id", order_ids)
        .execute()
    )
    return response.data or []
