from datetime import date, datetime
from typing import Any, Dict, List

from constants import UPCOMING_STATUS_PROCESSED, UPCOMING_STATUS_SCHEDULED
from repositories.order_children_repository import UPCOMING_TABLES, delete_children
from supabase_client import supabase

TABLE_NAME = UPCOMING_TABLES.parent


def fetch_client_upcoming_orders(
    client_id: str,
    *,
    scheduled_only: bool = True,
) -> List[Dict[str, Any]]:
    query = supabase.table(TABLE_NAME).select("*").eq("client_id", client_id)
    if scheduled_only:
        query = query.eq("status", UPCOMING_STATUS_SCHEDULED)
    response = query.order("take_effect_date").execute()
    return response.data or []


def fetch_due_upcoming_orders(today: date) -> List[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("*")
        .eq("status", UPCOMING_STATUS_SCHEDULED)
        .lte("take_effect_date", today.isoformat())
        .order("take_effect_date")
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


def insert_upcoming_order(record: Dict[str, Any]) -> Dict[str, Any]:
    response = supabase.table(TABLE_NAME).insert(record).execute()
    if not response.data:
        raise RuntimeError(
            f"Failed to create upcoming order for client {record.get('client_id')}"
        )
    return response.data[0]


def update_upcoming_order(upcoming_order_id: str, payload: Dict[str, Any]) -> None:
    supabase.table(TABLE_NAME).update(payload).eq("id", upcoming_order_id).execute()


def mark_processed(upcoming_order_id: str, *, order_id: str, processed_at: datetime) -> None:
    update_upcoming_order(
        upcoming_order_id,
        {
            "status": UPCOMING_STATUS_PROCESSED,
            "processed_order_id": order_id,
            "processed_at": processed_at.isoformat(),
        },
    )


def delete_upcoming_orders(upcoming_order_ids: List[str]) -> None:
    if not upcoming_order_ids:
        return
    delete_children(UPCOMING_TABLES, upcoming_order_ids)
    supabase.table(TABLE_NAME).delete().in_("id", upcoming_order_ids).execute()
