from typing import Any, Dict, List, Optional

from supabase_client import supabase

TABLE_NAME = "billing_records"


def fetch_for_order(order_id: str) -> Optional[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("*")
        .eq("order_id", order_id)
        .limit(1)
        .execute()
    )
    items = response.data or []
    return items[0] if items else None


def insert_billing_record(record: Dict[str, Any]) -> Dict[str, Any]:
    response = supabase.table(TABLE_NAME).insert(record).execute()
    if not response.data:
        raise RuntimeError(f"Failed to create billing record for order {record.get('order_id')}")
    return response.data[0]


def update_status_for_orders(order_ids: List[str], status_value: str) -> None:
    if not order_ids:
        return
    supabase.table(TABLE_NAME).update({"status": status_value}).in_(
        "order_id", order_ids
    ).execute()
