from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase_client import supabase

TABLE_NAME = "clients"


def fetch_client(client_id: str) -> Optional[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("*")
        .eq("id", client_id)
        .limit(1)
        .execute()
    )
    items = response.data or []
    return items[0] if items else None


def fetch_clients(client_ids: List[str]) -> List[Dict[str, Any]]:
    if not client_ids:
        return []
    response = supabase.table(TABLE_NAME).select("*").in_("id", client_ids).execute()
    return response.data or []


def fetch_clients_with_active_order() -> List[Dict[str, Any]]:
    response = (
        supabase.table(TABLE_NAME)
        .select("id, full_name, service_type, active_order")
        .not_.is_("active_order", "null")
        .execute()
    )
    return response.data or []


def update_active_order(
    client_id: str,
    active_order: Optional[Dict[str, Any]],
    *,
    updated_at: datetime,
) -> None:
    response = (
        supabase.table(TABLE_NAME)
        .update({"active_order": active_order, "updated_at": updated_at.isoformat()})
        .eq("id", client_id)
        .execute()
    )
    if not response.data:
        raise RuntimeError(f"Failed to save active order for client {client_id}")


def update_authorized_amount(client_id: str, amount: float) -> None:
    supabase.table(TABLE_NAME).update({"authorized_amount": amount}).eq(
        "id", client_id
    ).execute()
