from typing import Any, Dict, List, Optional

from supabase_client import supabase

VENDORS_TABLE = "vendors"
MENU_ITEMS_TABLE = "menu_items"
BOX_TYPES_TABLE = "box_types"
SETTINGS_TABLE = "app_settings"
SETTINGS_ROW_ID = "1"


def fetch_vendors() -> List[Dict[str, Any]]:
    response = supabase.table(VENDORS_TABLE).select("*").execute()
    return response.data or []


def fetch_menu_items() -> List[Dict[str, Any]]:
    response = supabase.table(MENU_ITEMS_TABLE).select("*").execute()
    return response.data or []


def fetch_box_types() -> List[Dict[str, Any]]:
    response = supabase.table(BOX_TYPES_TABLE).select("*").execute()
    return response.data or []


def fetch_app_settings() -> Optional[Dict[str, Any]]:
    response = (
        supabase.table(SETTINGS_TABLE)
        .select("*")
        .eq("id", SETTINGS_ROW_ID)
        .limit(1)
        .execute()
    )
    items = response.data or []
    return items[0] if items else None


def upsert_app_settings(*, weekly_cutoff_day: str, weekly_cutoff_time: str) -> Dict[str, Any]:
    record = {
        "id": SETTINGS_ROW_ID,
        "weekly_cutoff_day": weekly_cutoff_day,
        "weekly_cutoff_time": weekly_cutoff_time,
    }
    response = supabase.table(SETTINGS_TABLE).upsert(record).execute()
    data = response.data or []
    return data[0] if data else record
